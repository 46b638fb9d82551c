"""
routes/groups.py — Group and membership route handlers.

Layer rules:
  - Commands: parse, validate, call ONE service, return envelope.
  - Reads come from the caller's live snapshot, never from the store.

Endpoints (base url_prefix=/api/v1/groups):
  POST   /groups                 → 201  create group (caller is first member)
  GET    /groups                 → 200  caller's groups with expenses
  GET    /groups/:id             → 200  one group with expenses
  DELETE /groups/:id             → 200  delete group and its expenses
  POST   /groups/:id/members     → 200  add members (set union)
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from splitsync.app.errors import AppError, ErrorCode
from splitsync.app.middleware.auth_middleware import require_auth
from splitsync.app.middleware.sync_session import current_store, current_sync
from splitsync.app.schemas.group_schema import AddMemberSchema, CreateGroupSchema
from splitsync.app.services import group_service
from splitsync.app.services.read_model import ExpenseRecord, GroupRecord

groups_bp = Blueprint("groups", __name__)


# ── Serialization helpers ──────────────────────────────────────────────────

def serialize_expense(e: ExpenseRecord) -> dict:
    return {
        "id":            e.id,
        "group_id":      e.group_id,
        "description":   e.description,
        "amount":        e.amount,
        "paid_by":       e.paid_by,
        "split_between": list(e.split_between),
        "date":          e.date,
    }


def serialize_group(group: GroupRecord) -> dict:
    return {
        "id":         group.id,
        "name":       group.name,
        "members":    list(group.members),
        "created_by": group.created_by,
        "created_at": group.created_at,
        "expenses":   [serialize_expense(e) for e in group.expenses],
    }


# ── Route handlers ─────────────────────────────────────────────────────────

@groups_bp.route("/", methods=["POST"])
@require_auth
def create_group():
    """POST /groups — Create a group. The caller becomes the first member."""
    data = CreateGroupSchema().load(request.get_json(force=True) or {})
    result = group_service.create_group(
        name=data["name"],
        member_ids=data["member_ids"],
        caller_id=g.user_id,
        store=current_store(),
    )
    return jsonify({"data": result, "warnings": []}), 201


@groups_bp.route("/", methods=["GET"])
@require_auth
def list_groups():
    """GET /groups — Every group the caller belongs to, expenses newest first."""
    snapshot = current_sync().snapshot()
    return jsonify({
        "data": [serialize_group(group) for group in snapshot.groups],
        "warnings": [],
    }), 200


@groups_bp.route("/<group_id>", methods=["GET"])
@require_auth
def get_group(group_id: str):
    """GET /groups/:id — One group from the caller's snapshot."""
    group = current_sync().snapshot().find_group(group_id)
    if group is None:
        raise AppError(
            ErrorCode.GROUP_NOT_FOUND,
            f"Group {group_id} does not exist.",
            404,
        )
    return jsonify({"data": serialize_group(group), "warnings": []}), 200


@groups_bp.route("/<group_id>", methods=["DELETE"])
@require_auth
def delete_group(group_id: str):
    """DELETE /groups/:id — Delete the group's expenses, then the group."""
    group_service.delete_group(group_id, g.user_id, current_store())
    return jsonify({"data": {"deleted": True, "id": group_id}, "warnings": []}), 200


@groups_bp.route("/<group_id>/members", methods=["POST"])
@require_auth
def add_members(group_id: str):
    """POST /groups/:id/members — Add users; existing members are ignored."""
    data = AddMemberSchema().load(request.get_json(force=True) or {})
    result = group_service.add_member_to_group(
        group_id=group_id,
        member_ids=data["member_ids"],
        caller_id=g.user_id,
        store=current_store(),
    )
    return jsonify({"data": result, "warnings": []}), 200
