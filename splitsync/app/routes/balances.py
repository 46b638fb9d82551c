"""
routes/balances.py — Balance route handlers.

Layer rules:
  - Read the caller's snapshot, call the balance engine, return envelope.
  - No business logic here; every number comes from balance_service.

Endpoints (base url_prefix=/api/v1):
  GET /groups/:id/balances        → 200  balances, simplified debts, caller summary
  GET /groups/:id/balances/:uid   → 200  pairwise balance caller vs :uid
  GET /balances/total             → 200  caller's totals across all groups
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify

from splitsync.app.errors import AppError, ErrorCode
from splitsync.app.middleware.auth_middleware import require_auth
from splitsync.app.middleware.sync_session import current_sync
from splitsync.app.services import balance_service
from splitsync.app.services.read_model import LedgerSnapshot

balances_bp = Blueprint("balances", __name__)


def _require_visible_group(snapshot: LedgerSnapshot, group_id: str) -> None:
    if snapshot.find_group(group_id) is None:
        raise AppError(
            ErrorCode.GROUP_NOT_FOUND,
            f"Group {group_id} does not exist.",
            404,
        )


@balances_bp.route("/groups/<group_id>/balances", methods=["GET"])
@require_auth
def get_balances(group_id: str):
    """
    GET /groups/:id/balances

    Positive balance: the group owes that member. Negative: the member owes
    the group. `simplified_debts` is a settle-up suggestion with at most
    N-1 payments.
    """
    sync = current_sync()
    snapshot = sync.snapshot()
    _require_visible_group(snapshot, group_id)

    balances = balance_service.calculate_balances(snapshot, group_id)
    return jsonify({
        "data": {
            "group_id": group_id,
            "balances": [
                {
                    "user_id": uid,
                    "name":    sync.identity.get_user_name(uid),
                    "balance": amount,
                }
                for uid, amount in balances.items()
            ],
            "simplified_debts": balance_service.simplify_debts(balances),
            "summary": balance_service.get_member_summary(snapshot, group_id, g.user_id),
        },
        "warnings": [],
    }), 200


@balances_bp.route("/groups/<group_id>/balances/<user_id>", methods=["GET"])
@require_auth
def get_pairwise_balance(group_id: str, user_id: str):
    """
    GET /groups/:id/balances/:uid

    Positive: :uid owes the caller. Negative: the caller owes :uid.
    """
    if user_id == g.user_id:
        raise AppError(
            ErrorCode.INVALID_FIELD,
            "A pairwise balance needs two different users.",
            400,
            field="user_id",
        )
    snapshot = current_sync().snapshot()
    _require_visible_group(snapshot, group_id)

    return jsonify({
        "data": {
            "group_id": group_id,
            "user_id":  user_id,
            "balance":  balance_service.calculate_pairwise_balance(
                snapshot, group_id, g.user_id, user_id
            ),
        },
        "warnings": [],
    }), 200


@balances_bp.route("/balances/total", methods=["GET"])
@require_auth
def get_total_balance():
    """GET /balances/total — {"total_owed", "total_owing"} across all groups."""
    snapshot = current_sync().snapshot()
    return jsonify({
        "data": balance_service.get_total_balance(snapshot, g.user_id),
        "warnings": [],
    }), 200
