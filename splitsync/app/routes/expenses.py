"""
routes/expenses.py — Expense route handlers.

Layer rules:
  - Parse, validate, call ONE service, return envelope.
  - No business logic. No store queries.

Endpoints (base url_prefix=/api/v1/groups):
  POST   /groups/:id/expenses        → 201  add expense (date set by the store)
  PATCH  /groups/:id/expenses/:eid   → 200  replace the split set
  DELETE /groups/:id/expenses/:eid   → 200  delete expense
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from splitsync.app.middleware.auth_middleware import require_auth
from splitsync.app.middleware.sync_session import current_store
from splitsync.app.schemas.expense_schema import CreateExpenseSchema, UpdateExpenseSchema
from splitsync.app.services import expense_service

expenses_bp = Blueprint("expenses", __name__)


@expenses_bp.route("/<group_id>/expenses", methods=["POST"])
@require_auth
def add_expense(group_id: str):
    """POST /groups/:id/expenses — Record an expense split equally."""
    data = CreateExpenseSchema().load(request.get_json(force=True) or {})
    result = expense_service.add_expense(
        group_id=group_id,
        data=data,
        caller_id=g.user_id,
        store=current_store(),
    )
    return jsonify({"data": result, "warnings": []}), 201


@expenses_bp.route("/<group_id>/expenses/<expense_id>", methods=["PATCH"])
@require_auth
def update_expense(group_id: str, expense_id: str):
    """PATCH /groups/:id/expenses/:eid — Replace who the expense is split between."""
    data = UpdateExpenseSchema().load(request.get_json(force=True) or {})
    result = expense_service.update_expense(
        group_id=group_id,
        expense_id=expense_id,
        split_between=data["split_between"],
        caller_id=g.user_id,
        store=current_store(),
    )
    return jsonify({"data": result, "warnings": []}), 200


@expenses_bp.route("/<group_id>/expenses/<expense_id>", methods=["DELETE"])
@require_auth
def delete_expense(group_id: str, expense_id: str):
    """DELETE /groups/:id/expenses/:eid — Hard-delete an expense."""
    expense_service.delete_expense(group_id, expense_id, g.user_id, current_store())
    return jsonify({
        "data": {"deleted": True, "id": expense_id, "group_id": group_id},
        "warnings": [],
    }), 200
