"""
routes/settlements.py — Settlement route handlers.

Special: settle_up returns (settlement, warnings[]).
  If warnings is non-empty (e.g. OVERPAYMENT), the route includes them in the
  response envelope: {"data": {...}, "warnings": [{"code": "OVERPAYMENT", ...}]}.
  The HTTP status is still 201; overpayment does NOT block the request.

Endpoints (base url_prefix=/api/v1/groups):
  POST /groups/:id/settlements  → 201  record a payment between two members
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from splitsync.app.middleware.auth_middleware import require_auth
from splitsync.app.middleware.sync_session import current_store
from splitsync.app.schemas.settlement_schema import CreateSettlementSchema
from splitsync.app.services import settlement_service

settlements_bp = Blueprint("settlements", __name__)


@settlements_bp.route("/<group_id>/settlements", methods=["POST"])
@require_auth
def settle_up(group_id: str):
    """
    POST /groups/:id/settlements — Record a payment.

    from_user_id defaults to the authenticated caller when omitted.
    """
    data = CreateSettlementSchema().load(request.get_json(force=True) or {})
    settlement, warnings = settlement_service.settle_up(
        group_id=group_id,
        from_user_id=data["from_user_id"] or g.user_id,
        to_user_id=data["to_user_id"],
        amount=data["amount"],
        caller_id=g.user_id,
        store=current_store(),
    )
    return jsonify({"data": settlement, "warnings": warnings}), 201
