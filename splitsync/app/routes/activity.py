"""
routes/activity.py — Recent activity feed.

Endpoints (base url_prefix=/api/v1/activity):
  GET /activity?limit=N  → 200  newest-first expenses and settlements (N ≤ 20)
"""

from __future__ import annotations

from flask import Blueprint, jsonify, request

from splitsync.app.errors import AppError, ErrorCode
from splitsync.app.middleware.auth_middleware import require_auth
from splitsync.app.middleware.sync_session import current_sync
from splitsync.app.services.activity_service import RECENT_ACTIVITY_LIMIT, get_recent_activity

activity_bp = Blueprint("activity", __name__)


def _parse_limit() -> int:
    raw = request.args.get("limit")
    if raw is None:
        return RECENT_ACTIVITY_LIMIT
    try:
        limit = int(raw)
    except ValueError:
        limit = 0
    if not 1 <= limit <= RECENT_ACTIVITY_LIMIT:
        raise AppError(
            ErrorCode.INVALID_FIELD,
            f"limit must be an integer between 1 and {RECENT_ACTIVITY_LIMIT}.",
            400,
            field="limit",
        )
    return limit


@activity_bp.route("/", methods=["GET"])
@require_auth
def recent_activity():
    """GET /activity — Activity entries with user ids resolved to names."""
    limit = _parse_limit()
    sync = current_sync()
    entries = get_recent_activity(sync.snapshot(), limit=limit)

    name = sync.identity.get_user_name
    for entry in entries:
        if entry["type"] == "expense":
            entry["paid_by_name"] = name(entry["paid_by"])
        else:
            entry["from_user_name"] = name(entry["from_user_id"])
            entry["to_user_name"] = name(entry["to_user_id"])

    return jsonify({"data": entries, "warnings": []}), 200
