"""
routes/sync.py — Session lifecycle for the caller's live view.

Endpoints (base url_prefix=/api/v1/sync):
  POST   /sync/refresh   → 200  one-shot re-read of friends, groups, settlements
  GET    /sync/status    → 200  loading / refreshing flags and slice sizes
  DELETE /sync/session   → 200  sign-out: tear down every live subscription
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify

from splitsync.app.extensions import sync_registry
from splitsync.app.middleware.auth_middleware import require_auth
from splitsync.app.middleware.sync_session import current_sync
from splitsync.app.services.read_model import LedgerSnapshot

sync_bp = Blueprint("sync", __name__)


def _status(snapshot: LedgerSnapshot) -> dict:
    return {
        "loading":     snapshot.loading,
        "refreshing":  snapshot.refreshing,
        "friends":     len(snapshot.friends),
        "groups":      len(snapshot.groups),
        "settlements": len(snapshot.settlements),
    }


@sync_bp.route("/refresh", methods=["POST"])
@require_auth
def refresh():
    """
    POST /sync/refresh — Re-read everything once.

    Refresh failures are logged and the last known state is kept, so this
    always answers 200 with whatever the caller can currently see.
    """
    sync = current_sync()
    sync.refresh_data()
    return jsonify({"data": _status(sync.snapshot()), "warnings": []}), 200


@sync_bp.route("/status", methods=["GET"])
@require_auth
def status():
    """GET /sync/status — Flags and sizes of the caller's snapshot."""
    return jsonify({"data": _status(current_sync().snapshot()), "warnings": []}), 200


@sync_bp.route("/session", methods=["DELETE"])
@require_auth
def end_session():
    """DELETE /sync/session — Stop the caller's coordinator (sign-out)."""
    ended = sync_registry.end_session(g.user_id)
    return jsonify({"data": {"ended": ended}, "warnings": []}), 200
