"""
routes/users.py — Profile route handlers.

Layer rules:
  - Parse, validate, call ONE service, return envelope.
  - No business logic. No store queries.

Endpoints (base url_prefix=/api/v1/users):
  POST /users/me    → 201 created / 200 updated  register the caller's profile
  GET  /users/me    → 200  the caller's stored profile
  GET  /users/:id   → 200  display name and email as the caller sees them
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from splitsync.app.middleware.auth_middleware import require_auth
from splitsync.app.middleware.sync_session import current_store, current_sync
from splitsync.app.schemas.user_schema import RegisterUserSchema
from splitsync.app.services import user_service

users_bp = Blueprint("users", __name__)


@users_bp.route("/me", methods=["POST"])
@require_auth
def register_me():
    """POST /users/me — Create or update the caller's profile document."""
    data = RegisterUserSchema().load(request.get_json(force=True) or {})
    profile, created = user_service.register_user(
        uid=g.user_id,
        email=data["email"],
        name=data["name"],
        store=current_store(),
    )
    return jsonify({"data": profile, "warnings": []}), 201 if created else 200


@users_bp.route("/me", methods=["GET"])
@require_auth
def get_me():
    """GET /users/me — The caller's stored profile (404 until registered)."""
    profile = user_service.get_user_profile(g.user_id, current_store())
    return jsonify({"data": profile, "warnings": []}), 200


@users_bp.route("/<user_id>", methods=["GET"])
@require_auth
def resolve_user(user_id: str):
    """
    GET /users/:id — Resolved display name and email.

    Never blocks on the store: an id that is neither a friend nor cached
    answers "Unknown" and schedules a background fetch, so a later call
    returns the real name.
    """
    identity = current_sync().identity
    return jsonify({
        "data": {
            "id":    user_id,
            "name":  identity.get_user_name(user_id),
            "email": identity.get_user_email(user_id),
        },
        "warnings": [],
    }), 200
