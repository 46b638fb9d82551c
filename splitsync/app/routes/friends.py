"""
routes/friends.py — Friend list route handlers.

Endpoints (base url_prefix=/api/v1/friends):
  GET    /friends       → 200  the caller's friends (live view)
  POST   /friends       → 201  add a friend by email
  DELETE /friends/:id   → 200  remove a friend
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from splitsync.app.middleware.auth_middleware import require_auth
from splitsync.app.middleware.sync_session import current_store, current_sync
from splitsync.app.schemas.friend_schema import AddFriendSchema
from splitsync.app.services import friend_service

friends_bp = Blueprint("friends", __name__)


@friends_bp.route("/", methods=["GET"])
@require_auth
def list_friends():
    """GET /friends — Friends from the caller's live snapshot."""
    snapshot = current_sync().snapshot()
    return jsonify({
        "data": [
            {"id": f.id, "name": f.name, "email": f.email, "added_at": f.added_at}
            for f in snapshot.friends
        ],
        "warnings": [],
    }), 200


@friends_bp.route("/", methods=["POST"])
@require_auth
def add_friend():
    """POST /friends — Add the user registered under `email`."""
    data = AddFriendSchema().load(request.get_json(force=True) or {})
    result = friend_service.add_friend(
        owner_id=g.user_id,
        email=data["email"],
        name=data["name"],
        store=current_store(),
    )
    return jsonify({"data": result, "warnings": []}), 201


@friends_bp.route("/<friend_id>", methods=["DELETE"])
@require_auth
def delete_friend(friend_id: str):
    """DELETE /friends/:id — Remove a friend from the caller's list."""
    friend_service.delete_friend(g.user_id, friend_id, current_store())
    return jsonify({"data": {"deleted": True, "id": friend_id}, "warnings": []}), 200
