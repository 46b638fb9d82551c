"""
schemas/friend_schema.py — Marshmallow schema for the friends endpoints.

Validation responsibility:
  - This file: email format, optional display-name length.
  - services/friend_service.py:
      - USER_NOT_FOUND   (no profile with this email; store lookup)
      - SELF_FRIEND      (email belongs to the caller)
      - DUPLICATE_FRIEND (already in the caller's friends)

IMPORTANT: Inherits from marshmallow.Schema directly — never ma.Schema.
"""

from __future__ import annotations

from marshmallow import Schema, fields, post_load, validate


class AddFriendSchema(Schema):
    """
    POST /friends

    `name` overrides the friend's own profile name in the caller's list.
    When omitted the service falls back to the profile name, then to the
    local part of the email.
    """

    email = fields.Email(
        required=True,
        validate=validate.Length(max=255),
    )

    name = fields.Str(
        load_default=None,
        allow_none=True,
        validate=validate.Length(max=100, error="Name must be at most 100 characters."),
    )

    @post_load
    def normalise(self, data: dict, **kwargs) -> dict:
        data["email"] = data["email"].strip().lower()
        if data.get("name") is not None:
            data["name"] = data["name"].strip() or None
        return data
