"""
schemas/user_schema.py — Marshmallow schema for profile registration.

Validation responsibility:
  - This file: email format and length, optional display name length.
  - services/user_service.py: ALREADY_REGISTERED (email owned by another
    uid requires a store lookup).

The uid is never part of the body; it is the token's `sub` claim.

IMPORTANT: Inherits from marshmallow.Schema directly — never ma.Schema.
           See extensions.py for the full explanation.
"""

from __future__ import annotations

from marshmallow import Schema, fields, post_load, validate


class RegisterUserSchema(Schema):
    """
    POST /users/me

    Creates (or refreshes) the profile document `users/<uid>` for the
    authenticated identity. Emails are stored trimmed and lower-cased so
    friend lookup by email is case-insensitive.
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
