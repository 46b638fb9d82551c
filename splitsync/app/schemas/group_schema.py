"""
schemas/group_schema.py — Marshmallow schemas for group and membership endpoints.

Validation responsibility:
  - This file: field types, string lengths, non-empty checks (including trim).
  - services/group_service.py:
      - FORBIDDEN       (caller must be a member to change a group)
      - USER_NOT_FOUND  (member id existence requires a store lookup)
      - GROUP_NOT_FOUND (requires a store lookup)

IMPORTANT: Inherits from marshmallow.Schema directly — never ma.Schema.
           See extensions.py for the full explanation.
"""

from __future__ import annotations

from marshmallow import Schema, ValidationError, fields, validate


# ── Shared non-empty string validator ─────────────────────────────────────
#
# validate.Length(min=1) alone allows whitespace-only strings like "   "
# because len("   ") == 3 > 0. This validator strips first then checks,
# mirroring the DB CHECK(LENGTH(TRIM(name)) > 0) at the API layer.
# ──────────────────────────────────────────────────────────────────────────

def _validate_non_empty_after_trim(value: str) -> None:
    if not value.strip():
        raise ValidationError("This field must not be blank or contain only whitespace.")


_user_id = fields.Str(validate=validate.Length(min=1, max=128))


class CreateGroupSchema(Schema):
    """
    POST /groups

    name:       non-empty after trim, max 100 chars.
    member_ids: the other members. The caller is always added as the first
                member by the service and may be omitted here.
    """

    name = fields.Str(
        required=True,
        validate=[
            validate.Length(
                min=1,
                max=100,
                error="Group name must be between 1 and 100 characters.",
            ),
            _validate_non_empty_after_trim,
        ],
    )

    member_ids = fields.List(_user_id, load_default=list)


class AddMemberSchema(Schema):
    """
    POST /groups/:id/members

    Members already in the group are ignored (set-union semantics).
    """

    member_ids = fields.List(
        _user_id,
        required=True,
        validate=validate.Length(min=1, error="Provide at least one member id."),
    )
