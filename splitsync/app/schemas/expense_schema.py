"""
schemas/expense_schema.py — Marshmallow schemas for expense endpoints.

Validation responsibility:
  - This file:
      - Field types, lengths, positive amount
      - EMPTY_SPLIT          (400) — split_between must name at least one user
      - DUPLICATE_SPLIT_USER (400) — the same user twice would be debited twice
      - Non-empty-after-trim enforcement for description
  - services/expense_service.py:
      - PAYER_NOT_MEMBER      (422) — requires the group document
      - SPLIT_USER_NOT_MEMBER (422) — requires the group document
      - EXPENSE_NOT_FOUND     (404) — requires a store lookup

The expense date is never accepted from the client; the store stamps it.

IMPORTANT: Inherits from marshmallow.Schema directly — never ma.Schema.
           See extensions.py for the full explanation.
"""

from __future__ import annotations

from marshmallow import Schema, ValidationError, fields, validate

from splitsync.app.errors import ErrorCode


def _validate_non_empty_after_trim(value: str) -> None:
    if not value.strip():
        raise ValidationError("This field must not be blank or contain only whitespace.")


def _validate_split_between(value: list) -> None:
    """
    The route error handler turns a message that equals a registered
    ErrorCode into that code, so these surface as EMPTY_SPLIT and
    DUPLICATE_SPLIT_USER rather than INVALID_FIELD.
    """
    if not value:
        raise ValidationError(ErrorCode.EMPTY_SPLIT)
    if len(set(value)) != len(value):
        raise ValidationError(ErrorCode.DUPLICATE_SPLIT_USER)


_split_between = dict(
    cls_or_instance=fields.Str(validate=validate.Length(min=1, max=128)),
    required=True,
    validate=_validate_split_between,
)


class CreateExpenseSchema(Schema):
    """
    POST /groups/:id/expenses

    Field rules:
      description   : required, non-empty after trim, max 255 chars
      amount        : required, finite float > 0 (no rounding, no precision cap)
      paid_by       : required user id; membership checked in the service
      split_between : required, non-empty, no duplicates; an equal share of
                      amount is charged to each listed user
    """

    description = fields.Str(
        required=True,
        validate=[
            validate.Length(max=255, error="Description must be at most 255 characters."),
            _validate_non_empty_after_trim,
        ],
    )

    amount = fields.Float(
        required=True,
        validate=validate.Range(
            min=0,
            min_inclusive=False,
            error="Amount must be greater than zero.",
        ),
    )

    paid_by = fields.Str(required=True, validate=validate.Length(min=1, max=128))

    split_between = fields.List(**_split_between)


class UpdateExpenseSchema(Schema):
    """
    PATCH /groups/:id/expenses/:expense_id

    Only the split set can be edited. Amount, payer and description are
    fixed once recorded; delete and re-add to change them.
    """

    split_between = fields.List(**_split_between)
