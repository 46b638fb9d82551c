"""
schemas/settlement_schema.py — Marshmallow schema for settlement endpoints.

Validation responsibility:
  - This file: field types, positive amount.
  - services/settlement_service.py:
      - SELF_SETTLEMENT      (422) — from == to, needs the caller id when
                                     from_user_id is omitted
      - OVERPAYMENT warning  (201) — requires the current pairwise balance
      - PAYER_NOT_MEMBER     (422) — requires the group document
      - RECIPIENT_NOT_MEMBER (422) — requires the group document
      - GROUP_NOT_FOUND      (404) — requires a store lookup

IMPORTANT: Inherits from marshmallow.Schema directly — never ma.Schema.
           See extensions.py for the full explanation.
"""

from __future__ import annotations

from marshmallow import Schema, fields, validate


class CreateSettlementSchema(Schema):
    """
    POST /groups/:id/settlements

    Records a payment from `from_user_id` to `to_user_id`. `from_user_id`
    defaults to the authenticated caller (filled in by the route), so the
    common "I paid you back" case only sends to_user_id and amount.

    Overpayment is allowed: the service records it and returns a warning.
    """

    from_user_id = fields.Str(
        load_default=None,
        allow_none=True,
        validate=validate.Length(min=1, max=128),
    )

    to_user_id = fields.Str(required=True, validate=validate.Length(min=1, max=128))

    amount = fields.Float(
        required=True,
        validate=validate.Range(
            min=0,
            min_inclusive=False,
            error="Amount must be greater than zero.",
        ),
    )
