"""
services/settlement_service.py — Settlement commands.

Document shape:
    settlements/<sid>  {group_id, from_user_id, to_user_id, amount, date}

A settlement records a payment from `from_user_id` to `to_user_id` inside a
group. See balance_service.py for how it moves balances.

Invariants enforced here:
  SELF_SETTLEMENT      (422) — from_user_id must not equal to_user_id
  PAYER_NOT_MEMBER     (422) — from_user_id must be a group member
  RECIPIENT_NOT_MEMBER (422) — to_user_id must be a group member
  FORBIDDEN            (403) — the caller must be a group member
  OVERPAYMENT warning        — overpayment is valid; recorded with a warning

Notes on OVERPAYMENT:
  If the amount exceeds what from_user_id currently owes to_user_id (the
  pairwise balance, clamped at zero), the settlement is still recorded
  (pre-payment is valid) and a warning is returned alongside the 201:
  {"data": {...}, "warnings": [{"code": "OVERPAYMENT", ...}]}.

Layer rules:
  - No Flask imports. Pure Python with a LedgerStore parameter.
"""

from __future__ import annotations

import logging

from splitsync.app.errors import AppError, ErrorCode, WarningCode
from splitsync.app.services.balance_service import BALANCE_EPSILON, calculate_pairwise_balance
from splitsync.app.services.group_service import (
    get_group_or_404,
    load_group_snapshot,
    require_member,
)
from splitsync.app.store.ledger_store import SERVER_TIMESTAMP, Document, LedgerStore, doc_path

logger = logging.getLogger(__name__)


def outstanding_debt(group: Document, debtor_id: str, creditor_id: str, store: LedgerStore) -> float:
    """
    What debtor_id currently owes creditor_id in this group, or 0.0 if
    nothing is owed in that direction.
    """
    snapshot = load_group_snapshot(group, store)
    owed = -calculate_pairwise_balance(snapshot, group.id, debtor_id, creditor_id)
    return owed if owed > BALANCE_EPSILON else 0.0


def settle_up(
        group_id: str,
        from_user_id: str,
        to_user_id: str,
        amount: float,
        caller_id: str,
        store: LedgerStore,
) -> tuple[dict, list[dict]]:
    """
    Records a payment of `amount` from from_user_id to to_user_id.

    Returns:
        (settlement, warnings) where warnings is a list of warning dicts.
        An empty warnings list means no warnings.
    """
    group = get_group_or_404(group_id, store)
    require_member(group, caller_id)

    if from_user_id == to_user_id:
        raise AppError(
            ErrorCode.SELF_SETTLEMENT,
            "A settlement cannot be made to yourself.",
            422,
            field="to_user_id",
        )

    members = group.get("members") or []
    if from_user_id not in members:
        raise AppError(
            ErrorCode.PAYER_NOT_MEMBER,
            f"User {from_user_id} is not a member of group {group_id}.",
            422,
            field="from_user_id",
        )
    if to_user_id not in members:
        raise AppError(
            ErrorCode.RECIPIENT_NOT_MEMBER,
            f"User {to_user_id} is not a member of group {group_id}.",
            422,
            field="to_user_id",
        )

    warnings: list[dict] = []
    current_debt = outstanding_debt(group, from_user_id, to_user_id, store)
    if amount > current_debt + BALANCE_EPSILON:
        warnings.append({
            "code": WarningCode.OVERPAYMENT,
            "message": (
                f"Settlement of {amount:.2f} exceeds current outstanding debt of "
                f"{current_debt:.2f} from user {from_user_id} to user {to_user_id}. "
                f"Recording anyway — pre-payment is valid."
            ),
        })

    settlement_id = store.create_with_generated_id("settlements", {
        "group_id":     group_id,
        "from_user_id": from_user_id,
        "to_user_id":   to_user_id,
        "amount":       float(amount),
        "date":         SERVER_TIMESTAMP,
    })
    logger.info(
        "Settlement %s recorded in group %s: %s -> %s",
        settlement_id, group_id, from_user_id, to_user_id,
    )

    stored = store.get_document(doc_path("settlements", settlement_id))
    return {
        "id":           settlement_id,
        "group_id":     group_id,
        "from_user_id": from_user_id,
        "to_user_id":   to_user_id,
        "amount":       float(amount),
        "date":         stored.get("date") if stored is not None else None,
    }, warnings
