"""
services/expense_service.py — Expense commands.

Document shape:
    groups/<gid>/expenses/<eid>
        {description, amount, paid_by, split_between: [uid, ...], date}

Invariants enforced here:
  PAYER_NOT_MEMBER      (422) — paid_by must be a member of the group
  SPLIT_USER_NOT_MEMBER (422) — every split_between id must be a member
  FORBIDDEN             (403) — the caller must be a member of the group

An empty split set is rejected by the schema (EMPTY_SPLIT). The check is
repeated here because service functions are also called without a schema
in front of them, and an empty split set would make every share undefined.

Layer rules:
  - No Flask imports. Pure Python with a LedgerStore parameter.
  - The date is always the store clock (SERVER_TIMESTAMP); clients never
    set it.
"""

from __future__ import annotations

import logging

from splitsync.app.errors import AppError, ErrorCode
from splitsync.app.services.group_service import get_group_or_404, require_member
from splitsync.app.store.ledger_store import SERVER_TIMESTAMP, Document, LedgerStore, doc_path

logger = logging.getLogger(__name__)


# ── Private helpers ────────────────────────────────────────────────────────

def _expense_path(group_id: str, expense_id: str | None = None) -> str:
    if expense_id is None:
        return doc_path("groups", group_id, "expenses")
    return doc_path("groups", group_id, "expenses", expense_id)


def _get_expense_or_404(group_id: str, expense_id: str, store: LedgerStore) -> Document:
    expense = store.get_document(_expense_path(group_id, expense_id))
    if expense is None:
        raise AppError(
            ErrorCode.EXPENSE_NOT_FOUND,
            f"Expense {expense_id} does not exist in group {group_id}.",
            404,
        )
    return expense


def _validate_split(group: Document, split_between: list[str]) -> list[str]:
    if not split_between:
        raise AppError(
            ErrorCode.EMPTY_SPLIT,
            "An expense must be split between at least one member.",
            400,
            field="split_between",
        )
    members = group.get("members") or []
    for user_id in split_between:
        if user_id not in members:
            raise AppError(
                ErrorCode.SPLIT_USER_NOT_MEMBER,
                f"User {user_id} in split_between is not a member of group {group.id}.",
                422,
                field="split_between",
            )
    return list(dict.fromkeys(split_between))


def _expense_dict(group_id: str, expense: Document) -> dict:
    return {
        "id":            expense.id,
        "group_id":      group_id,
        "description":   expense.get("description"),
        "amount":        expense.get("amount"),
        "paid_by":       expense.get("paid_by"),
        "split_between": list(expense.get("split_between") or []),
        "date":          expense.get("date"),
    }


# ── Public service functions ───────────────────────────────────────────────

def add_expense(group_id: str, data: dict, caller_id: str, store: LedgerStore) -> dict:
    """
    Records an expense paid by data["paid_by"] and shared equally between
    data["split_between"].

    Args:
        data: Validated dict from CreateExpenseSchema.
              Keys: description, amount, paid_by, split_between.

    Returns: the stored expense as a dict, date resolved.
    """
    group = get_group_or_404(group_id, store)
    require_member(group, caller_id)

    paid_by = data["paid_by"]
    if paid_by not in (group.get("members") or []):
        raise AppError(
            ErrorCode.PAYER_NOT_MEMBER,
            f"User {paid_by} is not a member of group {group_id}.",
            422,
            field="paid_by",
        )
    split_between = _validate_split(group, data["split_between"])

    expense_id = store.create_with_generated_id(_expense_path(group_id), {
        "description":   data["description"].strip(),
        "amount":        float(data["amount"]),
        "paid_by":       paid_by,
        "split_between": split_between,
        "date":          SERVER_TIMESTAMP,
    })
    logger.info("Expense %s added to group %s", expense_id, group_id)
    return _expense_dict(group_id, _get_expense_or_404(group_id, expense_id, store))


def update_expense(
        group_id: str,
        expense_id: str,
        split_between: list[str],
        caller_id: str,
        store: LedgerStore,
) -> dict:
    """
    Replaces the split set of an existing expense. Every other field is
    left as recorded.

    Returns: the updated expense as a dict.
    """
    group = get_group_or_404(group_id, store)
    require_member(group, caller_id)
    _get_expense_or_404(group_id, expense_id, store)

    store.update(
        _expense_path(group_id, expense_id),
        {"split_between": _validate_split(group, split_between)},
    )
    return _expense_dict(group_id, _get_expense_or_404(group_id, expense_id, store))


def delete_expense(group_id: str, expense_id: str, caller_id: str, store: LedgerStore) -> None:
    """Hard-deletes an expense. Balances recompute from what remains."""
    group = get_group_or_404(group_id, store)
    require_member(group, caller_id)
    _get_expense_or_404(group_id, expense_id, store)

    store.delete(_expense_path(group_id, expense_id))
    logger.info("Expense %s deleted from group %s", expense_id, group_id)
