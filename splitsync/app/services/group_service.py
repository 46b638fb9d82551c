"""
services/group_service.py — Group and membership commands.

Document shapes:
    groups/<gid>             {name, members: [uid, ...], created_by, created_at}
    groups/<gid>/expenses/*  see expense_service.py

Authorization rules:
  - Only members may add members to, or delete, a group (FORBIDDEN, 403).
  - The creator is always the first entry of `members`.

Layer rules:
  - No Flask imports. Pure Python with a LedgerStore parameter.
  - Store failures propagate as StoreError (503); nothing is swallowed here.
  - Live views of groups come from the sync coordinator, never from here.
"""

from __future__ import annotations

import logging

from splitsync.app.errors import AppError, ErrorCode
from splitsync.app.services.read_model import (
    ExpenseRecord,
    GroupRecord,
    LedgerSnapshot,
    SettlementRecord,
)
from splitsync.app.store.ledger_store import (
    SERVER_TIMESTAMP,
    ArrayUnion,
    Document,
    Filter,
    FilterOp,
    LedgerStore,
    doc_path,
)

logger = logging.getLogger(__name__)


# ── Helpers shared by the group-scoped command services ───────────────────

def get_group_or_404(group_id: str, store: LedgerStore) -> Document:
    """Returns the group document or raises GROUP_NOT_FOUND (404)."""
    group = store.get_document(doc_path("groups", group_id))
    if group is None:
        raise AppError(
            ErrorCode.GROUP_NOT_FOUND,
            f"Group {group_id} does not exist.",
            404,
        )
    return group


def require_member(group: Document, user_id: str) -> None:
    """Raises FORBIDDEN (403) if user_id is not in the group's members."""
    if user_id not in (group.get("members") or []):
        raise AppError(
            ErrorCode.FORBIDDEN,
            f"You are not a member of group {group.id}.",
            403,
        )


def load_group_snapshot(group: Document, store: LedgerStore) -> LedgerSnapshot:
    """
    Reads one group's expenses and settlements into a LedgerSnapshot so the
    balance engine can answer questions about it from inside a command.
    """
    expenses = tuple(
        ExpenseRecord.from_document(group.id, e)
        for e in store.get_once(doc_path("groups", group.id, "expenses"))
    )
    settlements = tuple(
        SettlementRecord.from_document(s)
        for s in store.get_once(
            "settlements", [Filter("group_id", FilterOp.EQ, group.id)]
        )
    )
    return LedgerSnapshot(
        groups=(GroupRecord.from_document(group, expenses),),
        settlements=settlements,
    )


def _dedupe(user_ids: list[str], exclude: str | None = None) -> list[str]:
    seen: list[str] = []
    for user_id in user_ids:
        if user_id != exclude and user_id not in seen:
            seen.append(user_id)
    return seen


def _require_registered(user_ids: list[str], store: LedgerStore) -> None:
    for user_id in user_ids:
        if store.get_document(doc_path("users", user_id)) is None:
            raise AppError(
                ErrorCode.USER_NOT_FOUND,
                f"User {user_id} does not exist.",
                404,
                field="member_ids",
            )


def _group_dict(group: Document) -> dict:
    return {
        "id":         group.id,
        "name":       group.get("name"),
        "members":    list(group.get("members") or []),
        "created_by": group.get("created_by"),
        "created_at": group.get("created_at"),
    }


# ── Public service functions ───────────────────────────────────────────────

def create_group(name: str, member_ids: list[str], caller_id: str, store: LedgerStore) -> dict:
    """
    Creates a group whose members are the caller followed by member_ids
    (duplicates and the caller's own id are dropped).

    Every listed member must have a profile (USER_NOT_FOUND, 404).

    Returns: the stored group as a dict, created_at resolved.
    """
    others = _dedupe(member_ids, exclude=caller_id)
    _require_registered(others, store)

    group_id = store.create_with_generated_id("groups", {
        "name":       name.strip(),
        "members":    [caller_id, *others],
        "created_by": caller_id,
        "created_at": SERVER_TIMESTAMP,
    })
    logger.info("User %s created group %s with %d members", caller_id, group_id, len(others) + 1)
    return _group_dict(get_group_or_404(group_id, store))


def add_member_to_group(
        group_id: str,
        member_ids: list[str],
        caller_id: str,
        store: LedgerStore,
) -> dict:
    """
    Adds users to a group with set-union semantics: existing members are
    left alone and the order of `members` is preserved.

    Returns: the updated group as a dict.
    """
    group = get_group_or_404(group_id, store)
    require_member(group, caller_id)

    new_ids = _dedupe(member_ids)
    _require_registered(new_ids, store)

    store.update(doc_path("groups", group_id), {"members": ArrayUnion(new_ids)})
    return _group_dict(get_group_or_404(group_id, store))


def delete_group(group_id: str, caller_id: str, store: LedgerStore) -> None:
    """
    Deletes every expense of the group, then the group itself.

    Settlement documents stay in the store as history. Live views stop
    showing them: the sync coordinator only keeps settlements of groups the
    user can still see.
    """
    group = get_group_or_404(group_id, store)
    require_member(group, caller_id)

    expenses_path = doc_path("groups", group_id, "expenses")
    for expense in store.get_once(expenses_path):
        store.delete(doc_path(expenses_path, expense.id))
    store.delete(doc_path("groups", group_id))
    logger.info("User %s deleted group %s", caller_id, group_id)
