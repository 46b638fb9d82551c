"""
services/friend_service.py — Friend list commands.

Document shape:
    users/<uid>/friends/<friend_uid>  {email, name, added_at}

Friendship is one-directional: adding B to A's list does not add A to B's.

Layer rules:
  - No Flask imports. Pure Python with a LedgerStore parameter.
"""

from __future__ import annotations

import logging

from splitsync.app.errors import AppError, ErrorCode
from splitsync.app.services.user_service import find_user_by_email
from splitsync.app.store.ledger_store import SERVER_TIMESTAMP, LedgerStore, doc_path

logger = logging.getLogger(__name__)


def add_friend(owner_id: str, email: str, name: str | None, store: LedgerStore) -> dict:
    """
    Adds the user registered under `email` to owner_id's friends.

    The stored display name is, in order: the `name` argument, the friend's
    profile name, the local part of the email.

    Raises:
        USER_NOT_FOUND   (404) — no profile has this email
        SELF_FRIEND      (422) — the email is the caller's own
        DUPLICATE_FRIEND (409) — already a friend
    """
    friend = find_user_by_email(email, store)
    if friend is None:
        raise AppError(
            ErrorCode.USER_NOT_FOUND,
            "No user found with this email.",
            404,
            field="email",
        )
    if friend.id == owner_id:
        raise AppError(
            ErrorCode.SELF_FRIEND,
            "You cannot add yourself as a friend.",
            422,
            field="email",
        )

    path = doc_path("users", owner_id, "friends", friend.id)
    if store.get_document(path) is not None:
        raise AppError(
            ErrorCode.DUPLICATE_FRIEND,
            "This user is already in your friends.",
            409,
            field="email",
        )

    friend_email = friend.get("email") or email
    display_name = name or friend.get("name") or email.split("@")[0]
    store.put(path, {
        "email":    friend_email,
        "name":     display_name,
        "added_at": SERVER_TIMESTAMP,
    })
    logger.info("User %s added friend %s", owner_id, friend.id)
    return {"id": friend.id, "email": friend_email, "name": display_name}


def delete_friend(owner_id: str, friend_id: str, store: LedgerStore) -> None:
    """Removes friend_id from owner_id's friends (FRIEND_NOT_FOUND if absent)."""
    path = doc_path("users", owner_id, "friends", friend_id)
    if store.get_document(path) is None:
        raise AppError(
            ErrorCode.FRIEND_NOT_FOUND,
            f"User {friend_id} is not in your friends.",
            404,
        )
    store.delete(path)
