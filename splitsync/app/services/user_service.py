"""
services/user_service.py — Profile documents.

Sign-up and sign-in belong to the external identity provider. This service
only keeps `users/<uid>` ({email, name, created_at}) so other users can be
found by email and shown by name.

Layer rules:
  - No Flask imports. Pure Python with a LedgerStore parameter.
"""

from __future__ import annotations

import logging

from splitsync.app.errors import AppError, ErrorCode
from splitsync.app.store.ledger_store import (
    SERVER_TIMESTAMP,
    Document,
    Filter,
    FilterOp,
    LedgerStore,
    doc_path,
)

logger = logging.getLogger(__name__)


def _profile_dict(doc: Document) -> dict:
    return {
        "id":         doc.id,
        "email":      doc.get("email"),
        "name":       doc.get("name"),
        "created_at": doc.get("created_at"),
    }


def find_user_by_email(email: str, store: LedgerStore) -> Document | None:
    matches = store.get_once("users", [Filter("email", FilterOp.EQ, email.strip().lower())])
    return matches.docs[0] if not matches.empty else None


def register_user(uid: str, email: str, name: str | None, store: LedgerStore) -> tuple[dict, bool]:
    """
    Creates the caller's profile, or updates email/name if it already exists.

    Raises ALREADY_REGISTERED (409) if the email belongs to a different uid.

    Returns:
        (profile, created) — created is False for an update.
    """
    owner = find_user_by_email(email, store)
    if owner is not None and owner.id != uid:
        raise AppError(
            ErrorCode.ALREADY_REGISTERED,
            "This email is already registered to another account.",
            409,
            field="email",
        )

    path = doc_path("users", uid)
    existing = store.get_document(path)
    if existing is None:
        store.put(path, {"email": email, "name": name, "created_at": SERVER_TIMESTAMP})
        logger.info("Registered profile for user %s", uid)
    else:
        fields = {"email": email}
        if name is not None:
            fields["name"] = name
        store.update(path, fields)

    return _profile_dict(store.get_document(path)), existing is None


def get_user_profile(user_id: str, store: LedgerStore) -> dict:
    """Returns the profile or raises USER_NOT_FOUND (404)."""
    doc = store.get_document(doc_path("users", user_id))
    if doc is None:
        raise AppError(
            ErrorCode.USER_NOT_FOUND,
            f"User {user_id} does not exist.",
            404,
        )
    return _profile_dict(doc)
