"""
services/identity_service.py — Display-name and email resolution.

Turns user ids into something a person can read. Lookup order:

    1. the signed-in user         → "You" (name) / their own email
    2. the signed-in user's friends
    3. the profile cache
    4. (names only) schedule a background profile fetch, answer "Unknown"

A lookup never blocks on the store. The first call for an unknown id answers
"Unknown"; once the background fetch lands, later calls return the real name.

Layer rules:
  - No Flask imports.
  - Fetch failures are logged and dropped; they never reach the caller.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Executor
from typing import Callable, Iterable, Sequence

from splitsync.app.errors import StoreError
from splitsync.app.services.read_model import Friend, GroupRecord
from splitsync.app.store.ledger_store import LedgerStore, doc_path

logger = logging.getLogger(__name__)

UNKNOWN = "Unknown"
SELF_NAME = "You"


class UserCache:
    """
    Thread-safe map of user id → {"name", "email"} for users who are not
    friends of the signed-in user. A fresh fetch overwrites the old entry.
    """

    def __init__(self) -> None:
        self._entries: dict[str, dict] = {}
        self._lock = threading.Lock()

    def get(self, user_id: str) -> dict | None:
        with self._lock:
            return self._entries.get(user_id)

    def put(self, user_id: str, profile: dict) -> None:
        with self._lock:
            self._entries[user_id] = dict(profile)

    def has(self, user_id: str) -> bool:
        with self._lock:
            return user_id in self._entries

    def evict(self, user_id: str) -> None:
        with self._lock:
            self._entries.pop(user_id, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class IdentityResolver:

    def __init__(
            self,
            current_user_id: str,
            current_email: str | None,
            store: LedgerStore,
            friends: Callable[[], Sequence[Friend]],
            cache: UserCache | None = None,
            executor: Executor | None = None,
    ) -> None:
        """
        Args:
            friends:  returns the signed-in user's current friend list.
            executor: runs background profile fetches. None runs them inline,
                      which is what tests use.
        """
        self.current_user_id = current_user_id
        self.current_email = current_email
        self._store = store
        self._friends = friends
        self.cache = cache if cache is not None else UserCache()
        self._executor = executor

    # ── Lookups ────────────────────────────────────────────────────────────

    def get_user_name(self, user_id: str | None) -> str:
        if not user_id:
            return UNKNOWN
        if user_id == self.current_user_id:
            return SELF_NAME

        friend = self._find_friend(user_id)
        if friend is not None:
            return friend.name or friend.email or UNKNOWN

        cached = self.cache.get(user_id)
        if cached is not None:
            return cached.get("name") or cached.get("email") or UNKNOWN

        self._schedule([user_id])
        return UNKNOWN

    def get_user_email(self, user_id: str | None) -> str:
        if user_id and user_id == self.current_user_id:
            return self.current_email or UNKNOWN
        if not user_id:
            return UNKNOWN

        friend = self._find_friend(user_id)
        if friend is not None:
            return friend.email or UNKNOWN

        cached = self.cache.get(user_id)
        if cached is not None:
            return cached.get("email") or UNKNOWN

        return UNKNOWN

    def prefetch_group_members(self, groups: Iterable[GroupRecord]) -> list[str]:
        """
        Schedules one background batch for every group member who is not the
        signed-in user, not a friend and not cached yet.

        Returns the ids that were scheduled (empty when nothing is missing).
        """
        friend_ids = {f.id for f in self._friends()}
        missing: list[str] = []
        for group in groups:
            for member_id in group.members:
                if (
                        member_id
                        and member_id != self.current_user_id
                        and member_id not in friend_ids
                        and not self.cache.has(member_id)
                        and member_id not in missing
                ):
                    missing.append(member_id)
        if missing:
            self._schedule(missing)
        return missing

    # ── Internals ──────────────────────────────────────────────────────────

    def _find_friend(self, user_id: str) -> Friend | None:
        for friend in self._friends():
            if friend.id == user_id:
                return friend
        return None

    def _schedule(self, user_ids: list[str]) -> None:
        # Duplicate in-flight fetches for one id are harmless: last write wins.
        if self._executor is None:
            self._fetch(user_ids)
            return
        try:
            self._executor.submit(self._fetch, user_ids)
        except RuntimeError:
            # Executor already shut down (session ended).
            logger.debug("Dropped profile fetch for %s: executor closed", user_ids)

    def _fetch(self, user_ids: list[str]) -> None:
        for user_id in user_ids:
            try:
                document = self._store.get_document(doc_path("users", user_id))
            except StoreError as exc:
                logger.error("Error fetching user %s: %s", user_id, exc)
                continue
            if document is None:
                continue
            self.cache.put(user_id, {
                "name":  document.get("name"),
                "email": document.get("email"),
            })
