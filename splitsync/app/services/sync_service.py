"""
services/sync_service.py — Live per-user view of the ledger.

A SyncCoordinator keeps one signed-in user's friends, groups (with their
expenses) and settlements current by holding live subscriptions on the
LedgerStore:

    users/<uid>/friends                     → friends slice
    groups  where members array-contains uid → groups slice (expenses are
                                              fetched once per emission)
    settlements where group_id in <chunk>    → one subscription per chunk of
                                              at most IN_QUERY_LIMIT group ids

Consumers call snapshot() and get an immutable LedgerSnapshot; nothing
outside this module ever sees mutable state.

Failure policy:
  Subscription and refresh failures are logged and never raised. A failed
  subscription resets only its own slice to empty (a failed settlement chunk
  removes only that chunk's entries). Commands, which live elsewhere, are the
  only place store errors reach the caller.

Concurrency:
  Store callbacks may arrive on any writer's thread. State slices are swapped
  under one RLock; settlement re-subscription is serialised by a second lock
  and never runs while the state lock is held. Every subscription callback
  carries the generation it was opened under, so emissions from torn-down
  subscriptions are ignored, and start() releases its own subscriptions if
  stop() ran while they were opening.

Layer rules:
  - No Flask imports, no model imports. Only the LedgerStore interface.
"""

from __future__ import annotations

import atexit
import logging
import threading
from concurrent.futures import Executor, ThreadPoolExecutor

from splitsync.app.errors import StoreError
from splitsync.app.services.identity_service import IdentityResolver, UserCache
from splitsync.app.services.read_model import (
    ExpenseRecord,
    Friend,
    GroupRecord,
    LedgerSnapshot,
    SettlementRecord,
    sort_key_newest_first,
)
from splitsync.app.store.ledger_store import (
    Document,
    Filter,
    FilterOp,
    LedgerStore,
    QuerySnapshot,
    Subscription,
    chunked,
    doc_path,
)

logger = logging.getLogger(__name__)


class SyncCoordinator:

    def __init__(
            self,
            store: LedgerStore,
            user_id: str,
            email: str | None = None,
            executor: Executor | None = None,
            cache: UserCache | None = None,
    ) -> None:
        self.store = store
        self.user_id = user_id
        self.email = email

        self._state_lock = threading.RLock()
        self._chunk_lock = threading.Lock()

        self._friends: tuple[Friend, ...] = ()
        self._groups: tuple[GroupRecord, ...] = ()
        self._settlements: tuple[SettlementRecord, ...] = ()
        self._loading = False
        self._refreshing = False

        self._started = False
        self._generation = 0
        self._groups_seq = 0
        self._friends_sub: Subscription | None = None
        self._groups_sub: Subscription | None = None
        self._chunk_subs: list[Subscription] = []
        self._chunk_ids: tuple[str, ...] = ()

        self.identity = IdentityResolver(
            user_id,
            email,
            store,
            friends=lambda: self._friends,
            cache=cache,
            executor=executor,
        )

    # ── Lifecycle ──────────────────────────────────────────────────────────

    @property
    def running(self) -> bool:
        return self._started

    def start(self) -> "SyncCoordinator":
        """Opens the friends and groups subscriptions. Idempotent."""
        with self._state_lock:
            if self._started:
                return self
            self._started = True
            self._generation += 1
            generation = self._generation
            self._loading = True

        friends_sub = self.store.subscribe(
            doc_path("users", self.user_id, "friends"),
            lambda snap: self._on_friends(generation, snap),
            on_error=lambda exc: self._on_friends_error(generation, exc),
        )
        groups_sub = self.store.subscribe(
            "groups",
            lambda snap: self._on_groups(generation, snap),
            on_error=lambda exc: self._on_groups_error(generation, exc),
            filters=[Filter("members", FilterOp.ARRAY_CONTAINS, self.user_id)],
        )

        with self._state_lock:
            current = generation == self._generation
            if current:
                self._friends_sub = friends_sub
                self._groups_sub = groups_sub
        if not current:
            # stop() ran while the subscriptions were opening.
            friends_sub.unsubscribe()
            groups_sub.unsubscribe()
            logger.info("Sync for user %s stopped before start completed", self.user_id)
            return self

        logger.info("Sync started for user %s", self.user_id)
        return self

    def stop(self) -> None:
        """Unsubscribes every listener and clears all state (sign-out)."""
        with self._state_lock:
            self._started = False
            self._generation += 1
            friends_sub, self._friends_sub = self._friends_sub, None
            groups_sub, self._groups_sub = self._groups_sub, None

        for subscription in (friends_sub, groups_sub):
            if subscription is not None:
                subscription.unsubscribe()
        with self._chunk_lock:
            self._teardown_chunks()

        with self._state_lock:
            self._friends = ()
            self._groups = ()
            self._settlements = ()
            self._loading = False
            self._refreshing = False
        self.identity.cache.clear()
        logger.info("Sync stopped for user %s", self.user_id)

    def snapshot(self) -> LedgerSnapshot:
        with self._state_lock:
            return LedgerSnapshot(
                user_id=self.user_id,
                friends=self._friends,
                groups=self._groups,
                settlements=self._settlements,
                loading=self._loading,
                refreshing=self._refreshing,
            )

    @property
    def settlement_chunks(self) -> list[tuple[str, ...]]:
        """Group id chunks with a live settlement subscription."""
        with self._chunk_lock:
            return [tuple(c) for c in chunked(self._chunk_ids, self.store.IN_QUERY_LIMIT)]

    # ── Friends ────────────────────────────────────────────────────────────

    def _on_friends(self, generation: int, snap: QuerySnapshot) -> None:
        friends = tuple(Friend.from_document(d) for d in snap)
        with self._state_lock:
            if generation != self._generation:
                return
            self._friends = friends

    def _on_friends_error(self, generation: int, exc: StoreError) -> None:
        logger.error("Error fetching friends for %s: %s", self.user_id, exc)
        with self._state_lock:
            if generation == self._generation:
                self._friends = ()

    # ── Groups ─────────────────────────────────────────────────────────────

    def _load_group(self, doc: Document) -> GroupRecord:
        expenses = self.store.get_once(doc_path("groups", doc.id, "expenses"))
        records = [ExpenseRecord.from_document(doc.id, e) for e in expenses]
        records.sort(key=lambda e: sort_key_newest_first(e.date))
        return GroupRecord.from_document(doc, tuple(records))

    def _on_groups(self, generation: int, snap: QuerySnapshot) -> None:
        with self._state_lock:
            if generation != self._generation:
                return
            self._groups_seq += 1
            seq = self._groups_seq

        try:
            groups = tuple(self._load_group(doc) for doc in snap)
        except StoreError as exc:
            self._on_groups_error(generation, exc)
            return

        with self._state_lock:
            # A newer emission may already have landed; keep the newest.
            if generation != self._generation or seq != self._groups_seq:
                return
            self._groups = groups
            self._loading = False

        self._resync_settlements(generation, tuple(g.id for g in groups))
        self.identity.prefetch_group_members(groups)

    def _on_groups_error(self, generation: int, exc: StoreError) -> None:
        logger.error("Error fetching groups for %s: %s", self.user_id, exc)
        with self._state_lock:
            if generation != self._generation:
                return
            self._groups = ()
            self._loading = False
        self._resync_settlements(generation, ())

    # ── Settlements ────────────────────────────────────────────────────────

    def _teardown_chunks(self) -> None:
        # Caller holds _chunk_lock.
        for subscription in self._chunk_subs:
            subscription.unsubscribe()
        self._chunk_subs = []
        self._chunk_ids = ()

    def _resync_settlements(self, generation: int, group_ids: tuple[str, ...]) -> None:
        """
        Re-opens settlement subscriptions when the set of group ids changed.

        Every existing chunk subscription is torn down before any new one is
        opened. Settlements for groups that are no longer visible are dropped.
        """
        with self._chunk_lock:
            if generation != self._generation:
                return
            if group_ids == self._chunk_ids and (self._chunk_subs or not group_ids):
                return

            self._teardown_chunks()
            with self._state_lock:
                visible = set(group_ids)
                self._settlements = tuple(
                    s for s in self._settlements if s.group_id in visible
                )
            if not group_ids:
                return

            self._chunk_ids = group_ids
            for ids in chunked(group_ids, self.store.IN_QUERY_LIMIT):
                chunk = tuple(ids)
                self._chunk_subs.append(self.store.subscribe(
                    "settlements",
                    lambda snap, chunk=chunk: self._on_settlement_chunk(generation, chunk, snap),
                    on_error=lambda exc, chunk=chunk: self._on_settlement_chunk_error(
                        generation, chunk, exc
                    ),
                    filters=[Filter("group_id", FilterOp.IN, list(chunk))],
                ))
            logger.debug(
                "Subscribed to settlements for %d groups in %d chunks",
                len(group_ids),
                len(self._chunk_subs),
            )

    def _replace_chunk(self, chunk: tuple[str, ...], fresh: tuple[SettlementRecord, ...]) -> None:
        # Caller holds _state_lock.
        members = set(chunk)
        kept = tuple(s for s in self._settlements if s.group_id not in members)
        self._settlements = kept + fresh

    def _on_settlement_chunk(self, generation: int, chunk: tuple[str, ...], snap: QuerySnapshot) -> None:
        fresh = tuple(SettlementRecord.from_document(d) for d in snap)
        with self._state_lock:
            if generation != self._generation:
                return
            self._replace_chunk(chunk, fresh)

    def _on_settlement_chunk_error(self, generation: int, chunk: tuple[str, ...], exc: StoreError) -> None:
        logger.error("Error fetching settlements for groups %s: %s", list(chunk), exc)
        with self._state_lock:
            if generation != self._generation:
                return
            self._replace_chunk(chunk, ())

    # ── Refresh ────────────────────────────────────────────────────────────

    def refresh_data(self) -> None:
        """
        One-shot re-read of friends, groups with expenses and settlements.

        Settlements are read for every group, chunked exactly like the live
        subscriptions. On failure the error is logged and the last known
        state is kept. `refreshing` is set for the duration.
        """
        with self._state_lock:
            generation = self._generation
            self._refreshing = True
        try:
            friends = tuple(
                Friend.from_document(d)
                for d in self.store.get_once(doc_path("users", self.user_id, "friends"))
            )
            group_docs = self.store.get_once(
                "groups",
                [Filter("members", FilterOp.ARRAY_CONTAINS, self.user_id)],
            )
            groups = tuple(self._load_group(doc) for doc in group_docs)

            settlements: list[SettlementRecord] = []
            for ids in chunked([g.id for g in groups], self.store.IN_QUERY_LIMIT):
                settlements.extend(
                    SettlementRecord.from_document(d)
                    for d in self.store.get_once(
                        "settlements", [Filter("group_id", FilterOp.IN, ids)]
                    )
                )
        except StoreError as exc:
            logger.error("Error refreshing data for %s: %s", self.user_id, exc)
            with self._state_lock:
                self._refreshing = False
            return

        with self._state_lock:
            self._refreshing = False
            if generation != self._generation:
                return
            self._friends = friends
            self._groups = groups
            self._settlements = tuple(settlements)
            self._loading = False

        if self.running:
            self._resync_settlements(generation, tuple(g.id for g in groups))
        self.identity.prefetch_group_members(groups)


class SyncRegistry:
    """
    One running SyncCoordinator per signed-in user.

    create_app() binds the registry to the app's LedgerStore. Routes call
    session_for() with the authenticated user; DELETE /sync/session calls
    end_session(). Everything is stopped at interpreter exit.
    """

    def __init__(self) -> None:
        self._store: LedgerStore | None = None
        self._executor: ThreadPoolExecutor | None = None
        self._sessions: dict[str, SyncCoordinator] = {}
        self._lock = threading.Lock()
        self._atexit_registered = False

    def bind(self, store: LedgerStore, fetch_workers: int = 4) -> None:
        """Attaches a store. Any sessions on a previously bound store are stopped."""
        self.shutdown()
        with self._lock:
            self._store = store
            self._executor = (
                ThreadPoolExecutor(max_workers=fetch_workers, thread_name_prefix="identity-fetch")
                if fetch_workers > 0 else None
            )
            if not self._atexit_registered:
                atexit.register(self.shutdown)
                self._atexit_registered = True

    @property
    def store(self) -> LedgerStore:
        if self._store is None:
            raise RuntimeError("SyncRegistry is not bound to a LedgerStore.")
        return self._store

    def session_for(self, user_id: str, email: str | None = None) -> SyncCoordinator:
        with self._lock:
            coordinator = self._sessions.get(user_id)
            if coordinator is None:
                coordinator = SyncCoordinator(
                    self.store, user_id, email=email, executor=self._executor
                )
                self._sessions[user_id] = coordinator
            elif email and not coordinator.email:
                coordinator.email = email
                coordinator.identity.current_email = email
        # Subscribing outside the registry lock: the initial emissions re-enter
        # the store and must not wait on other sessions.
        return coordinator.start()

    def get(self, user_id: str) -> SyncCoordinator | None:
        with self._lock:
            return self._sessions.get(user_id)

    def end_session(self, user_id: str) -> bool:
        with self._lock:
            coordinator = self._sessions.pop(user_id, None)
        if coordinator is None:
            return False
        coordinator.stop()
        return True

    def shutdown(self) -> None:
        with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
            executor, self._executor = self._executor, None
        for coordinator in sessions:
            coordinator.stop()
        if executor is not None:
            executor.shutdown(wait=False)
