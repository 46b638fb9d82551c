"""
store/ledger_store.py — The LedgerStore collaborator interface.

The core never owns storage. It reads and writes through this interface,
which models a document store addressed by slash-separated paths:

    collection path  "groups"                 (odd number of segments)
    document path    "groups/<gid>"           (even number of segments)
    sub-collection   "groups/<gid>/expenses"

Reads come in two shapes:
  - get_once()  — a one-shot QuerySnapshot.
  - subscribe() — a live query. The current result is delivered immediately,
                  then again every time it changes, until unsubscribe().

Writes stamp SERVER_TIMESTAMP fields with the store's clock and accept
ArrayUnion values for list fields.

Query limits:
  IN_QUERY_LIMIT — the maximum number of values an "in" filter may carry.
  Callers that need more must partition their ids (see chunked()).
"""

from __future__ import annotations

import abc
import logging
import queue
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Iterator, Sequence

from splitsync.app.errors import StoreError

logger = logging.getLogger(__name__)


# ── Sentinels and field operators ──────────────────────────────────────────

class _ServerTimestamp:
    """Placeholder replaced by the store's own clock when a write is applied."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"


SERVER_TIMESTAMP = _ServerTimestamp()


@dataclass(frozen=True)
class ArrayUnion:
    """Appends each value to a list field unless it is already present."""

    values: tuple

    def __init__(self, values: Iterable[Any]) -> None:
        object.__setattr__(self, "values", tuple(values))

    def apply(self, current: Sequence[Any] | None) -> list:
        merged = list(current or [])
        for value in self.values:
            if value not in merged:
                merged.append(value)
        return merged


# ── Query model ────────────────────────────────────────────────────────────

class FilterOp:
    EQ             = "=="
    IN             = "in"
    ARRAY_CONTAINS = "array-contains"


@dataclass(frozen=True)
class Filter:
    field: str
    op: str
    value: Any


@dataclass(frozen=True)
class Document:
    id: str
    data: dict = field(default_factory=dict)

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)


@dataclass(frozen=True)
class QuerySnapshot:
    docs: tuple = ()

    @property
    def empty(self) -> bool:
        return not self.docs

    def __iter__(self) -> Iterator[Document]:
        return iter(self.docs)

    def __len__(self) -> int:
        return len(self.docs)


SnapshotCallback = Callable[[QuerySnapshot], None]
ErrorCallback = Callable[[StoreError], None]


# ── Path helpers ───────────────────────────────────────────────────────────

def doc_path(*segments: str) -> str:
    """Joins path segments: doc_path("groups", gid, "expenses") -> "groups/<gid>/expenses"."""
    return "/".join(str(s).strip("/") for s in segments)


def split_path(path: str) -> list[str]:
    segments = [s for s in path.split("/") if s]
    if not segments:
        raise StoreError(f"Empty store path {path!r}.")
    return segments


def chunked(values: Sequence[Any], size: int) -> list[list[Any]]:
    """Partitions `values` into consecutive lists of at most `size` items."""
    if size < 1:
        raise ValueError("chunk size must be positive")
    return [list(values[i:i + size]) for i in range(0, len(values), size)]


# ── Subscriptions ──────────────────────────────────────────────────────────

class Subscription:
    """
    Handle for one live query.

    The store calls deliver()/fail(); the owner calls unsubscribe(). After
    unsubscribe() no further callbacks fire, even for an emission already
    in flight on another thread. unsubscribe() is idempotent.

    Stores hold `dispatch_lock` while they query and deliver, so a listener
    never sees an older result after a newer one.
    """

    def __init__(
            self,
            collection_path: str,
            filters: tuple[Filter, ...],
            on_snapshot: SnapshotCallback,
            on_error: ErrorCallback | None,
            on_cancel: Callable[["Subscription"], None],
    ) -> None:
        self.collection_path = collection_path
        self.filters = filters
        self._on_snapshot = on_snapshot
        self._on_error = on_error
        self._on_cancel = on_cancel
        self._active = True
        self._last: QuerySnapshot | None = None
        self._lock = threading.Lock()
        self.dispatch_lock = threading.RLock()

    @property
    def active(self) -> bool:
        return self._active

    def deliver(self, snapshot: QuerySnapshot, force: bool = False) -> None:
        """Hands `snapshot` to the listener unless it equals the last one delivered.

        force=True delivers an unchanged result too; nested writes use it so
        listeners that read sub-collections on every emission still re-read.
        """
        with self._lock:
            if not self._active or (snapshot == self._last and not force):
                return
            self._last = snapshot
        try:
            self._on_snapshot(snapshot)
        except Exception:
            # A listener bug must never break the writer that triggered it.
            logger.exception("Snapshot listener for %s raised", self.collection_path)

    def fail(self, error: StoreError) -> None:
        if not self._active:
            return
        with self._lock:
            self._last = None
        if self._on_error is None:
            logger.error("Subscription to %s failed: %s", self.collection_path, error)
            return
        try:
            self._on_error(error)
        except Exception:
            logger.exception("Error listener for %s raised", self.collection_path)

    def unsubscribe(self) -> None:
        with self._lock:
            if not self._active:
                return
            self._active = False
        self._on_cancel(self)


class SnapshotStream:
    """
    Lazy, restartable iterator over a live query.

    Nothing is subscribed until iteration starts. Iteration blocks waiting for
    the next snapshot and only ends when close() is called; a closed stream
    can be iterated again, which opens a fresh subscription. Errors from the
    store are raised out of the iterator.
    """

    _CLOSED = object()

    def __init__(self, store: "LedgerStore", collection_path: str, filters: tuple[Filter, ...]):
        self._store = store
        self._collection_path = collection_path
        self._filters = filters
        self._queue: queue.Queue | None = None
        self._subscription: Subscription | None = None

    def __iter__(self) -> Iterator[QuerySnapshot]:
        self.close()
        items: queue.Queue = queue.Queue()
        self._queue = items
        self._subscription = self._store.subscribe(
            self._collection_path,
            items.put,
            on_error=items.put,
            filters=self._filters,
        )
        while True:
            item = items.get()
            if item is self._CLOSED:
                return
            if isinstance(item, StoreError):
                self.close()
                raise item
            yield item

    def close(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
        if self._queue is not None:
            self._queue.put(self._CLOSED)
            self._queue = None


# ── Interface ──────────────────────────────────────────────────────────────

class LedgerStore(abc.ABC):
    """Abstract document store consumed by the sync and command layers."""

    # Maximum number of values in one "in" filter.
    IN_QUERY_LIMIT: int = 10

    @abc.abstractmethod
    def subscribe(
            self,
            collection_path: str,
            on_snapshot: SnapshotCallback,
            on_error: ErrorCallback | None = None,
            filters: Sequence[Filter] = (),
    ) -> Subscription:
        """Opens a live query. The current result is delivered before returning."""

    @abc.abstractmethod
    def get_once(self, collection_path: str, filters: Sequence[Filter] = ()) -> QuerySnapshot:
        """One-shot read of a collection. Raises StoreError on failure."""

    @abc.abstractmethod
    def get_document(self, document_path: str) -> Document | None:
        """Reads a single document, or None if it does not exist."""

    @abc.abstractmethod
    def put(self, document_path: str, fields: dict) -> None:
        """Creates or fully overwrites a document."""

    @abc.abstractmethod
    def update(self, document_path: str, fields: dict) -> None:
        """Updates the given fields of an existing document."""

    @abc.abstractmethod
    def delete(self, document_path: str) -> None:
        """Deletes a document. Deleting a missing document is not an error."""

    @abc.abstractmethod
    def create_with_generated_id(self, collection_path: str, fields: dict) -> str:
        """Creates a document under a store-generated id and returns the id."""

    def stream(self, collection_path: str, filters: Sequence[Filter] = ()) -> SnapshotStream:
        return SnapshotStream(self, collection_path, tuple(filters))

    def check_filters(self, filters: Sequence[Filter]) -> tuple[Filter, ...]:
        """Validates filters against the store's query limits."""
        for f in filters:
            if f.op not in (FilterOp.EQ, FilterOp.IN, FilterOp.ARRAY_CONTAINS):
                raise StoreError(f"Unsupported filter operator {f.op!r}.")
            if f.op == FilterOp.IN and len(f.value) > self.IN_QUERY_LIMIT:
                raise StoreError(
                    f"An 'in' filter accepts at most {self.IN_QUERY_LIMIT} values "
                    f"(got {len(f.value)})."
                )
        return tuple(filters)
