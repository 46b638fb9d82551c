"""
tests/unit/test_ledger_store.py — Unit tests for the LedgerStore building blocks.

Covers the pieces every store implementation shares: chunked(), ArrayUnion,
check_filters() and the Subscription / SnapshotStream handles.
"""

from __future__ import annotations

import threading

import pytest

from splitsync.app.errors import StoreError
from splitsync.app.store.ledger_store import (
    ArrayUnion,
    Document,
    Filter,
    FilterOp,
    QuerySnapshot,
    Subscription,
    chunked,
    doc_path,
    split_path,
)

from .fakes import FakeLedgerStore


# ── Paths and chunking ─────────────────────────────────────────────────────

def test_doc_path_joins_segments():
    assert doc_path("groups", "g1", "expenses") == "groups/g1/expenses"
    assert doc_path("/users/", "u1") == "users/u1"


def test_split_path_rejects_empty():
    with pytest.raises(StoreError):
        split_path("//")


@pytest.mark.parametrize("count,sizes", [
    (0, []),
    (1, [1]),
    (10, [10]),
    (11, [10, 1]),
    (25, [10, 10, 5]),
])
def test_chunked_sizes(count, sizes):
    values = [f"g{i}" for i in range(count)]

    chunks = chunked(values, 10)

    assert [len(c) for c in chunks] == sizes
    assert [v for c in chunks for v in c] == values


def test_chunked_rejects_non_positive_size():
    with pytest.raises(ValueError):
        chunked(["a"], 0)


# ── ArrayUnion ─────────────────────────────────────────────────────────────

def test_array_union_appends_only_missing_values():
    assert ArrayUnion(["b", "c", "c"]).apply(["a", "b"]) == ["a", "b", "c"]


def test_array_union_on_missing_field():
    assert ArrayUnion(("x",)).apply(None) == ["x"]


# ── Filters ────────────────────────────────────────────────────────────────

def test_in_filter_over_limit_is_rejected():
    store = FakeLedgerStore()
    too_many = [f"g{i}" for i in range(store.IN_QUERY_LIMIT + 1)]

    with pytest.raises(StoreError, match="at most 10"):
        store.get_once("settlements", [Filter("group_id", FilterOp.IN, too_many)])


def test_in_filter_at_limit_is_accepted():
    store = FakeLedgerStore()
    ids = [f"g{i}" for i in range(store.IN_QUERY_LIMIT)]

    assert store.get_once("settlements", [Filter("group_id", FilterOp.IN, ids)]).empty


def test_unknown_operator_is_rejected():
    with pytest.raises(StoreError):
        FakeLedgerStore().check_filters([Filter("amount", ">", 3)])


# ── Subscription ───────────────────────────────────────────────────────────

def _subscription(received, errors=None, cancelled=None):
    return Subscription(
        "groups",
        (),
        received.append,
        errors.append if errors is not None else None,
        on_cancel=(cancelled.append if cancelled is not None else lambda s: None),
    )


def test_identical_snapshots_are_delivered_once():
    received = []
    sub = _subscription(received)
    snap = QuerySnapshot((Document("g1", {"name": "A"}),))

    sub.deliver(snap)
    sub.deliver(QuerySnapshot((Document("g1", {"name": "A"}),)))
    sub.deliver(snap, force=True)

    assert len(received) == 2


def test_unsubscribe_stops_delivery_and_is_idempotent():
    received, cancelled = [], []
    sub = _subscription(received, cancelled=cancelled)

    sub.unsubscribe()
    sub.unsubscribe()
    sub.deliver(QuerySnapshot())

    assert received == []
    assert len(cancelled) == 1
    assert not sub.active


def test_failure_resets_dedupe_and_reaches_error_callback():
    received, errors = [], []
    sub = _subscription(received, errors)
    snap = QuerySnapshot()

    sub.deliver(snap)
    sub.fail(StoreError("offline"))
    sub.deliver(snap)

    assert len(received) == 2
    assert [str(e.message) for e in errors] == ["offline"]


def test_listener_exception_does_not_propagate():
    def boom(snapshot):
        raise ValueError("listener bug")

    sub = Subscription("groups", (), boom, None, on_cancel=lambda s: None)
    sub.deliver(QuerySnapshot())


# ── SnapshotStream ─────────────────────────────────────────────────────────

def test_stream_subscribes_lazily_and_yields_updates():
    store = FakeLedgerStore()
    stream = store.stream("settlements")
    assert store.subscriptions == []

    seen = []
    for snapshot in stream:
        seen.append(len(snapshot))
        if len(seen) == 1:
            store.put("settlements/s1", {"group_id": "g1", "amount": 1.0})
        else:
            stream.close()

    assert seen == [0, 1]
    assert store.subscriptions == []


def test_stream_raises_store_errors():
    store = FakeLedgerStore()
    store.failing.add("settlements")

    with pytest.raises(StoreError):
        next(iter(store.stream("settlements")))


def test_stream_close_from_another_thread_ends_iteration():
    store = FakeLedgerStore()
    stream = store.stream("groups")
    seen = []

    def consume():
        for snapshot in stream:
            seen.append(snapshot)

    worker = threading.Thread(target=consume)
    worker.start()
    while not seen:
        worker.join(0.01)
    stream.close()
    worker.join(5)

    assert not worker.is_alive()
    assert len(seen) == 1
