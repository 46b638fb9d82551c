"""
tests/unit/conftest.py — Shared fixtures for DB-free unit tests.
"""

from __future__ import annotations

import pytest

from .fakes import FakeLedgerStore


@pytest.fixture
def store():
    """
    FakeLedgerStore with three registered users:
        alice, bob, carol   (alice@example.com, ...)
    and one group "g1" whose members are [alice, bob].
    """
    s = FakeLedgerStore()
    for uid in ("alice", "bob", "carol"):
        s.seed("users", uid, email=f"{uid}@example.com", name=uid.title(), created_at=s.now())
    s.seed("groups", "g1", name="Trip", members=["alice", "bob"], created_by="alice", created_at=s.now())
    return s
