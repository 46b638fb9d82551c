"""
services/read_model.py — Immutable read model built from store documents.

The sync coordinator turns store documents into these frozen records and
publishes them as one LedgerSnapshot. The balance engine, the activity
aggregator and the routes only ever see snapshots, so they never need locks.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from splitsync.app.store.ledger_store import Document


def parse_date(value: Any) -> datetime | None:
    """
    Normalises a stored timestamp to an aware datetime.

    Accepts datetimes (naive values are taken as UTC), ISO-8601 strings and
    epoch seconds. Anything else, including None, yields None.
    """
    if isinstance(value, datetime):
        return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    if isinstance(value, str) and value:
        try:
            return parse_date(datetime.fromisoformat(value.replace("Z", "+00:00")))
        except ValueError:
            return None
    return None


def sort_key_newest_first(value: Any) -> tuple[bool, float]:
    """Sort key for descending date order; undated records sort after every dated one."""
    parsed = parse_date(value)
    if parsed is None:
        return (True, 0.0)
    return (False, -parsed.timestamp())


@dataclass(frozen=True)
class Friend:
    id: str
    name: str | None = None
    email: str | None = None
    added_at: datetime | None = None

    @classmethod
    def from_document(cls, doc: Document) -> "Friend":
        return cls(
            id=doc.id,
            name=doc.get("name"),
            email=doc.get("email"),
            added_at=parse_date(doc.get("added_at")),
        )


@dataclass(frozen=True)
class ExpenseRecord:
    id: str
    group_id: str
    description: str
    amount: float
    paid_by: str
    split_between: tuple[str, ...] = ()
    date: datetime | None = None

    @classmethod
    def from_document(cls, group_id: str, doc: Document) -> "ExpenseRecord":
        return cls(
            id=doc.id,
            group_id=group_id,
            description=doc.get("description") or "",
            amount=float(doc.get("amount") or 0.0),
            paid_by=doc.get("paid_by"),
            split_between=tuple(doc.get("split_between") or ()),
            date=parse_date(doc.get("date")),
        )


@dataclass(frozen=True)
class GroupRecord:
    id: str
    name: str
    members: tuple[str, ...] = ()
    created_by: str | None = None
    created_at: datetime | None = None
    expenses: tuple[ExpenseRecord, ...] = ()

    @classmethod
    def from_document(cls, doc: Document, expenses: tuple[ExpenseRecord, ...]) -> "GroupRecord":
        return cls(
            id=doc.id,
            name=doc.get("name") or "",
            members=tuple(doc.get("members") or ()),
            created_by=doc.get("created_by"),
            created_at=parse_date(doc.get("created_at")),
            expenses=expenses,
        )


@dataclass(frozen=True)
class SettlementRecord:
    id: str
    group_id: str
    from_user_id: str
    to_user_id: str
    amount: float
    date: datetime | None = None

    @classmethod
    def from_document(cls, doc: Document) -> "SettlementRecord":
        return cls(
            id=doc.id,
            group_id=doc.get("group_id"),
            from_user_id=doc.get("from_user_id"),
            to_user_id=doc.get("to_user_id"),
            amount=float(doc.get("amount") or 0.0),
            date=parse_date(doc.get("date")),
        )


@dataclass(frozen=True)
class LedgerSnapshot:
    """Everything one signed-in user can see, frozen at a point in time."""

    user_id: str | None = None
    friends: tuple[Friend, ...] = ()
    groups: tuple[GroupRecord, ...] = ()
    settlements: tuple[SettlementRecord, ...] = ()
    loading: bool = False
    refreshing: bool = False
    _groups_by_id: dict = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_groups_by_id", {g.id: g for g in self.groups})

    def find_group(self, group_id: str) -> GroupRecord | None:
        return self._groups_by_id.get(group_id)

    def settlements_for(self, group_id: str) -> list[SettlementRecord]:
        return [s for s in self.settlements if s.group_id == group_id]
