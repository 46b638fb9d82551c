"""
store/sql_store.py — LedgerStore backed by SQLAlchemy tables.

Each collection path maps onto one model through a _Collection adapter that
knows how to query, serialise and write that table:

    users                   → User
    users/<uid>/friends     → Friendship  (doc id = friend user id)
    groups                  → Group + Membership rows for `members`
    groups/<gid>/expenses   → Expense
    settlements             → Settlement

Change notification is in-process: after a write commits, every active
subscription on the written collection is re-queried on the writer's thread
and receives the new result if it changed. Query and delivery for one
subscription run under its dispatch lock, so concurrent writers hand over
results in the order they were read. A write to a group's expenses also
re-runs queries on the `groups` collection and delivers the result even when
the group rows are unchanged, so listeners that nest expenses under groups
see them change.

Layer rules:
  - No Flask imports. Works with any sessionmaker, inside or outside an app.
  - Every SQLAlchemyError is logged and surfaced as StoreError.
"""

from __future__ import annotations

import logging
import threading
import uuid
from datetime import datetime, timezone
from typing import Any, Sequence

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload, sessionmaker

from splitsync.app.errors import StoreError
from splitsync.app.models.expense import Expense
from splitsync.app.models.friendship import Friendship
from splitsync.app.models.group import Group
from splitsync.app.models.membership import Membership
from splitsync.app.models.settlement import Settlement
from splitsync.app.models.user import User
from splitsync.app.store.ledger_store import (
    SERVER_TIMESTAMP,
    ArrayUnion,
    Document,
    ErrorCallback,
    Filter,
    FilterOp,
    LedgerStore,
    QuerySnapshot,
    SnapshotCallback,
    Subscription,
    doc_path,
    split_path,
)

logger = logging.getLogger(__name__)


def _as_utc(value: Any) -> Any:
    # SQLite drops tzinfo on the way back; every stored timestamp is UTC.
    if isinstance(value, datetime) and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _stamp(fields: dict) -> dict:
    """Replaces SERVER_TIMESTAMP placeholders with the store clock."""
    now = datetime.now(timezone.utc)
    return {k: (now if v is SERVER_TIMESTAMP else v) for k, v in fields.items()}


# ── Collection adapters ────────────────────────────────────────────────────

class _Collection:
    model: type
    id_attr: str = "id"
    parent_attr: str | None = None
    fields: tuple[str, ...] = ()

    def query(self, parent_id: str | None, filters: Sequence[Filter]):
        stmt = select(self.model)
        if self.parent_attr is not None:
            stmt = stmt.where(getattr(self.model, self.parent_attr) == parent_id)
        for f in filters:
            stmt = self.apply_filter(stmt, f)
        return stmt

    def apply_filter(self, stmt, f: Filter):
        if f.field not in self.fields:
            raise StoreError(f"Cannot filter {self.model.__tablename__} on {f.field!r}.")
        column = getattr(self.model, f.field)
        if f.op == FilterOp.EQ:
            return stmt.where(column == f.value)
        if f.op == FilterOp.IN:
            return stmt.where(column.in_(list(f.value)))
        raise StoreError(
            f"Operator {f.op!r} is not supported on {self.model.__tablename__}.{f.field}."
        )

    def load(self, session: Session, parent_id: str | None, doc_id: str):
        stmt = self.query(parent_id, ()).where(getattr(self.model, self.id_attr) == doc_id)
        return session.execute(stmt).scalar_one_or_none()

    def to_document(self, row) -> Document:
        return Document(
            id=getattr(row, self.id_attr),
            data={name: _as_utc(getattr(row, name)) for name in self.fields},
        )

    def create(self, session: Session, parent_id: str | None, doc_id: str, fields: dict):
        row = self.model(**{self.id_attr: doc_id})
        if self.parent_attr is not None:
            setattr(row, self.parent_attr, parent_id)
        self.assign(session, row, fields)
        session.add(row)
        return row

    def assign(self, session: Session, row, fields: dict) -> None:
        for name, value in fields.items():
            if name not in self.fields:
                raise StoreError(f"Unknown field {name!r} for {self.model.__tablename__}.")
            if isinstance(value, ArrayUnion):
                value = value.apply(getattr(row, name, None))
            setattr(row, name, value)


class _Users(_Collection):
    model = User
    fields = ("email", "name", "created_at")


class _Friends(_Collection):
    model = Friendship
    id_attr = "friend_id"
    parent_attr = "owner_id"
    fields = ("email", "name", "added_at")


class _Expenses(_Collection):
    model = Expense
    parent_attr = "group_id"
    fields = ("description", "amount", "paid_by", "split_between", "date")

    def to_document(self, row) -> Document:
        document = super().to_document(row)
        document.data["split_between"] = list(row.split_between or [])
        return document


class _Settlements(_Collection):
    model = Settlement
    fields = ("group_id", "from_user_id", "to_user_id", "amount", "date")


class _Groups(_Collection):
    model = Group
    fields = ("name", "members", "created_by", "created_at")

    def query(self, parent_id, filters):
        stmt = select(Group).options(selectinload(Group.memberships))
        for f in filters:
            stmt = self.apply_filter(stmt, f)
        return stmt

    def apply_filter(self, stmt, f: Filter):
        if f.field == "members":
            if f.op != FilterOp.ARRAY_CONTAINS:
                raise StoreError("groups.members only supports 'array-contains'.")
            return stmt.where(
                Group.id.in_(select(Membership.group_id).where(Membership.user_id == f.value))
            )
        return super().apply_filter(stmt, f)

    def to_document(self, row) -> Document:
        return Document(
            id=row.id,
            data={
                "name": row.name,
                "members": row.member_ids,
                "created_by": row.created_by,
                "created_at": _as_utc(row.created_at),
            },
        )

    def assign(self, session, row, fields):
        fields = dict(fields)
        members = fields.pop("members", None)
        super().assign(session, row, fields)
        if members is None:
            return
        current = row.member_ids
        if isinstance(members, ArrayUnion):
            members = members.apply(current)
        for user_id in members:
            if user_id not in current:
                row.memberships.append(Membership(user_id=user_id, position=len(current)))
                current.append(user_id)


_COLLECTIONS: dict[tuple[str, ...], _Collection] = {
    ("users",): _Users(),
    ("users", "friends"): _Friends(),
    ("groups",): _Groups(),
    ("groups", "expenses"): _Expenses(),
    ("settlements",): _Settlements(),
}


def _resolve(path: str, expect_document: bool) -> tuple[_Collection, str, str | None, str | None]:
    """
    Parses a store path.

    Returns (adapter, collection_path, parent_id, doc_id).
    """
    segments = split_path(path)
    is_document = len(segments) % 2 == 0
    if is_document != expect_document:
        kind = "document" if expect_document else "collection"
        raise StoreError(f"{path!r} is not a {kind} path.")

    doc_id = segments.pop() if is_document else None
    names = tuple(segments[0::2])
    parent_id = segments[-2] if len(segments) >= 3 else None

    adapter = _COLLECTIONS.get(names)
    if adapter is None:
        raise StoreError(f"Unknown collection {'/'.join(names)!r}.")
    return adapter, doc_path(*segments), parent_id, doc_id


# ── Store ──────────────────────────────────────────────────────────────────

class SqlLedgerStore(LedgerStore):

    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory
        self._subscriptions: list[Subscription] = []
        self._lock = threading.Lock()

    # ── Reads ──────────────────────────────────────────────────────────────

    def get_once(self, collection_path: str, filters: Sequence[Filter] = ()) -> QuerySnapshot:
        adapter, _, parent_id, _ = _resolve(collection_path, expect_document=False)
        filters = self.check_filters(filters)
        try:
            with self._session_factory() as session:
                rows = session.execute(adapter.query(parent_id, filters)).scalars().all()
                return QuerySnapshot(tuple(adapter.to_document(r) for r in rows))
        except SQLAlchemyError as exc:
            logger.error("Read of %s failed: %s", collection_path, exc)
            raise StoreError(f"Could not read {collection_path}.", cause=exc) from exc

    def get_document(self, document_path: str) -> Document | None:
        adapter, _, parent_id, doc_id = _resolve(document_path, expect_document=True)
        try:
            with self._session_factory() as session:
                row = adapter.load(session, parent_id, doc_id)
                return adapter.to_document(row) if row is not None else None
        except SQLAlchemyError as exc:
            logger.error("Read of %s failed: %s", document_path, exc)
            raise StoreError(f"Could not read {document_path}.", cause=exc) from exc

    # ── Writes ─────────────────────────────────────────────────────────────

    def put(self, document_path: str, fields: dict) -> None:
        adapter, collection_path, parent_id, doc_id = _resolve(document_path, expect_document=True)
        fields = _stamp(fields)

        def write(session: Session) -> None:
            row = adapter.load(session, parent_id, doc_id)
            if row is None:
                adapter.create(session, parent_id, doc_id, fields)
            else:
                adapter.assign(session, row, fields)

        self._write(collection_path, document_path, write)

    def update(self, document_path: str, fields: dict) -> None:
        adapter, collection_path, parent_id, doc_id = _resolve(document_path, expect_document=True)
        fields = _stamp(fields)

        def write(session: Session) -> None:
            row = adapter.load(session, parent_id, doc_id)
            if row is None:
                raise StoreError(f"No document to update at {document_path}.")
            adapter.assign(session, row, fields)

        self._write(collection_path, document_path, write)

    def delete(self, document_path: str) -> None:
        adapter, collection_path, parent_id, doc_id = _resolve(document_path, expect_document=True)

        def write(session: Session) -> None:
            row = adapter.load(session, parent_id, doc_id)
            if row is not None:
                session.delete(row)

        self._write(collection_path, document_path, write)

    def create_with_generated_id(self, collection_path: str, fields: dict) -> str:
        new_id = uuid.uuid4().hex
        self.put(doc_path(collection_path, new_id), fields)
        return new_id

    def _write(self, collection_path: str, document_path: str, write) -> None:
        try:
            with self._session_factory() as session:
                with session.begin():
                    write(session)
        except StoreError:
            raise
        except SQLAlchemyError as exc:
            logger.error("Write to %s failed: %s", document_path, exc)
            raise StoreError(f"Could not write {document_path}.", cause=exc) from exc
        self._notify(collection_path)

    # ── Subscriptions ──────────────────────────────────────────────────────

    def subscribe(
            self,
            collection_path: str,
            on_snapshot: SnapshotCallback,
            on_error: ErrorCallback | None = None,
            filters: Sequence[Filter] = (),
    ) -> Subscription:
        _, collection_path, _, _ = _resolve(collection_path, expect_document=False)
        subscription = Subscription(
            collection_path,
            self.check_filters(filters),
            on_snapshot,
            on_error,
            on_cancel=self._remove,
        )
        with self._lock:
            self._subscriptions.append(subscription)
        self._emit(subscription)
        return subscription

    def _remove(self, subscription: Subscription) -> None:
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

    def _notify(self, collection_path: str) -> None:
        segments = split_path(collection_path)
        affected = {collection_path}
        if len(segments) == 3:
            affected.add(segments[0])
        with self._lock:
            targets = [s for s in self._subscriptions if s.collection_path in affected]
        for subscription in targets:
            self._emit(subscription, force=subscription.collection_path != collection_path)

    def _emit(self, subscription: Subscription, force: bool = False) -> None:
        # Concurrent writers take turns per subscription: each one re-queries
        # only after the previous delivery, so the last result is the newest.
        with subscription.dispatch_lock:
            if not subscription.active:
                return
            try:
                snapshot = self.get_once(subscription.collection_path, subscription.filters)
            except StoreError as exc:
                subscription.fail(exc)
                return
            subscription.deliver(snapshot, force=force)

    @property
    def subscription_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)

