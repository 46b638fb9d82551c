"""
store — the LedgerStore collaborator interface and its SQLAlchemy implementation.

Import the interface from here; import SqlLedgerStore from store.sql_store
(it pulls in the models, which need the Flask-SQLAlchemy `db` object).
"""

from splitsync.app.store.ledger_store import (  # noqa: F401
    SERVER_TIMESTAMP,
    ArrayUnion,
    Document,
    Filter,
    FilterOp,
    LedgerStore,
    QuerySnapshot,
    SnapshotStream,
    Subscription,
    chunked,
    doc_path,
)
