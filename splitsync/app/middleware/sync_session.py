"""
middleware/sync_session.py — Per-request access to the caller's live view.

Routes never build SyncCoordinators themselves. After @require_auth has set
flask.g.user_id, current_sync() returns the caller's coordinator, starting
it on the first request of a session. Reads go through its snapshot();
commands go straight to current_store() and are visible in the snapshot as
soon as they return, because the store dispatches change notifications on
the writer's thread.
"""

from __future__ import annotations

from flask import g

from splitsync.app.extensions import sync_registry
from splitsync.app.services.sync_service import SyncCoordinator
from splitsync.app.store.ledger_store import LedgerStore


def current_sync() -> SyncCoordinator:
    return sync_registry.session_for(g.user_id, g.get("user_email"))


def current_store() -> LedgerStore:
    return sync_registry.store
