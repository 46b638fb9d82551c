"""
extensions.py — Flask extension singletons.

Initialises SQLAlchemy, marshmallow and the per-user sync registry as
module-level objects so they can be imported anywhere without creating
circular dependencies.

Pattern:
    1. Create the extension object here (no app attached yet).
    2. Call init_app(app) inside the app factory in app/__init__.py.
    3. Import `db`, `ma` or `sync_registry` from here wherever needed.

    from splitsync.app.extensions import db, ma, sync_registry

IMPORTANT — schema inheritance rule:
    All validation Schema classes (in app/schemas/) inherit from
    marshmallow.Schema directly, NOT from ma.Schema. ma.Schema requires an
    active Flask application context and unit tests run without one.
"""

from flask_marshmallow import Marshmallow
from flask_sqlalchemy import SQLAlchemy

from splitsync.app.services.sync_service import SyncRegistry

db = SQLAlchemy()

ma = Marshmallow()

# One live SyncCoordinator per signed-in user. Bound to a LedgerStore in
# create_app(); stopped on logout and at interpreter shutdown.
sync_registry = SyncRegistry()
