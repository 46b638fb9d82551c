"""
tests/integration/conftest.py — Fixtures and helpers for all integration tests.

Design:
  - Tests run against in-memory SQLite (TestingConfig.SQLALCHEMY_DATABASE_URI)
    unless TEST_DATABASE_URL points somewhere else.
  - The app is created once per session using create_app("testing"), which
    creates every table (CREATE_TABLES) and binds the sync registry to a
    SqlLedgerStore on the same engine.
  - Identity fetches run inline (IDENTITY_FETCH_WORKERS = 0), and the store
    dispatches change notifications on the writer's thread, so a GET issued
    right after a command already sees its effect.
  - Between tests every live session is stopped and all rows are deleted.

Tokens:
  Sign-in belongs to the external identity provider. token() mints the kind
  of HS256 token the provider issues: `sub` is the uid, `email` optional.

Helper functions (not fixtures) are provided for common operations:
  - token(uid, ...)            → signed bearer token
  - auth_headers(uid)          → {"Authorization": "Bearer <token>"}
  - register(client, uid, ...) → profile dict
  - befriend(client, ...)      → HTTP response
  - make_group(client, ...)    → group dict
  - make_expense(...)          → HTTP response
  - settle(...)                → HTTP response

These are plain functions (not pytest fixtures) so they can be called with
arbitrary arguments in any test without fixture parameterization overhead.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import jwt
import pytest

from splitsync.app import create_app
from splitsync.app.extensions import db as _db
from splitsync.app.extensions import sync_registry
from splitsync.config import TestingConfig


# ═══════════════════════════════════════════════════════════════════════════
# Session-scoped app fixture
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture(scope="session")
def app():
    """
    Creates the Flask application in 'testing' mode once for the entire test session.

    Tables are created by create_app() itself; they are dropped at teardown.
    """
    flask_app = create_app("testing")

    yield flask_app

    sync_registry.shutdown()
    with flask_app.app_context():
        _db.drop_all()


# ═══════════════════════════════════════════════════════════════════════════
# Function-scoped test isolation
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture(autouse=True)
def clean_tables(app):
    """
    Stops every live session and deletes all rows after each test.

    Sessions are stopped first so no subscription re-queries a half-emptied
    database. Rows are deleted with raw SQL, which bypasses the store and
    therefore notifies nobody.
    """
    yield  # run the test

    sync_registry.shutdown()

    with app.app_context():
        _db.session.rollback()  # discard any uncommitted state from a failed test

        from sqlalchemy import text
        with _db.engine.connect() as conn:
            conn.execute(text("DELETE FROM friendships"))
            conn.execute(text("DELETE FROM settlements"))
            conn.execute(text("DELETE FROM expenses"))
            conn.execute(text("DELETE FROM group_members"))
            conn.execute(text("DELETE FROM groups"))
            conn.execute(text("DELETE FROM users"))
            conn.commit()


# ═══════════════════════════════════════════════════════════════════════════
# Client fixture
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def client(app):
    """Flask test client. Each test gets a fresh client (function-scoped)."""
    return app.test_client()


# ═══════════════════════════════════════════════════════════════════════════
# Shared helper functions (not fixtures)
# ═══════════════════════════════════════════════════════════════════════════

def token(
    uid: str,
    email: str | None = None,
    expires_in: timedelta = timedelta(minutes=15),
    secret: str = TestingConfig.JWT_SECRET_KEY,
    **claims,
) -> str:
    """
    Mints an identity-provider token for uid (email defaults to <uid>@test.com).

    Carries the issuer and audience TestingConfig expects; pass iss=... or
    aud=... to override them.
    """
    payload = {
        "sub": uid,
        "email": email if email is not None else f"{uid}@test.com",
        "exp": datetime.now(timezone.utc) + expires_in,
        "iss": TestingConfig.JWT_ISSUER,
        "aud": TestingConfig.JWT_AUDIENCE,
        **claims,
    }
    return jwt.encode(payload, secret, algorithm="HS256")


def auth_headers(uid: str) -> dict:
    """Returns the Authorization header dict for use in test requests."""
    return {"Authorization": f"Bearer {token(uid)}"}


def register(client, uid: str, name: str | None = None, email: str | None = None) -> dict:
    """
    Registers uid's profile and returns the profile dict.
    name defaults to uid.title(), email to <uid>@test.com.
    """
    resp = client.post(
        "/api/v1/users/me",
        json={"email": email or f"{uid}@test.com", "name": name or uid.title()},
        headers=auth_headers(uid),
    )
    assert resp.status_code in (200, 201), f"register failed: {resp.get_json()}"
    return resp.get_json()["data"]


def befriend(client, uid: str, friend_email: str, name: str | None = None):
    """Adds the user registered under friend_email to uid's friends."""
    body = {"email": friend_email}
    if name is not None:
        body["name"] = name
    return client.post("/api/v1/friends/", json=body, headers=auth_headers(uid))


def make_group(client, uid: str, member_ids: list[str] | None = None, name: str = "Test Group") -> dict:
    """
    Creates a group and returns the group data dict.
    The caller becomes the first member.
    """
    resp = client.post(
        "/api/v1/groups/",
        json={"name": name, "member_ids": member_ids or []},
        headers=auth_headers(uid),
    )
    assert resp.status_code == 201, f"make_group failed: {resp.get_json()}"
    return resp.get_json()["data"]


def make_expense(
    client,
    uid: str,
    group_id: str,
    amount: float,
    split_between: list[str],
    paid_by: str | None = None,
    description: str = "Test Expense",
):
    """Creates an expense as uid (paid by uid unless paid_by is given). Returns the HTTP response."""
    return client.post(
        f"/api/v1/groups/{group_id}/expenses",
        json={
            "description": description,
            "amount": amount,
            "paid_by": paid_by or uid,
            "split_between": split_between,
        },
        headers=auth_headers(uid),
    )


def settle(client, uid: str, group_id: str, to_user_id: str, amount: float, from_user_id: str | None = None):
    """Records a settlement as uid (from uid unless from_user_id is given). Returns the HTTP response."""
    body = {"to_user_id": to_user_id, "amount": amount}
    if from_user_id is not None:
        body["from_user_id"] = from_user_id
    return client.post(
        f"/api/v1/groups/{group_id}/settlements",
        json=body,
        headers=auth_headers(uid),
    )


def get_data(client, uid: str, path: str):
    """GETs path as uid, asserts 200 and returns the `data` member."""
    resp = client.get(path, headers=auth_headers(uid))
    assert resp.status_code == 200, f"GET {path} failed: {resp.get_json()}"
    return resp.get_json()["data"]
