"""
Unit tests for user_service and friend_service.

These tests run DB-free against FakeLedgerStore.
"""

from __future__ import annotations

import pytest

from splitsync.app.errors import AppError, ErrorCode
from splitsync.app.services import friend_service, user_service


# ── user_service ───────────────────────────────────────────────────────────

def test_register_new_user(store):
    profile, created = user_service.register_user("dave", "dave@example.com", "Dave", store)

    assert created is True
    assert profile["id"] == "dave"
    assert profile["name"] == "Dave"
    assert profile["created_at"] is not None


def test_register_again_updates_profile(store):
    profile, created = user_service.register_user("alice", "alice@example.com", "Ally", store)

    assert created is False
    assert profile["name"] == "Ally"


def test_register_again_without_name_keeps_name(store):
    profile, _ = user_service.register_user("alice", "alice@example.com", None, store)
    assert profile["name"] == "Alice"


def test_register_with_taken_email(store):
    with pytest.raises(AppError) as exc_info:
        user_service.register_user("dave", "bob@example.com", None, store)

    assert (exc_info.value.code, exc_info.value.http_status) == (ErrorCode.ALREADY_REGISTERED, 409)


def test_find_user_by_email_normalises(store):
    assert user_service.find_user_by_email("  BOB@Example.com ", store).id == "bob"
    assert user_service.find_user_by_email("nobody@example.com", store) is None


def test_get_user_profile_missing(store):
    with pytest.raises(AppError) as exc_info:
        user_service.get_user_profile("ghost", store)

    assert exc_info.value.code == ErrorCode.USER_NOT_FOUND


# ── friend_service ─────────────────────────────────────────────────────────

def test_add_friend_uses_profile_name(store):
    result = friend_service.add_friend("alice", "bob@example.com", None, store)

    assert result == {"id": "bob", "email": "bob@example.com", "name": "Bob"}
    assert store.collections["users/alice/friends"]["bob"]["name"] == "Bob"


def test_add_friend_prefers_given_name(store):
    result = friend_service.add_friend("alice", "bob@example.com", "Bobby", store)
    assert result["name"] == "Bobby"


def test_add_friend_falls_back_to_email_local_part(store):
    store.seed("users", "dave", email="dave@example.com", name=None)

    assert friend_service.add_friend("alice", "dave@example.com", None, store)["name"] == "dave"


def test_friendship_is_one_directional(store):
    friend_service.add_friend("alice", "bob@example.com", None, store)
    assert "users/bob/friends" not in store.collections or store.collections["users/bob/friends"] == {}


@pytest.mark.parametrize("email,code,status", [
    ("ghost@example.com", ErrorCode.USER_NOT_FOUND, 404),
    ("alice@example.com", ErrorCode.SELF_FRIEND, 422),
])
def test_add_friend_rejections(store, email, code, status):
    with pytest.raises(AppError) as exc_info:
        friend_service.add_friend("alice", email, None, store)

    assert (exc_info.value.code, exc_info.value.http_status) == (code, status)


def test_add_friend_twice(store):
    friend_service.add_friend("alice", "bob@example.com", None, store)

    with pytest.raises(AppError) as exc_info:
        friend_service.add_friend("alice", "bob@example.com", None, store)

    assert exc_info.value.code == ErrorCode.DUPLICATE_FRIEND


def test_delete_friend(store):
    friend_service.add_friend("alice", "bob@example.com", None, store)

    friend_service.delete_friend("alice", "bob", store)

    assert store.collections["users/alice/friends"] == {}
    with pytest.raises(AppError) as exc_info:
        friend_service.delete_friend("alice", "bob", store)
    assert exc_info.value.code == ErrorCode.FRIEND_NOT_FOUND
