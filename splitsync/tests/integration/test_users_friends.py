"""
tests/integration/test_users_friends.py — Profiles and friend lists.

Endpoints covered:
  POST   /users/me      → 201 / 200
  GET    /users/me      → 200 / 404
  GET    /users/:id     → 200 (resolved display name)
  GET    /friends       → 200
  POST   /friends       → 201
  DELETE /friends/:id   → 200

Error cases:
  ALREADY_REGISTERED 409, USER_NOT_FOUND 404, SELF_FRIEND 422,
  DUPLICATE_FRIEND 409, FRIEND_NOT_FOUND 404
"""

from __future__ import annotations

from .conftest import auth_headers, befriend, get_data, make_group, register


def _error(resp) -> str:
    return resp.get_json()["error"]["code"]


# ═══════════════════════════════════════════════════════════════════════════
# Profiles
# ═══════════════════════════════════════════════════════════════════════════

class TestProfiles:

    def test_first_registration_returns_201(self, client):
        resp = client.post("/api/v1/users/me", json={"email": "Alice@Test.com", "name": "Alice"},
                           headers=auth_headers("alice"))
        assert resp.status_code == 201
        data = resp.get_json()["data"]
        assert data["id"] == "alice"
        assert data["email"] == "alice@test.com"
        assert data["created_at"] is not None

    def test_second_registration_updates_and_returns_200(self, client):
        register(client, "alice")
        resp = client.post("/api/v1/users/me", json={"email": "alice@test.com", "name": "Ally"},
                           headers=auth_headers("alice"))
        assert resp.status_code == 200
        assert resp.get_json()["data"]["name"] == "Ally"

    def test_email_owned_by_someone_else_returns_409(self, client):
        register(client, "alice")
        resp = client.post("/api/v1/users/me", json={"email": "alice@test.com"},
                           headers=auth_headers("mallory"))
        assert resp.status_code == 409
        assert _error(resp) == "ALREADY_REGISTERED"

    def test_get_me_before_registration_returns_404(self, client):
        resp = client.get("/api/v1/users/me", headers=auth_headers("nobody"))
        assert resp.status_code == 404
        assert _error(resp) == "USER_NOT_FOUND"

    def test_invalid_email_returns_400(self, client):
        resp = client.post("/api/v1/users/me", json={"email": "nope"}, headers=auth_headers("alice"))
        assert resp.status_code == 400
        assert resp.get_json()["error"]["field"] == "email"

    def test_resolve_self_is_you(self, client):
        register(client, "alice")
        data = get_data(client, "alice", "/api/v1/users/alice")
        assert data == {"id": "alice", "name": "You", "email": "alice@test.com"}

    def test_resolve_group_member_by_profile(self, client):
        register(client, "alice")
        register(client, "bob", name="Bob B")
        make_group(client, "alice", ["bob"])

        data = get_data(client, "alice", "/api/v1/users/bob")
        assert data["name"] == "Bob B"
        assert data["email"] == "bob@test.com"

    def test_resolve_stranger_is_unknown_then_known(self, client):
        register(client, "alice")
        register(client, "carol")

        first = get_data(client, "alice", "/api/v1/users/carol")
        second = get_data(client, "alice", "/api/v1/users/carol")

        assert first["name"] == "Unknown"
        assert second["name"] == "Carol"


# ═══════════════════════════════════════════════════════════════════════════
# Friends
# ═══════════════════════════════════════════════════════════════════════════

class TestFriends:

    def test_add_friend_returns_201_and_appears_in_list(self, client):
        register(client, "alice")
        register(client, "bob")

        resp = befriend(client, "alice", "BOB@test.com")

        assert resp.status_code == 201
        assert resp.get_json()["data"] == {"id": "bob", "email": "bob@test.com", "name": "Bob"}
        friends = get_data(client, "alice", "/api/v1/friends/")
        assert [f["id"] for f in friends] == ["bob"]

    def test_custom_name_is_used_for_resolution(self, client):
        register(client, "alice")
        register(client, "bob")
        befriend(client, "alice", "bob@test.com", name="Bobby")

        assert get_data(client, "alice", "/api/v1/users/bob")["name"] == "Bobby"

    def test_friendship_is_one_directional(self, client):
        register(client, "alice")
        register(client, "bob")
        befriend(client, "alice", "bob@test.com")

        assert get_data(client, "bob", "/api/v1/friends/") == []

    def test_unknown_email_returns_404(self, client):
        register(client, "alice")
        resp = befriend(client, "alice", "ghost@test.com")
        assert resp.status_code == 404
        assert _error(resp) == "USER_NOT_FOUND"

    def test_self_returns_422(self, client):
        register(client, "alice")
        resp = befriend(client, "alice", "alice@test.com")
        assert resp.status_code == 422
        assert _error(resp) == "SELF_FRIEND"

    def test_duplicate_returns_409(self, client):
        register(client, "alice")
        register(client, "bob")
        befriend(client, "alice", "bob@test.com")

        resp = befriend(client, "alice", "bob@test.com")
        assert resp.status_code == 409
        assert _error(resp) == "DUPLICATE_FRIEND"

    def test_delete_friend(self, client):
        register(client, "alice")
        register(client, "bob")
        befriend(client, "alice", "bob@test.com")

        resp = client.delete("/api/v1/friends/bob", headers=auth_headers("alice"))
        assert resp.status_code == 200
        assert get_data(client, "alice", "/api/v1/friends/") == []

        again = client.delete("/api/v1/friends/bob", headers=auth_headers("alice"))
        assert again.status_code == 404
        assert _error(again) == "FRIEND_NOT_FOUND"
