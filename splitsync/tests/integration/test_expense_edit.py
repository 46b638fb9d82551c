"""
tests/integration/test_expense_edit.py — PATCH and DELETE /groups/:id/expenses/:eid.

Properties verified:
  - PATCH replaces split_between only; amount, payer and date are unchanged
  - PATCH applies the same split rules as create
  - DELETE removes the expense and balances recompute from what remains
  - Unknown expense ids return EXPENSE_NOT_FOUND (404)
"""

from __future__ import annotations

import pytest

from .conftest import auth_headers, get_data, make_expense, make_group, register


def _error(resp) -> dict:
    return resp.get_json()["error"]


@pytest.fixture
def setup(client):
    """alice and bob share a group; alice paid 90 split between both."""
    for uid in ("alice", "bob", "carol"):
        register(client, uid)
    group = make_group(client, "alice", ["bob"])
    expense = make_expense(client, "alice", group["id"], 90, ["alice", "bob"]).get_json()["data"]
    return group, expense


def _patch(client, uid, group_id, expense_id, split_between):
    return client.patch(
        f"/api/v1/groups/{group_id}/expenses/{expense_id}",
        json={"split_between": split_between},
        headers=auth_headers(uid),
    )


def _balances(client, uid, group_id) -> dict:
    data = get_data(client, uid, f"/api/v1/groups/{group_id}/balances")
    return {b["user_id"]: b["balance"] for b in data["balances"]}


class TestPatchExpense:

    def test_patch_replaces_split(self, client, setup):
        group, expense = setup

        resp = _patch(client, "bob", group["id"], expense["id"], ["bob"])

        assert resp.status_code == 200
        data = resp.get_json()["data"]
        assert data["split_between"] == ["bob"]
        assert (data["amount"], data["paid_by"], data["date"]) == (
            expense["amount"], expense["paid_by"], expense["date"],
        )
        assert _balances(client, "alice", group["id"]) == pytest.approx({"alice": 90.0, "bob": -90.0})

    def test_patch_rejects_amount(self, client, setup):
        group, expense = setup
        resp = client.patch(
            f"/api/v1/groups/{group['id']}/expenses/{expense['id']}",
            json={"split_between": ["bob"], "amount": 1},
            headers=auth_headers("alice"),
        )
        assert resp.status_code == 400
        assert _error(resp)["field"] == "amount"

    def test_patch_empty_split_returns_empty_split(self, client, setup):
        group, expense = setup
        resp = _patch(client, "alice", group["id"], expense["id"], [])
        assert resp.status_code == 400
        assert _error(resp)["code"] == "EMPTY_SPLIT"

    def test_patch_non_member_split_returns_422(self, client, setup):
        group, expense = setup
        resp = _patch(client, "alice", group["id"], expense["id"], ["carol"])
        assert resp.status_code == 422
        assert _error(resp)["code"] == "SPLIT_USER_NOT_MEMBER"

    def test_patch_unknown_expense_returns_404(self, client, setup):
        group, _ = setup
        resp = _patch(client, "alice", group["id"], "nope", ["alice"])
        assert resp.status_code == 404
        assert _error(resp)["code"] == "EXPENSE_NOT_FOUND"


class TestDeleteExpense:

    def test_delete_recomputes_balances(self, client, setup):
        group, expense = setup
        assert _balances(client, "alice", group["id"]) == pytest.approx({"alice": 45.0, "bob": -45.0})

        resp = client.delete(f"/api/v1/groups/{group['id']}/expenses/{expense['id']}",
                             headers=auth_headers("alice"))

        assert resp.status_code == 200
        assert resp.get_json()["data"]["deleted"] is True
        assert _balances(client, "alice", group["id"]) == {"alice": 0.0, "bob": 0.0}
        assert get_data(client, "alice", f"/api/v1/groups/{group['id']}")["expenses"] == []

    def test_delete_twice_returns_404(self, client, setup):
        group, expense = setup
        path = f"/api/v1/groups/{group['id']}/expenses/{expense['id']}"
        client.delete(path, headers=auth_headers("alice"))

        resp = client.delete(path, headers=auth_headers("alice"))
        assert resp.status_code == 404
        assert _error(resp)["code"] == "EXPENSE_NOT_FOUND"

    def test_non_member_cannot_delete(self, client, setup):
        group, expense = setup
        resp = client.delete(f"/api/v1/groups/{group['id']}/expenses/{expense['id']}",
                             headers=auth_headers("carol"))
        assert resp.status_code == 403
