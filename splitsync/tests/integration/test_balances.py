"""
tests/integration/test_balances.py — Balance endpoints end to end.

Endpoints covered:
  GET /groups/:id/balances        → 200 (balances, simplified debts, summary)
  GET /groups/:id/balances/:uid   → 200 (pairwise, caller vs :uid)
  GET /balances/total             → 200 (totals across groups)

Properties verified:
  - The payer is credited the amount; every participant is debited a share
  - Settlements move the payer toward zero: bob paying alice 30 raises bob's
    balance by 30 and lowers alice's by 30
  - Balances sum to zero and every member appears, even at zero
  - Pairwise balances are antisymmetric
  - simplified_debts is present and economically correct
"""

from __future__ import annotations

import pytest

from .conftest import auth_headers, get_data, make_expense, make_group, register, settle


@pytest.fixture
def group(client):
    """alice, bob, carol; alice paid 90 split between all three."""
    for uid in ("alice", "bob", "carol", "dave"):
        register(client, uid)
    group = make_group(client, "alice", ["bob", "carol"])
    make_expense(client, "alice", group["id"], 90, ["alice", "bob", "carol"])
    return group


def _balances(client, uid, group_id) -> dict:
    data = get_data(client, uid, f"/api/v1/groups/{group_id}/balances")
    return {b["user_id"]: b["balance"] for b in data["balances"]}


def _pairwise(client, uid, group_id, other) -> float:
    return get_data(client, uid, f"/api/v1/groups/{group_id}/balances/{other}")["balance"]


class TestGroupBalances:

    def test_single_expense(self, client, group):
        assert _balances(client, "alice", group["id"]) == pytest.approx(
            {"alice": 60.0, "bob": -30.0, "carol": -30.0}
        )

    def test_settlement_moves_both_parties(self, client, group):
        settle(client, "bob", group["id"], "alice", 30)

        assert _balances(client, "alice", group["id"]) == pytest.approx(
            {"alice": 30.0, "bob": 0.0, "carol": -30.0}
        )

    def test_balances_sum_to_zero(self, client, group):
        make_expense(client, "bob", group["id"], 10, ["alice", "bob", "carol"])
        make_expense(client, "carol", group["id"], 7.35, ["bob", "carol"])
        settle(client, "carol", group["id"], "alice", 12.5)

        assert sum(_balances(client, "bob", group["id"]).values()) == pytest.approx(0.0, abs=1e-9)

    def test_every_member_appears_with_names(self, client, group):
        data = get_data(client, "alice", f"/api/v1/groups/{group['id']}/balances")

        names = {b["user_id"]: b["name"] for b in data["balances"]}
        assert names == {"alice": "You", "bob": "Bob", "carol": "Carol"}

    def test_simplified_debts_settle_everything(self, client, group):
        data = get_data(client, "alice", f"/api/v1/groups/{group['id']}/balances")

        debts = data["simplified_debts"]
        assert len(debts) == 2
        assert all(d["to_user_id"] == "alice" for d in debts)
        assert sorted(d["amount"] for d in debts) == pytest.approx([30.0, 30.0])

    def test_summary_for_caller(self, client, group):
        summary = get_data(client, "bob", f"/api/v1/groups/{group['id']}/balances")["summary"]
        assert summary["total_spent"] == 0.0
        assert summary["all_settled"] is False

    def test_outsider_gets_404(self, client, group):
        resp = client.get(f"/api/v1/groups/{group['id']}/balances", headers=auth_headers("dave"))
        assert resp.status_code == 404


class TestPairwiseBalance:

    def test_pairwise_is_antisymmetric(self, client, group):
        assert _pairwise(client, "alice", group["id"], "bob") == pytest.approx(30.0)
        assert _pairwise(client, "bob", group["id"], "alice") == pytest.approx(-30.0)
        assert _pairwise(client, "bob", group["id"], "carol") == 0.0

    def test_settlement_clears_pairwise(self, client, group):
        settle(client, "bob", group["id"], "alice", 30)
        assert _pairwise(client, "alice", group["id"], "bob") == pytest.approx(0.0)
        assert _pairwise(client, "alice", group["id"], "carol") == pytest.approx(30.0)

    def test_pairwise_with_self_returns_400(self, client, group):
        resp = client.get(f"/api/v1/groups/{group['id']}/balances/alice", headers=auth_headers("alice"))
        assert resp.status_code == 400
        assert resp.get_json()["error"]["code"] == "INVALID_FIELD"


class TestTotalBalance:

    def test_totals_across_groups(self, client, group):
        other = make_group(client, "bob", ["alice"], name="Other")
        make_expense(client, "bob", other["id"], 20, ["alice", "bob"])

        alice = get_data(client, "alice", "/api/v1/balances/total")
        bob = get_data(client, "bob", "/api/v1/balances/total")

        assert alice == pytest.approx({"total_owed": 60.0, "total_owing": 10.0})
        assert bob == pytest.approx({"total_owed": 10.0, "total_owing": 30.0})
