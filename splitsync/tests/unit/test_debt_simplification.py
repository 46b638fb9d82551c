"""
tests/unit/test_debt_simplification.py — Unit tests for balance_service.simplify_debts.

What this file proves:
  - Two-person debt → single transaction
  - N members → at most N-1 transactions
  - All-zero (or float-noise) balances → empty transaction list
  - All transactions are directionally correct (debtor → creditor)
  - Applying the transactions reproduces the original net positions

Unit test constraints:
  - No database, no Flask, no store.
  - simplify_debts takes a plain dict[str, float] — no mocking required.
"""

from __future__ import annotations

from collections import defaultdict

import pytest

from splitsync.app.services.balance_service import simplify_debts


# ── Helpers ────────────────────────────────────────────────────────────────

def _verify_correctness(original_balances: dict[str, float], transactions: list[dict]) -> None:
    """
    Applies the simplified transactions and asserts the net positions match
    the input: simplify_debts must not invent, lose or misroute money.
    """
    net = defaultdict(float)
    for txn in transactions:
        net[txn["from_user_id"]] -= txn["amount"]
        net[txn["to_user_id"]]   += txn["amount"]

    for uid, expected_balance in original_balances.items():
        assert net[uid] == pytest.approx(expected_balance, abs=1e-9), (
            f"Simplification incorrect for user {uid}: "
            f"expected net change {expected_balance}, got {net[uid]}"
        )


# ── Tests ──────────────────────────────────────────────────────────────────

def test_all_zero_returns_empty_list():
    assert simplify_debts({"a": 0.0, "b": 0.0, "c": 0.0}) == []


def test_empty_dict_returns_empty_list():
    assert simplify_debts({}) == []


def test_float_noise_is_treated_as_settled():
    """Residue like 1e-15 from share arithmetic must not produce payments."""
    assert simplify_debts({"a": 1e-15, "b": -1e-15}) == []


def test_two_person_debt_one_transaction():
    result = simplify_debts({"alice": 50.0, "bob": -50.0})

    assert result == [{"from_user_id": "bob", "to_user_id": "alice", "amount": 50.0}]


def test_three_person_one_creditor_two_debtors():
    balances = {"alice": 100.0, "bob": -40.0, "carol": -60.0}

    result = simplify_debts(balances)

    assert len(result) <= 2
    assert all(txn["to_user_id"] == "alice" for txn in result)
    _verify_correctness(balances, result)


@pytest.mark.parametrize("balances", [
    {"a": 60.0, "b": -30.0, "c": -30.0},
    {"a": 80.0, "b": -50.0, "c": -50.0, "d": 20.0},
    {"a": 100.0, "b": 50.0, "c": -40.0, "d": -60.0, "e": -50.0},
    {"a": 33.333333333333336, "b": -16.666666666666668, "c": -16.666666666666668},
])
def test_at_most_n_minus_one_and_economically_correct(balances):
    result = simplify_debts(balances)

    assert len(result) <= len(balances) - 1
    _verify_correctness(balances, result)


def test_one_sided_input_does_not_crash():
    """Input that does not sum to zero is a caller bug, but must not raise."""
    assert simplify_debts({"a": 50.0, "b": 50.0}) == []
    assert simplify_debts({"a": -50.0, "b": -50.0}) == []


def test_transactions_are_positive_and_never_to_self():
    result = simplify_debts({"a": 50.0, "b": -30.0, "c": -20.0})

    for txn in result:
        assert txn["amount"] > 0
        assert txn["from_user_id"] != txn["to_user_id"]
        assert set(txn) == {"from_user_id", "to_user_id", "amount"}
