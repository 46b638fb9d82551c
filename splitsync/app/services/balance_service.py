"""
services/balance_service.py — Balance computation and debt simplification.

This file is the SINGLE SOURCE OF TRUTH for how balances are computed.
Any change to how balances work must be made here; all other behaviour
follows from it.

Layer rules:
  - No Flask imports and no store access. Every function is a pure function
    of a LedgerSnapshot and plain ids.
  - Returns plain Python dicts, lists and floats.

Numeric semantics:
  - Amounts are floats. A share is amount / |split_between| and is never
    rounded; rounding to currency precision is a presentation concern.
  - Application order of expenses and settlements does not matter: every
    step is a linear accumulation.

Settlement sign convention:
  A settlement is a payment from `from_user_id` to `to_user_id`. The payer
  gains credit exactly as if they had paid an expense of that amount on the
  payee's behalf. Example: A pays 90 split [A, B, C] → {A: +60, B: -30,
  C: -30}; B then pays A 30 → {A: +30, B: 0, C: -30} and the pairwise
  balance between A and B goes from +30 to 0.

Conservation:
  sum(calculate_balances(...).values()) == 0 within float tolerance, before
  and after settlements, whenever every expense has a non-empty split set.
"""

from __future__ import annotations

import logging
from collections import defaultdict

from splitsync.app.services.read_model import ExpenseRecord, LedgerSnapshot

logger = logging.getLogger(__name__)

# Amounts closer to zero than this are treated as settled.
BALANCE_EPSILON = 1e-9


# ── Helpers ────────────────────────────────────────────────────────────────

def _share(expense: ExpenseRecord) -> float | None:
    """
    Returns one participant's share of an expense, or None when the split set
    is empty. An empty split set is a data-integrity defect (creation rejects
    it), so the expense is skipped instead of dividing by zero.
    """
    if not expense.split_between:
        logger.warning(
            "Skipping expense %s in group %s: empty split set",
            expense.id,
            expense.group_id,
        )
        return None
    return expense.amount / len(expense.split_between)


# ── Core algorithms ────────────────────────────────────────────────────────

def calculate_balances(snapshot: LedgerSnapshot, group_id: str) -> dict[str, float]:
    """
    Canonical balance computation for a group.

    Returns {user_id: net_balance} with an entry for every member, even if
    that balance is exactly zero. Positive means the group owes the user;
    negative means the user owes the group. Unknown groups yield {}.

    Algorithm:
      1. Start every member at 0.
      2. Credit each payer for the full expense amount they fronted.
      3. Debit each participant their share (the payer too, when in the
         split set, which nets the payer down to what others owe them).
      4. Net the group's settlements: payer gains credit, payee loses it.
    """
    group = snapshot.find_group(group_id)
    if group is None:
        return {}

    balances: dict[str, float] = defaultdict(float)
    for member_id in group.members:
        balances[member_id] = 0.0

    for expense in group.expenses:
        share = _share(expense)
        if share is None:
            continue
        balances[expense.paid_by] += expense.amount
        for participant_id in expense.split_between:
            balances[participant_id] -= share

    # Payer gains credit; see "Settlement sign convention" above.
    for settlement in snapshot.settlements_for(group_id):
        balances[settlement.from_user_id] += settlement.amount
        balances[settlement.to_user_id] -= settlement.amount

    return dict(balances)


def calculate_pairwise_balance(
        snapshot: LedgerSnapshot,
        group_id: str,
        user_a: str,
        user_b: str,
) -> float:
    """
    Net balance restricted to transactions between exactly two users.

    Positive: user_b owes user_a. Negative: user_a owes user_b.

    Only expenses whose split set contains BOTH users create pairwise debt;
    of those, a share is credited to whichever of the two paid. Settlements
    between exactly this pair are then netted: a payment from user_a to
    user_b adds to the result, a payment from user_b to user_a subtracts.

    The result is antisymmetric: pairwise(a, b) == -pairwise(b, a).
    Callers must not pass user_a == user_b.
    """
    group = snapshot.find_group(group_id)
    if group is None:
        return 0.0

    net = 0.0
    for expense in group.expenses:
        if user_a not in expense.split_between or user_b not in expense.split_between:
            continue
        share = _share(expense)
        if share is None:
            continue
        if expense.paid_by == user_a:
            net += share
        elif expense.paid_by == user_b:
            net -= share

    # Same convention as calculate_balances: user_a paying user_b raises the result.
    for settlement in snapshot.settlements_for(group_id):
        if settlement.from_user_id == user_a and settlement.to_user_id == user_b:
            net += settlement.amount
        elif settlement.from_user_id == user_b and settlement.to_user_id == user_a:
            net -= settlement.amount

    return net


def get_total_balance(snapshot: LedgerSnapshot, user_id: str) -> dict[str, float]:
    """
    Sums a user's position across all loaded groups.

    Returns {"total_owed": float, "total_owing": float}. A positive group
    balance adds to total_owed, a negative one adds its magnitude to
    total_owing; zero balances contribute to neither.
    """
    total_owed = 0.0
    total_owing = 0.0

    for group in snapshot.groups:
        balance = calculate_balances(snapshot, group.id).get(user_id, 0.0)
        if balance > 0:
            total_owed += balance
        elif balance < 0:
            total_owing += abs(balance)

    return {"total_owed": total_owed, "total_owing": total_owing}


def simplify_debts(balances: dict[str, float]) -> list[dict]:
    """
    Greedy minimum cash flow debt simplification.

    Repeatedly matches the largest debtor with the largest creditor until
    all balances are within BALANCE_EPSILON of zero. For N members this
    produces at most N-1 transactions.

    Args:
        balances: {user_id: net_balance} from calculate_balances().

    Returns:
        List of {"from_user_id": str, "to_user_id": str, "amount": float}.
        An empty list means everyone is settled.
    """
    creditors = sorted(
        [(uid, amt) for uid, amt in balances.items() if amt > BALANCE_EPSILON],
        key=lambda x: x[1],
        reverse=True,
    )
    debtors = sorted(
        [(uid, -amt) for uid, amt in balances.items() if amt < -BALANCE_EPSILON],
        key=lambda x: x[1],
        reverse=True,
    )

    transactions: list[dict] = []
    i = j = 0

    while i < len(creditors) and j < len(debtors):
        cid, credit = creditors[i]
        did, debt = debtors[j]

        transfer = min(credit, debt)
        transactions.append({
            "from_user_id": did,
            "to_user_id": cid,
            "amount": transfer,
        })

        creditors[i] = (cid, credit - transfer)
        debtors[j] = (did, debt - transfer)

        if creditors[i][1] <= BALANCE_EPSILON:
            i += 1
        if debtors[j][1] <= BALANCE_EPSILON:
            j += 1

    return transactions


def get_member_summary(snapshot: LedgerSnapshot, group_id: str, user_id: str) -> dict:
    """
    The caller's personal view of one group.

    Returns:
        {
          "total_spent": sum of expenses the user paid,
          "owed_by":     [{"user_id", "amount"}] members who owe the user,
          "owes":        [{"user_id", "amount"}] members the user owes
                         (amounts as positive magnitudes),
          "all_settled": True when nothing is owed either way and the user
                         has not paid for anything,
        }
    """
    group = snapshot.find_group(group_id)
    if group is None:
        return {"total_spent": 0.0, "owed_by": [], "owes": [], "all_settled": True}

    total_spent = sum(e.amount for e in group.expenses if e.paid_by == user_id)
    owed_by: list[dict] = []
    owes: list[dict] = []

    for member_id in group.members:
        if member_id == user_id:
            continue
        net = calculate_pairwise_balance(snapshot, group_id, user_id, member_id)
        if net > BALANCE_EPSILON:
            owed_by.append({"user_id": member_id, "amount": net})
        elif net < -BALANCE_EPSILON:
            owes.append({"user_id": member_id, "amount": abs(net)})

    return {
        "total_spent": total_spent,
        "owed_by": owed_by,
        "owes": owes,
        "all_settled": not owed_by and not owes and total_spent == 0,
    }
