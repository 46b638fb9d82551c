"""
services/activity_service.py — Recent activity feed.

Merges every expense of every loaded group with every loaded settlement into
one newest-first list of plain dicts.

Layer rules:
  - Pure function of a LedgerSnapshot. No Flask, no store.
  - Display names are NOT resolved here; routes pass user ids through the
    identity resolver.
"""

from __future__ import annotations

from splitsync.app.services.read_model import LedgerSnapshot, sort_key_newest_first

RECENT_ACTIVITY_LIMIT = 20


def get_recent_activity(snapshot: LedgerSnapshot, limit: int = RECENT_ACTIVITY_LIMIT) -> list[dict]:
    """
    Returns at most `limit` activity entries ordered by date, newest first.

    Two entry shapes:
      expense: id, type="expense", group_id, group_name, description,
               amount, paid_by, date
      settle:  id, type="settle", group_id, group_name, from_user_id,
               to_user_id, amount, date

    A settlement whose group is no longer loaded gets group_name "Unknown".
    Entries without a date sort after every dated entry. The sort is stable,
    so equal dates keep their collection order and the result is
    deterministic for identical input.
    """
    activities: list[dict] = []

    for group in snapshot.groups:
        for expense in group.expenses:
            activities.append({
                "id":          expense.id,
                "type":        "expense",
                "group_id":    group.id,
                "group_name":  group.name,
                "description": expense.description,
                "amount":      expense.amount,
                "paid_by":     expense.paid_by,
                "date":        expense.date,
            })

    for settlement in snapshot.settlements:
        group = snapshot.find_group(settlement.group_id)
        activities.append({
            "id":           settlement.id,
            "type":         "settle",
            "group_id":     settlement.group_id,
            "group_name":   group.name if group is not None and group.name else "Unknown",
            "from_user_id": settlement.from_user_id,
            "to_user_id":   settlement.to_user_id,
            "amount":       settlement.amount,
            "date":         settlement.date,
        })

    activities.sort(key=lambda a: sort_key_newest_first(a["date"]))
    return activities[:limit]
