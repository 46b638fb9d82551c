"""
models/settlement.py — Settlement table definition.

Backs the top-level `settlements` collection. No business logic.

Key design points:
  - `group_id` is indexed but is NOT a foreign key. Settlements are immutable
    history and outlive the group they were recorded in; readers fall back
    to "Unknown" for a group that no longer exists.
  - CHECK(from_user_id <> to_user_id) is the last line of defence behind
    settlement_service (SELF_SETTLEMENT, 422).
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, Float, String
from sqlalchemy.orm import Mapped, mapped_column

from splitsync.app.extensions import db


class Settlement(db.Model):
    __tablename__ = "settlements"

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_settlements_amount_positive"),
        CheckConstraint(
            "from_user_id <> to_user_id",
            name="ck_settlements_no_self_settlement",
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)

    # Queried with "group_id IN (...)" in chunks of LedgerStore.IN_QUERY_LIMIT.
    group_id: Mapped[str] = mapped_column(
        String(36),
        nullable=False,
        index=True,
    )

    from_user_id: Mapped[str] = mapped_column(
        String(128),
        nullable=False,
    )

    to_user_id: Mapped[str] = mapped_column(
        String(128),
        nullable=False,
    )

    amount: Mapped[float] = mapped_column(
        Float,
        nullable=False,
    )

    date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<Settlement id={self.id!r} "
            f"group_id={self.group_id!r} "
            f"from={self.from_user_id!r} "
            f"to={self.to_user_id!r} "
            f"amount={self.amount}>"
        )
