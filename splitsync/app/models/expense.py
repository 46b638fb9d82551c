"""
models/expense.py — Expense table definition.

Backs the `groups/{gid}/expenses` collection. No business logic.

Key design points:
  - `amount` is a Float column. Shares are amount / |split set| and are never
    rounded; rounding to currency precision is a presentation concern.
  - `split_between` is stored as a JSON list of user ids. It is never filtered
    on, only read back whole, so a junction table buys nothing.
  - The split set is the only mutable field (expense_service.update_expense).
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, CheckConstraint, DateTime, Float, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from splitsync.app.extensions import db


class Expense(db.Model):
    __tablename__ = "expenses"

    __table_args__ = (
        # Also enforced by marshmallow schema.
        CheckConstraint("amount > 0", name="ck_expenses_amount_positive"),
        CheckConstraint(
            "LENGTH(TRIM(description)) > 0",
            name="ck_expenses_description_nonempty",
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)

    # ON DELETE CASCADE: deleting a group deletes its expenses.
    group_id: Mapped[str] = mapped_column(
        ForeignKey("groups.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    description: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    amount: Mapped[float] = mapped_column(
        Float,
        nullable=False,
    )

    paid_by: Mapped[str] = mapped_column(
        String(128),
        nullable=False,
    )

    split_between: Mapped[list] = mapped_column(
        JSON,
        nullable=False,
        default=list,
    )

    date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    # ── Relationships ──────────────────────────────────────────────────────

    group: Mapped["Group"] = relationship(  # noqa: F821
        "Group",
        back_populates="expenses",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<Expense id={self.id!r} "
            f"group_id={self.group_id!r} "
            f"amount={self.amount}>"
        )
