"""
models/group.py — Group table definition.

Backs the `groups` collection. No business logic.

Members live in the `group_members` junction table (models/membership.py),
ordered by insertion position so the document's `members` list keeps the
creator first. Deleting a group cascades to its members and expenses;
settlements reference the group id without a foreign key so they survive
as history.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from splitsync.app.extensions import db


class Group(db.Model):
    __tablename__ = "groups"

    __table_args__ = (
        # Also enforced by marshmallow schema.
        CheckConstraint(
            "LENGTH(TRIM(name)) > 0",
            name="ck_groups_name_nonempty",
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)

    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    created_by: Mapped[str] = mapped_column(
        String(128),
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    # ── Relationships ──────────────────────────────────────────────────────

    memberships: Mapped[list["Membership"]] = relationship(  # noqa: F821
        "Membership",
        back_populates="group",
        order_by="Membership.position",
        cascade="all, delete-orphan",
    )

    expenses: Mapped[list["Expense"]] = relationship(  # noqa: F821
        "Expense",
        back_populates="group",
        cascade="all, delete-orphan",
    )

    @property
    def member_ids(self) -> list[str]:
        """Member user ids in insertion order (creator first)."""
        return [m.user_id for m in self.memberships]

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Group id={self.id!r} name={self.name!r}>"
