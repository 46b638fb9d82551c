"""
models/membership.py — Group membership junction table definition.

One row per (group, member). `position` preserves the order members were
added in. Members are never removed; only new rows are appended.
"""

from __future__ import annotations

from sqlalchemy import ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from splitsync.app.extensions import db


class Membership(db.Model):
    __tablename__ = "group_members"

    __table_args__ = (
        # A user can only belong to a group once.
        UniqueConstraint("group_id", "user_id", name="uq_group_members_group_user"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    # ON DELETE CASCADE: members go away with their group.
    group_id: Mapped[str] = mapped_column(
        ForeignKey("groups.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Used by the "groups containing user" query, hence the index.
    user_id: Mapped[str] = mapped_column(
        String(128),
        nullable=False,
        index=True,
    )

    position: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    # ── Relationships ──────────────────────────────────────────────────────

    group: Mapped["Group"] = relationship(  # noqa: F821
        "Group",
        back_populates="memberships",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<Membership group_id={self.group_id!r} "
            f"user_id={self.user_id!r} "
            f"position={self.position}>"
        )
