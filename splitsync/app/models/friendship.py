"""
models/friendship.py — Friendship table definition.

Backs the `users/{uid}/friends` collection. A friendship is one-directional:
the row belongs to `owner_id` and points at `friend_id`. Adding a friend never
creates the reciprocal row.

`name` and `email` are snapshots taken when the friend was added; later
profile edits do not flow back here.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from splitsync.app.extensions import db


class Friendship(db.Model):
    __tablename__ = "friendships"

    __table_args__ = (
        # Also enforced by friend_service (SELF_FRIEND, 422).
        CheckConstraint(
            "owner_id <> friend_id",
            name="ck_friendships_not_self",
        ),
    )

    owner_id: Mapped[str] = mapped_column(String(128), primary_key=True)

    friend_id: Mapped[str] = mapped_column(String(128), primary_key=True)

    email: Mapped[str | None] = mapped_column(String(255), nullable=True)

    name: Mapped[str | None] = mapped_column(String(100), nullable=True)

    added_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Friendship owner={self.owner_id!r} friend={self.friend_id!r}>"
