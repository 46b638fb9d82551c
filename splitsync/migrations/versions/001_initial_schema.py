"""Initial schema — every table backing the ledger store collections.

Revision: 001_initial_schema
Created:  2026-10-17

Append-only:
  This file must NEVER be edited after it has been applied to any database.
  If a schema change is required, create a NEW migration file.

Collection → table:
  users                   → users
  users/<uid>/friends     → friendships
  groups                  → groups + group_members (ordered `members`)
  groups/<gid>/expenses   → expenses
  settlements             → settlements

ON DELETE policies:
  group_members.group_id → CASCADE  (members go away with their group)
  expenses.group_id      → CASCADE  (expenses go away with their group)
  settlements.group_id   → no FK    (settlements outlive their group as history)

User ids come from the external identity provider and are not foreign keys:
a group may list a member before that member has registered a profile.
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

# ── Alembic revision identifiers ──────────────────────────────────────────
revision: str = "001_initial_schema"
down_revision: str | None = None      # first migration, no parent
branch_labels: tuple | None = None
depends_on: tuple | None = None


def upgrade() -> None:

    # ── users ─────────────────────────────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("id", sa.String(128), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("name", sa.String(100), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("email", name="uq_users_email"),
        sa.CheckConstraint("email LIKE '%@%'", name="ck_users_email_format"),
    )

    # ── friendships ───────────────────────────────────────────────────────
    op.create_table(
        "friendships",
        sa.Column("owner_id", sa.String(128), primary_key=True),
        sa.Column("friend_id", sa.String(128), primary_key=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("name", sa.String(100), nullable=True),
        sa.Column("added_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("owner_id <> friend_id", name="ck_friendships_not_self"),
    )

    # ── groups ────────────────────────────────────────────────────────────
    op.create_table(
        "groups",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("created_by", sa.String(128), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("LENGTH(TRIM(name)) > 0", name="ck_groups_name_nonempty"),
    )

    # ── group_members ─────────────────────────────────────────────────────
    op.create_table(
        "group_members",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "group_id",
            sa.String(36),
            sa.ForeignKey("groups.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("user_id", sa.String(128), nullable=False),
        sa.Column("position", sa.Integer, nullable=False, server_default="0"),
        sa.UniqueConstraint("group_id", "user_id", name="uq_group_members_group_user"),
    )
    op.create_index("ix_group_members_group_id", "group_members", ["group_id"])
    # "groups where members array-contains uid" filters on this column.
    op.create_index("ix_group_members_user_id", "group_members", ["user_id"])

    # ── expenses ──────────────────────────────────────────────────────────
    op.create_table(
        "expenses",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "group_id",
            sa.String(36),
            sa.ForeignKey("groups.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("description", sa.String(255), nullable=False),
        sa.Column("amount", sa.Float, nullable=False),
        sa.Column("paid_by", sa.String(128), nullable=False),
        sa.Column("split_between", sa.JSON, nullable=False),
        sa.Column("date", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("amount > 0", name="ck_expenses_amount_positive"),
        sa.CheckConstraint(
            "LENGTH(TRIM(description)) > 0",
            name="ck_expenses_description_nonempty",
        ),
    )
    op.create_index("ix_expenses_group_id", "expenses", ["group_id"])

    # ── settlements ───────────────────────────────────────────────────────
    op.create_table(
        "settlements",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("group_id", sa.String(36), nullable=False),
        sa.Column("from_user_id", sa.String(128), nullable=False),
        sa.Column("to_user_id", sa.String(128), nullable=False),
        sa.Column("amount", sa.Float, nullable=False),
        sa.Column("date", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("amount > 0", name="ck_settlements_amount_positive"),
        sa.CheckConstraint(
            "from_user_id <> to_user_id",
            name="ck_settlements_no_self_settlement",
        ),
    )
    # Settlements are read with "group_id IN (...)" in chunks of ten.
    op.create_index("ix_settlements_group_id", "settlements", ["group_id"])


def downgrade() -> None:
    """Drop everything in reverse dependency order."""
    op.drop_index("ix_settlements_group_id", table_name="settlements")
    op.drop_table("settlements")
    op.drop_index("ix_expenses_group_id", table_name="expenses")
    op.drop_table("expenses")
    op.drop_index("ix_group_members_user_id", table_name="group_members")
    op.drop_index("ix_group_members_group_id", table_name="group_members")
    op.drop_table("group_members")
    op.drop_table("groups")
    op.drop_table("friendships")
    op.drop_table("users")
