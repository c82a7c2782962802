"""Households, groups, meals and meal plans.

Revision ID: 5b1e0c7d2a90
Revises:
Create Date: 2026-10-19 09:00:00
"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "5b1e0c7d2a90"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
    ]


def upgrade() -> None:
    json_type = sa.JSON().with_variant(postgresql.JSONB, "postgresql")
    op.create_table(
        "households",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("created_by", sa.String(length=128), nullable=True),
        *_timestamps(),
    )
    op.create_table(
        "household_groups",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column(
            "household_id",
            sa.String(length=36),
            sa.ForeignKey("households.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("adult_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("teen_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("child_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("toddler_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("dietary_restrictions", json_type, nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_household_groups_household_id", "household_groups", ["household_id"])
    op.create_table(
        "meals",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("category", sa.String(length=32), nullable=False, server_default="whole_house"),
        sa.Column("prep_time_minutes", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("cook_time_minutes", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("serving_size_base", sa.Integer(), nullable=False, server_default="4"),
        sa.Column("ingredients", json_type, nullable=False),
        sa.Column("instructions", json_type, nullable=False),
        sa.Column("dietary_tags", json_type, nullable=False),
        sa.Column("ai_generated", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("source", sa.String(length=32), nullable=True),
        *_timestamps(),
    )
    op.create_table(
        "meal_plans",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column(
            "household_id",
            sa.String(length=36),
            sa.ForeignKey("households.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("week_start_date", sa.Date(), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="draft"),
        sa.Column("created_by", sa.String(length=128), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_meal_plans_household_id", "meal_plans", ["household_id"])
    op.create_table(
        "meal_plan_entries",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column(
            "meal_plan_id",
            sa.String(length=36),
            sa.ForeignKey("meal_plans.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("meal_id", sa.String(length=36), sa.ForeignKey("meals.id"), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("meal_time", sa.String(length=16), nullable=False, server_default="dinner"),
        sa.Column("assigned_groups", json_type, nullable=False),
        sa.Column("assigned_cook", sa.String(length=128), nullable=True),
        sa.Column("serving_multiplier", sa.Float(), nullable=False, server_default="1"),
        sa.Column("notes", sa.Text(), nullable=True),
    )
    op.create_index("ix_meal_plan_entries_meal_plan_id", "meal_plan_entries", ["meal_plan_id"])


def downgrade() -> None:
    op.drop_index("ix_meal_plan_entries_meal_plan_id", table_name="meal_plan_entries")
    op.drop_table("meal_plan_entries")
    op.drop_index("ix_meal_plans_household_id", table_name="meal_plans")
    op.drop_table("meal_plans")
    op.drop_table("meals")
    op.drop_index("ix_household_groups_household_id", table_name="household_groups")
    op.drop_table("household_groups")
    op.drop_table("households")
