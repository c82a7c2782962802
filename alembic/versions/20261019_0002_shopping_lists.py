"""Shopping lists, one per meal plan.

Revision ID: 8f3c4a61d2e7
Revises: 5b1e0c7d2a90
Create Date: 2026-10-19 09:30:00
"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "8f3c4a61d2e7"
down_revision = "5b1e0c7d2a90"
branch_labels = None
depends_on = None


def upgrade() -> None:
    json_type = sa.JSON().with_variant(postgresql.JSONB, "postgresql")
    op.create_table(
        "shopping_lists",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column(
            "meal_plan_id",
            sa.String(length=36),
            sa.ForeignKey("meal_plans.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("household_id", sa.String(length=36), nullable=False),
        sa.Column("items", json_type, nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="draft"),
        sa.Column("total_estimated_cost", sa.Float(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.UniqueConstraint("meal_plan_id", name="uq_shopping_lists_meal_plan_id"),
    )
    op.create_index("ix_shopping_lists_household_id", "shopping_lists", ["household_id"])


def downgrade() -> None:
    op.drop_index("ix_shopping_lists_household_id", table_name="shopping_lists")
    op.drop_table("shopping_lists")
