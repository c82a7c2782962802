from __future__ import annotations

import datetime as dt
from datetime import datetime
import uuid
from typing import List, Optional

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


json_type = JSON().with_variant(JSONB, "postgresql")


def _new_id() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    """Base class for all ORM models."""


class TimestampMixin:
    """Common created/updated timestamp columns."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class MealCategory:
    WHOLE_HOUSE = "whole_house"
    GROUP_SPECIFIC = "group_specific"
    INDIVIDUAL = "individual"
    BREAKFAST = "breakfast"
    BACKUP = "backup"


class ShoppingListStatus:
    DRAFT = "draft"
    GENERATED = "generated"
    EXPORTED = "exported"

    ALL = (DRAFT, GENERATED, EXPORTED)


class Household(Base, TimestampMixin):
    __tablename__ = "households"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    created_by: Mapped[Optional[str]] = mapped_column(String(128))

    groups: Mapped[List["HouseholdGroup"]] = relationship(back_populates="household")


class HouseholdGroup(Base, TimestampMixin):
    __tablename__ = "household_groups"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    household_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("households.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    adult_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    teen_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    child_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    toddler_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    dietary_restrictions: Mapped[list] = mapped_column(json_type, nullable=False, default=list)

    household: Mapped[Household] = relationship(back_populates="groups")


class Meal(Base, TimestampMixin):
    __tablename__ = "meals"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    category: Mapped[str] = mapped_column(String(32), nullable=False, default=MealCategory.WHOLE_HOUSE)
    prep_time_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    cook_time_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    serving_size_base: Mapped[int] = mapped_column(Integer, nullable=False, default=4)
    ingredients: Mapped[list] = mapped_column(json_type, nullable=False, default=list)
    instructions: Mapped[list] = mapped_column(json_type, nullable=False, default=list)
    dietary_tags: Mapped[list] = mapped_column(json_type, nullable=False, default=list)
    ai_generated: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    source: Mapped[Optional[str]] = mapped_column(String(32))

    def __repr__(self) -> str:
        return f"Meal(id={self.id}, title={self.title}, category={self.category})"


class MealPlan(Base, TimestampMixin):
    __tablename__ = "meal_plans"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    household_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("households.id", ondelete="CASCADE"), nullable=False, index=True
    )
    week_start_date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="draft")
    created_by: Mapped[Optional[str]] = mapped_column(String(128))

    entries: Mapped[List["MealPlanEntry"]] = relationship(
        back_populates="meal_plan", order_by="MealPlanEntry.date"
    )


class MealPlanEntry(Base):
    __tablename__ = "meal_plan_entries"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    meal_plan_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("meal_plans.id", ondelete="CASCADE"), nullable=False, index=True
    )
    meal_id: Mapped[str] = mapped_column(String(36), ForeignKey("meals.id"), nullable=False)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    meal_time: Mapped[str] = mapped_column(String(16), nullable=False, default="dinner")
    assigned_groups: Mapped[list] = mapped_column(json_type, nullable=False, default=list)
    assigned_cook: Mapped[Optional[str]] = mapped_column(String(128))
    serving_multiplier: Mapped[float] = mapped_column(Float, nullable=False, default=1.0)
    notes: Mapped[Optional[str]] = mapped_column(Text)

    meal_plan: Mapped[MealPlan] = relationship(back_populates="entries")
    meal: Mapped[Meal] = relationship()


class ShoppingList(Base, TimestampMixin):
    __tablename__ = "shopping_lists"
    __table_args__ = (UniqueConstraint("meal_plan_id", name="uq_shopping_lists_meal_plan_id"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    meal_plan_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("meal_plans.id", ondelete="CASCADE"), nullable=False
    )
    household_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    items: Mapped[list] = mapped_column(json_type, nullable=False, default=list)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default=ShoppingListStatus.DRAFT)
    total_estimated_cost: Mapped[Optional[float]] = mapped_column(Float)

    def __repr__(self) -> str:
        return (
            f"ShoppingList(id={self.id}, meal_plan_id={self.meal_plan_id}, "
            f"status={self.status}, items={len(self.items or [])})"
        )
