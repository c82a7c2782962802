from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..errors import InvalidIngredientError, InvalidRequestError, NotFoundError, StorageError
from ..models import HouseholdGroup, MealPlan, MealPlanEntry, ShoppingList, ShoppingListStatus
from ..schemas import GroupDemographics, PlannedMeal, ShoppingListItem
from .aggregation import build_shopping_items, category_breakdown, estimate_total_cost
from .households import get_owned_household

logger = logging.getLogger(__name__)

ALREADY_EXISTS_MESSAGE = "Shopping list already exists"


@dataclass
class ShoppingListResult:
    shopping_list: ShoppingList
    created: bool
    categories: Dict[str, int]

    @property
    def items_count(self) -> int:
        return len(self.shopping_list.items or [])

    @property
    def message(self) -> Optional[str]:
        return None if self.created else ALREADY_EXISTS_MESSAGE


async def get_meal_plan(session: AsyncSession, meal_plan_id: str) -> MealPlan | None:
    return await session.get(MealPlan, meal_plan_id)


async def get_shopping_list_for_plan(session: AsyncSession, meal_plan_id: str) -> ShoppingList | None:
    result = await session.execute(
        select(ShoppingList).where(ShoppingList.meal_plan_id == meal_plan_id)
    )
    return result.scalar_one_or_none()


async def load_household_groups(session: AsyncSession, household_id: str) -> List[GroupDemographics]:
    result = await session.execute(
        select(HouseholdGroup).where(HouseholdGroup.household_id == household_id)
    )
    return [GroupDemographics.model_validate(group) for group in result.scalars().all()]


async def load_planned_meals(session: AsyncSession, meal_plan_id: str) -> List[PlannedMeal]:
    result = await session.execute(
        select(MealPlanEntry)
        .where(MealPlanEntry.meal_plan_id == meal_plan_id)
        .options(selectinload(MealPlanEntry.meal))
        .order_by(MealPlanEntry.date, MealPlanEntry.id)
    )
    planned: List[PlannedMeal] = []
    for entry in result.scalars().all():
        meal = entry.meal
        if meal is None:
            continue
        try:
            planned.append(
                PlannedMeal(
                    meal_id=meal.id,
                    title=meal.title,
                    ingredients=meal.ingredients or [],
                    serving_multiplier=entry.serving_multiplier,
                    assigned_groups=entry.assigned_groups,
                )
            )
        except ValidationError as exc:
            logger.warning(
                "Rejected stored ingredients meal=%s entry=%s errors=%s",
                meal.id,
                entry.id,
                exc.errors(),
            )
            raise InvalidIngredientError(
                f"Meal '{meal.title}' has invalid ingredient data: {exc.errors()[0].get('msg')}"
            ) from exc
    return planned


def _serialize_items(items: Sequence[ShoppingListItem]) -> List[dict]:
    return [item.model_dump(mode="json") for item in items]


async def generate_shopping_list(
    session: AsyncSession,
    *,
    meal_plan_id: str,
    household_id: str,
    user_id: str,
) -> ShoppingListResult:
    """Build and store the shopping list for a meal plan, once.

    A second call for the same plan returns the stored list untouched. The
    unique constraint on ``shopping_lists.meal_plan_id`` is what guarantees a
    single list; a concurrent insert that loses the race reads back the
    winner's row.
    """
    try:
        await get_owned_household(session, household_id, user_id)
        meal_plan = await get_meal_plan(session, meal_plan_id)
        if meal_plan is None or meal_plan.household_id != household_id:
            raise NotFoundError(f"Meal plan '{meal_plan_id}' not found")

        existing = await get_shopping_list_for_plan(session, meal_plan_id)
        if existing is not None:
            logger.info("Shopping list already exists meal_plan=%s list=%s", meal_plan_id, existing.id)
            return _existing_result(existing)

        groups = await load_household_groups(session, household_id)
        planned_meals = await load_planned_meals(session, meal_plan_id)
    except SQLAlchemyError as exc:
        logger.error("Shopping list lookup failed meal_plan=%s error=%s", meal_plan_id, exc)
        raise StorageError(str(exc)) from exc

    items = build_shopping_items(planned_meals, groups)
    shopping_list = ShoppingList(
        meal_plan_id=meal_plan_id,
        household_id=household_id,
        items=_serialize_items(items),
        status=ShoppingListStatus.GENERATED,
        total_estimated_cost=estimate_total_cost(items),
    )
    session.add(shopping_list)
    try:
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        existing = await get_shopping_list_for_plan(session, meal_plan_id)
        if existing is None:
            # Not the meal plan race; some other constraint failed.
            logger.error("Shopping list insert rejected meal_plan=%s error=%s", meal_plan_id, exc)
            raise StorageError(str(exc)) from exc
        logger.info(
            "Shopping list created concurrently meal_plan=%s list=%s", meal_plan_id, existing.id
        )
        return _existing_result(existing)
    except SQLAlchemyError as exc:
        await session.rollback()
        logger.error("Shopping list insert failed meal_plan=%s error=%s", meal_plan_id, exc)
        raise StorageError(str(exc)) from exc
    await session.refresh(shopping_list)

    logger.info(
        "Generated shopping list meal_plan=%s list=%s items=%s total=%.2f",
        meal_plan_id,
        shopping_list.id,
        len(items),
        shopping_list.total_estimated_cost or 0.0,
    )
    return ShoppingListResult(
        shopping_list=shopping_list,
        created=True,
        categories=category_breakdown(items),
    )


def _existing_result(shopping_list: ShoppingList) -> ShoppingListResult:
    try:
        items = [ShoppingListItem.model_validate(item) for item in shopping_list.items or []]
    except ValidationError as exc:
        logger.error(
            "Stored shopping list has invalid items list=%s errors=%s", shopping_list.id, exc.errors()
        )
        raise StorageError(f"Stored shopping list '{shopping_list.id}' has invalid items") from exc
    return ShoppingListResult(
        shopping_list=shopping_list,
        created=False,
        categories=category_breakdown(items),
    )


async def get_shopping_list(session: AsyncSession, meal_plan_id: str, *, user_id: str) -> ShoppingList:
    try:
        shopping_list = await get_shopping_list_for_plan(session, meal_plan_id)
        if shopping_list is not None:
            await get_owned_household(session, shopping_list.household_id, user_id)
    except NotFoundError as exc:
        raise NotFoundError(f"No shopping list for meal plan '{meal_plan_id}'") from exc
    except SQLAlchemyError as exc:
        raise StorageError(str(exc)) from exc
    if shopping_list is None:
        raise NotFoundError(f"No shopping list for meal plan '{meal_plan_id}'")
    return shopping_list


async def update_shopping_list_status(
    session: AsyncSession,
    shopping_list_id: str,
    status: str,
    *,
    user_id: str,
) -> ShoppingList:
    if status not in ShoppingListStatus.ALL:
        raise InvalidRequestError(f"Unsupported shopping list status '{status}'")
    not_found = NotFoundError(f"Shopping list '{shopping_list_id}' not found")
    try:
        shopping_list = await session.get(ShoppingList, shopping_list_id)
        if shopping_list is None:
            raise not_found
        try:
            await get_owned_household(session, shopping_list.household_id, user_id)
        except NotFoundError as exc:
            raise not_found from exc
        shopping_list.status = status
        await session.commit()
    except SQLAlchemyError as exc:
        await session.rollback()
        raise StorageError(str(exc)) from exc
    await session.refresh(shopping_list)
    return shopping_list
