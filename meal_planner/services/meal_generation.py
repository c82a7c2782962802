from __future__ import annotations

import asyncio
import json
import logging
import math
import re
from typing import Any, Callable, List, Optional, Sequence

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import get_settings
from ..errors import GenerationTimeoutError, MalformedResponseError, StorageError
from ..models import HouseholdGroup, Meal
from ..schemas import GeneratedMeal, GroupDemographics, MealGenerationRequest
from .aggregation import count_servings
from .households import get_owned_household
from .openai_responses import call_openai_responses

logger = logging.getLogger(__name__)

GENERATED_MEAL_SOURCE = "openai"
CODE_FENCE_PATTERN = re.compile(r"```(?:json)?(.*?)```", re.IGNORECASE | re.DOTALL)

SYSTEM_PROMPT = (
    "You are a helpful family meal planning assistant. Always return valid JSON arrays "
    "of meal objects that respect dietary restrictions."
)

MEAL_SCHEMA_LINES = (
    "- title: string (meal name)",
    "- description: string (brief description)",
    "- category: string (one of: whole_house, group_specific, breakfast, backup)",
    "- prep_time_minutes: number (preparation time)",
    "- cook_time_minutes: number (cooking time)",
    "- serving_size_base: number (base serving size, typically 4-6)",
    "- ingredients: array of objects with name, quantity, unit, category (produce/meat/dairy/pantry/frozen/other)",
    "- instructions: array of strings (step-by-step instructions)",
    "- dietary_tags: array of strings (tags like vegetarian, gluten-free, etc.)",
)

CompletionFn = Callable[..., str]


def collect_dietary_restrictions(groups: Sequence[GroupDemographics]) -> List[str]:
    restrictions: List[str] = []
    for group in groups:
        restrictions.extend(group.dietary_restrictions)
    return restrictions


def build_meal_prompt(
    *,
    meal_count: int,
    total_servings: float,
    meal_categories: Sequence[str],
    dietary_restrictions: Sequence[str],
    exclude_ingredients: Sequence[str] = (),
    preferences: Sequence[str] = (),
) -> str:
    lines = [
        f"Generate {meal_count} family meal ideas with the following requirements:",
        "",
        "HOUSEHOLD REQUIREMENTS:",
        f"- Total servings needed: {math.ceil(total_servings)}",
        f"- Meal categories: {', '.join(meal_categories)}",
        f"- Dietary restrictions: {', '.join(dietary_restrictions) or 'none'}",
    ]
    if exclude_ingredients:
        lines.append(f"- Exclude ingredients: {', '.join(exclude_ingredients)}")
    if preferences:
        lines.append(f"- Preferences: {', '.join(preferences)}")
    lines.extend(["", "Please return a JSON array of meal objects, each with:"])
    lines.extend(MEAL_SCHEMA_LINES)
    lines.extend(["", "Ensure all meals respect the dietary restrictions listed above."])
    return "\n".join(lines)


def parse_generated_meals(text: str) -> List[GeneratedMeal]:
    """Parse model output into validated meals.

    Accepts a bare JSON array or an object with a ``meals`` array, optionally
    wrapped in a markdown code fence. Anything else is a malformed response.
    """
    stripped = (text or "").strip()
    match = CODE_FENCE_PATTERN.search(stripped)
    if match:
        stripped = match.group(1).strip()
    try:
        payload: Any = json.loads(stripped)
    except json.JSONDecodeError as exc:
        logger.error("Failed to parse meal generation output as JSON: %s", exc)
        raise MalformedResponseError() from exc
    if isinstance(payload, dict):
        payload = payload.get("meals")
    if not isinstance(payload, list):
        logger.error("Meal generation output is not a list of meals: %s", type(payload).__name__)
        raise MalformedResponseError()
    try:
        return [GeneratedMeal.model_validate(item) for item in payload]
    except ValidationError as exc:
        logger.error("Meal generation output failed validation: %s", exc.errors())
        raise MalformedResponseError() from exc


async def _load_groups(
    session: AsyncSession, household_id: str, group_ids: Sequence[str]
) -> List[GroupDemographics]:
    if not group_ids:
        return []
    result = await session.execute(
        select(HouseholdGroup).where(
            HouseholdGroup.household_id == household_id,
            HouseholdGroup.id.in_(list(group_ids)),
        )
    )
    groups = [GroupDemographics.model_validate(group) for group in result.scalars().all()]
    if len(groups) != len(set(group_ids)):
        logger.info(
            "Some requested groups were not found household=%s requested=%s found=%s",
            household_id,
            len(set(group_ids)),
            len(groups),
        )
    return groups


async def generate_meals(
    session: AsyncSession,
    request: MealGenerationRequest,
    *,
    user_id: str,
    complete: Optional[CompletionFn] = None,
) -> List[Meal]:
    """Generate meals for a household with the configured model and persist them.

    Nothing is stored when the model output cannot be parsed.
    """
    settings = get_settings()
    complete = complete or call_openai_responses
    try:
        await get_owned_household(session, request.household_id, user_id)
        groups = await _load_groups(session, request.household_id, request.group_ids)
    except SQLAlchemyError as exc:
        raise StorageError(str(exc)) from exc

    meal_count = request.meal_count or settings.meal_generation_default_count
    user_prompt = build_meal_prompt(
        meal_count=meal_count,
        total_servings=count_servings(groups),
        meal_categories=request.meal_categories,
        dietary_restrictions=collect_dietary_restrictions(groups),
        exclude_ingredients=request.exclude_ingredients,
        preferences=request.preferences,
    )

    timeout = settings.openai_request_timeout_seconds
    try:
        text = await asyncio.wait_for(
            asyncio.to_thread(
                complete,
                model=settings.openai_meal_model,
                system_prompt=SYSTEM_PROMPT,
                user_prompt=user_prompt,
                max_output_tokens=settings.openai_meal_max_output_tokens,
                temperature=settings.openai_meal_temperature,
                timeout=timeout,
            ),
            timeout=timeout,
        )
    except asyncio.TimeoutError as exc:
        logger.error("Meal generation timed out household=%s after %ss", request.household_id, timeout)
        raise GenerationTimeoutError() from exc

    generated = parse_generated_meals(text)
    meals = [
        Meal(
            **meal.model_dump(mode="json"),
            ai_generated=True,
            source=GENERATED_MEAL_SOURCE,
        )
        for meal in generated
    ]
    session.add_all(meals)
    try:
        await session.commit()
    except SQLAlchemyError as exc:
        await session.rollback()
        logger.error("Saving generated meals failed household=%s error=%s", request.household_id, exc)
        raise StorageError(str(exc)) from exc
    for meal in meals:
        await session.refresh(meal)

    logger.info(
        "Generated meals household=%s groups=%s count=%s",
        request.household_id,
        len(groups),
        len(meals),
    )
    return meals
