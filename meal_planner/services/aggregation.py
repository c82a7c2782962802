"""Shopping list aggregation: scale, consolidate, classify, cost and sort.

Everything in here is pure; the shopping list service feeds it validated
``PlannedMeal`` and ``GroupDemographics`` records and persists the result.
Quantities are summed in the unit of the first occurrence; no unit
conversion happens, so "2 cup" and "480 ml" of the same ingredient end up
added together under "cup".
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Sequence

from ..errors import InvalidIngredientError
from ..schemas import (
    DEFAULT_INGREDIENT_CATEGORY,
    GroupDemographics,
    PlannedMeal,
    ShoppingListItem,
)

logger = logging.getLogger(__name__)

BASELINE_SERVING = 4
TODDLER_WEIGHT = 0.5
STAPLE_KEYWORDS = ("salt", "pepper", "oil", "butter", "flour", "sugar")
CATEGORY_ORDER = ("produce", "meat", "dairy", "pantry", "frozen", "other")
CATEGORY_PRICES: Dict[str, float] = {
    "produce": 2.50,
    "meat": 8.00,
    "dairy": 3.50,
    "pantry": 2.00,
    "frozen": 4.00,
    "other": 3.00,
}
DEFAULT_PRICE = 3.00


def count_servings(groups: Iterable[GroupDemographics]) -> float:
    """Weighted head count; toddlers eat half a portion."""
    total = 0.0
    for group in groups:
        total += (
            group.adult_count
            + group.teen_count
            + group.child_count
            + group.toddler_count * TODDLER_WEIGHT
        )
    return total


def calculate_group_multiplier(
    assigned_group_ids: Sequence[str] | None,
    groups: Sequence[GroupDemographics],
) -> float:
    """Scale factor for a meal relative to a four person baseline, floored at 1."""
    if not assigned_group_ids:
        return 1.0
    by_id = {group.id: group for group in groups}
    matched = [by_id[group_id] for group_id in assigned_group_ids if group_id in by_id]
    total_people = count_servings(matched)
    return max(total_people / BASELINE_SERVING, 1.0)


def is_staple(name: str) -> bool:
    lowered = name.lower()
    return any(keyword in lowered for keyword in STAPLE_KEYWORDS)


def consolidate_ingredients(
    entries: Sequence[PlannedMeal],
    groups: Sequence[GroupDemographics],
) -> List[ShoppingListItem]:
    """Merge every entry's ingredients into one item per lower-cased name.

    Items come back in first-seen order; callers sort them afterwards.
    """
    items: Dict[str, ShoppingListItem] = {}
    for entry in entries:
        if not entry.ingredients:
            continue
        group_multiplier = calculate_group_multiplier(entry.assigned_groups, groups)
        effective_multiplier = entry.serving_multiplier * group_multiplier
        for ingredient in entry.ingredients:
            if ingredient.quantity < 0:
                raise InvalidIngredientError(
                    f"Ingredient '{ingredient.name}' in meal '{entry.title}' has a negative quantity"
                )
            key = ingredient.name.lower()
            scaled_quantity = ingredient.quantity * effective_multiplier
            existing = items.get(key)
            if existing is not None:
                existing.quantity += scaled_quantity
                existing.meal_sources.append(entry.title)
                continue
            items[key] = ShoppingListItem(
                ingredient_id=f"{entry.meal_id}_{ingredient.name}",
                name=ingredient.name,
                quantity=scaled_quantity,
                unit=ingredient.unit,
                category=ingredient.category or DEFAULT_INGREDIENT_CATEGORY,
                is_staple=is_staple(ingredient.name),
                meal_sources=[entry.title],
            )
    return list(items.values())


def _category_rank(category: str) -> int:
    try:
        return CATEGORY_ORDER.index(category)
    except ValueError:
        return len(CATEGORY_ORDER)


def sort_shopping_items(items: Iterable[ShoppingListItem]) -> List[ShoppingListItem]:
    """Order by store section, then name.

    Categories outside ``CATEGORY_ORDER`` go after every known section.
    Names compare case-insensitively with the raw name as the final tie-break.
    """
    return sorted(
        items,
        key=lambda item: (_category_rank(item.category), item.name.lower(), item.name),
    )


def estimate_item_cost(item: ShoppingListItem) -> float:
    base_price = CATEGORY_PRICES.get(item.category, DEFAULT_PRICE)
    return base_price * (item.quantity / 2)


def estimate_total_cost(items: Iterable[ShoppingListItem]) -> float:
    return sum((estimate_item_cost(item) for item in items), 0.0)


def category_breakdown(items: Iterable[ShoppingListItem]) -> Dict[str, int]:
    breakdown: Dict[str, int] = {}
    for item in items:
        breakdown[item.category] = breakdown.get(item.category, 0) + 1
    return breakdown


def build_shopping_items(
    entries: Sequence[PlannedMeal],
    groups: Sequence[GroupDemographics],
) -> List[ShoppingListItem]:
    items = consolidate_ingredients(entries, groups)
    for item in items:
        item.estimated_cost = estimate_item_cost(item)
    ordered = sort_shopping_items(items)
    logger.debug(
        "Aggregated %s ingredients from %s meal plan entries", len(ordered), len(entries)
    )
    return ordered
