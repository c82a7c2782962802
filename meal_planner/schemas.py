from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

INGREDIENT_CATEGORIES = ("produce", "meat", "dairy", "pantry", "frozen", "other")
DEFAULT_INGREDIENT_CATEGORY = "other"
MEAL_CATEGORIES = ("whole_house", "group_specific", "individual", "breakfast", "backup")

ShoppingListStatusValue = Literal["draft", "generated", "exported"]


def _fold_category(value: Any) -> str:
    if value is None:
        return DEFAULT_INGREDIENT_CATEGORY
    normalized = str(value).strip().lower()
    if normalized not in INGREDIENT_CATEGORIES:
        return DEFAULT_INGREDIENT_CATEGORY
    return normalized


class Ingredient(BaseModel):
    name: str = Field(min_length=1)
    quantity: float = Field(ge=0)
    unit: str = ""
    category: str = DEFAULT_INGREDIENT_CATEGORY

    model_config = ConfigDict(extra="ignore")

    @field_validator("name", mode="before")
    @classmethod
    def _name_not_blank(cls, v):
        # Kept verbatim; "Tomato " and "tomato" are different ingredients.
        if isinstance(v, str) and not v.strip():
            raise ValueError("name must not be blank")
        return v

    @field_validator("unit", mode="before")
    @classmethod
    def _unit_or_blank(cls, v):
        return "" if v is None else str(v)

    @field_validator("category", mode="before")
    @classmethod
    def _category(cls, v):
        return _fold_category(v)


class GroupDemographics(BaseModel):
    id: str
    adult_count: int = Field(default=0, ge=0)
    teen_count: int = Field(default=0, ge=0)
    child_count: int = Field(default=0, ge=0)
    toddler_count: int = Field(default=0, ge=0)
    dietary_restrictions: List[str] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)

    @field_validator("dietary_restrictions", mode="before")
    @classmethod
    def _none_to_empty(cls, v):
        return v or []


class PlannedMeal(BaseModel):
    """One scheduled meal occurrence as the aggregator sees it."""

    meal_id: str
    title: str
    ingredients: List[Ingredient] = Field(default_factory=list)
    serving_multiplier: float = Field(default=1.0, ge=0)
    assigned_groups: List[str] = Field(default_factory=list)

    @field_validator("serving_multiplier", mode="before")
    @classmethod
    def _default_multiplier(cls, v):
        # Zero or missing multipliers fall back to the stored default.
        return v or 1.0

    @field_validator("assigned_groups", mode="before")
    @classmethod
    def _groups_or_empty(cls, v):
        return v or []


class ShoppingListItem(BaseModel):
    ingredient_id: str
    name: str
    quantity: float
    unit: str = ""
    category: str = DEFAULT_INGREDIENT_CATEGORY
    estimated_cost: Optional[float] = None
    is_staple: bool = False
    meal_sources: List[str] = Field(default_factory=list)


class ShoppingListSchema(BaseModel):
    id: str
    meal_plan_id: str
    household_id: str
    items: List[ShoppingListItem] = Field(default_factory=list)
    status: ShoppingListStatusValue
    total_estimated_cost: Optional[float] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ShoppingListGenerateRequest(BaseModel):
    meal_plan_id: str = Field(
        min_length=1,
        validation_alias=AliasChoices("meal_plan_id", "mealPlanId"),
    )
    household_id: str = Field(
        min_length=1,
        validation_alias=AliasChoices("household_id", "householdId"),
    )


class ShoppingListGenerateResponse(BaseModel):
    success: bool = True
    shopping_list: ShoppingListSchema
    items_count: int
    categories: Dict[str, int] = Field(default_factory=dict)
    message: Optional[str] = None


class ShoppingListResponse(BaseModel):
    success: bool = True
    shopping_list: ShoppingListSchema


class ShoppingListStatusUpdateRequest(BaseModel):
    status: ShoppingListStatusValue


class GeneratedMeal(BaseModel):
    title: str = Field(min_length=1)
    description: str = ""
    category: Literal["whole_house", "group_specific", "individual", "breakfast", "backup"] = "whole_house"
    prep_time_minutes: int = Field(default=0, ge=0)
    cook_time_minutes: int = Field(default=0, ge=0)
    serving_size_base: int = Field(default=4, ge=1)
    ingredients: List[Ingredient] = Field(default_factory=list)
    instructions: List[str] = Field(default_factory=list)
    dietary_tags: List[str] = Field(default_factory=list)

    model_config = ConfigDict(extra="ignore")

    @field_validator("category", mode="before")
    @classmethod
    def _normalize_category(cls, v):
        if isinstance(v, str):
            return v.strip().lower().replace("-", "_").replace(" ", "_")
        return v


class MealGenerationRequest(BaseModel):
    household_id: str = Field(
        min_length=1,
        validation_alias=AliasChoices("household_id", "householdId"),
    )
    group_ids: List[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("group_ids", "groupIds"),
    )
    meal_categories: List[str] = Field(
        min_length=1,
        validation_alias=AliasChoices("meal_categories", "mealCategories"),
    )
    preferences: List[str] = Field(default_factory=list)
    exclude_ingredients: List[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("exclude_ingredients", "excludeIngredients"),
    )
    meal_count: Optional[int] = Field(
        default=None,
        ge=1,
        le=20,
        validation_alias=AliasChoices("meal_count", "mealCount"),
    )

    @field_validator("preferences", "exclude_ingredients", mode="before")
    @classmethod
    def _none_to_empty(cls, v):
        return v or []


class MealSchema(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    category: str
    prep_time_minutes: int
    cook_time_minutes: int
    serving_size_base: int
    ingredients: List[Ingredient] = Field(default_factory=list)
    instructions: List[str] = Field(default_factory=list)
    dietary_tags: List[str] = Field(default_factory=list)
    ai_generated: bool = False
    source: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class MealGenerationResponse(BaseModel):
    success: bool = True
    meals: List[MealSchema]
    generated_count: int
