from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth import get_current_principal
from ..db import get_db_session
from ..schemas import (
    ShoppingListGenerateRequest,
    ShoppingListGenerateResponse,
    ShoppingListResponse,
    ShoppingListSchema,
    ShoppingListStatusUpdateRequest,
)
from ..services.shopping_list import (
    generate_shopping_list,
    get_shopping_list,
    update_shopping_list_status,
)


router = APIRouter(prefix="/shopping-lists", tags=["shopping-lists"])

logger = logging.getLogger(__name__)


@router.post("/generate", response_model=ShoppingListGenerateResponse)
async def create_shopping_list(
    payload: ShoppingListGenerateRequest,
    principal=Depends(get_current_principal),
    session: AsyncSession = Depends(get_db_session),
) -> ShoppingListGenerateResponse:
    logger.info(
        "Shopping list generation requested user=%s meal_plan=%s household=%s",
        principal.get("sub"),
        payload.meal_plan_id,
        payload.household_id,
    )
    result = await generate_shopping_list(
        session,
        meal_plan_id=payload.meal_plan_id,
        household_id=payload.household_id,
        user_id=principal["sub"],
    )
    return ShoppingListGenerateResponse(
        shopping_list=ShoppingListSchema.model_validate(result.shopping_list),
        items_count=result.items_count,
        categories=result.categories,
        message=result.message,
    )


@router.get("/{meal_plan_id}", response_model=ShoppingListResponse)
async def read_shopping_list(
    meal_plan_id: str,
    principal=Depends(get_current_principal),
    session: AsyncSession = Depends(get_db_session),
) -> ShoppingListResponse:
    shopping_list = await get_shopping_list(session, meal_plan_id, user_id=principal["sub"])
    return ShoppingListResponse(shopping_list=ShoppingListSchema.model_validate(shopping_list))


@router.patch("/{shopping_list_id}/status", response_model=ShoppingListResponse)
async def change_shopping_list_status(
    shopping_list_id: str,
    payload: ShoppingListStatusUpdateRequest,
    principal=Depends(get_current_principal),
    session: AsyncSession = Depends(get_db_session),
) -> ShoppingListResponse:
    shopping_list = await update_shopping_list_status(
        session, shopping_list_id, payload.status, user_id=principal["sub"]
    )
    logger.info(
        "Shopping list status updated user=%s list=%s status=%s",
        principal.get("sub"),
        shopping_list_id,
        payload.status,
    )
    return ShoppingListResponse(shopping_list=ShoppingListSchema.model_validate(shopping_list))
