from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth import get_current_principal
from ..config import get_settings
from ..db import get_db_session
from ..ratelimit import limiter
from ..schemas import MealGenerationRequest, MealGenerationResponse, MealSchema
from ..services.meal_generation import generate_meals

router = APIRouter(prefix="/meals", tags=["meals"])


@router.post("/generate", response_model=MealGenerationResponse)
@limiter.limit(lambda: get_settings().meal_generation_rate_limit)
async def create_generated_meals(
    request: Request,
    payload: MealGenerationRequest,
    principal=Depends(get_current_principal),
    session: AsyncSession = Depends(get_db_session),
) -> MealGenerationResponse:
    meals = await generate_meals(session, payload, user_id=principal["sub"])
    return MealGenerationResponse(
        meals=[MealSchema.model_validate(meal) for meal in meals],
        generated_count=len(meals),
    )
