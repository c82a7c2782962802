from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from ..errors import NotFoundError
from ..models import Household

logger = logging.getLogger(__name__)


async def get_owned_household(session: AsyncSession, household_id: str, user_id: str) -> Household:
    """Return the household if ``user_id`` created it.

    Someone else's household is reported exactly like a missing one.
    """
    household = await session.get(Household, household_id)
    if household is None or household.created_by != user_id:
        if household is not None:
            logger.warning("Household access denied household=%s user=%s", household_id, user_id)
        raise NotFoundError(f"Household '{household_id}' not found")
    return household
