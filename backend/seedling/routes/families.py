"""Endpoints for viewing and updating a family's streak reward table."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from seedling.database import get_session
from seedling.schemas import StreakConfigRead, StreakConfigUpdate
from seedling.crud import get_family, save_family

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/families", tags=["families"])


@router.get("/{family_id}/streaks", response_model=StreakConfigRead)
async def read_streak_config(family_id: int, db: AsyncSession = Depends(get_session)):
    family = await get_family(db, family_id)
    if not family:
        raise HTTPException(status_code=404, detail="Family not found")
    return StreakConfigRead.model_validate(family)


@router.patch("/{family_id}/streaks", response_model=StreakConfigRead)
async def update_streak_config(
    family_id: int,
    data: StreakConfigUpdate,
    db: AsyncSession = Depends(get_session),
):
    """Update reward amounts; negative values are stored as 0 (disabled)."""
    family = await get_family(db, family_id)
    if not family:
        raise HTTPException(status_code=404, detail="Family not found")
    updates = data.model_dump(exclude_unset=True, exclude_none=True)
    if not updates:
        raise HTTPException(status_code=400, detail="No updates provided")
    for field, value in updates.items():
        setattr(family, field, max(0, value))
    updated = await save_family(db, family)
    logger.info("Streak rewards updated for family %s: %s", family_id, updates)
    return StreakConfigRead.model_validate(updated)
