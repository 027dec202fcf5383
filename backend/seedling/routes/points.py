"""Manual seed gifts and penalties entered by parents."""

import logging
from typing import List

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from seedling.database import get_session
from seedling.models import PointAdjustment
from seedling.schemas import PointAdjustmentCreate, PointAdjustmentRead
from seedling.crud import create_point_adjustment, list_point_adjustments
from seedling.routes.deps import get_child_context

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/points", tags=["points"])


@router.post("/", response_model=PointAdjustmentRead, status_code=status.HTTP_201_CREATED)
async def add_adjustment(
    data: PointAdjustmentCreate,
    db: AsyncSession = Depends(get_session),
):
    child, _ = await get_child_context(db, data.child_id)
    points = data.amount if data.type == "GIFT" else -data.amount
    entry = await create_point_adjustment(
        db,
        PointAdjustment(
            family_id=child.family_id,
            child_id=child.id,
            points=points,
            type=data.type,
            note=(data.note or "").strip() or None,
        ),
    )
    logger.info("Point %s of %s recorded for child %s", data.type, data.amount, child.id)
    return entry


@router.get("/child/{child_id}", response_model=List[PointAdjustmentRead])
async def list_adjustments(
    child_id: int,
    limit: int = Query(default=10, ge=1, le=50),
    db: AsyncSession = Depends(get_session),
):
    child, _ = await get_child_context(db, child_id)
    return await list_point_adjustments(db, child.id, limit=limit)
