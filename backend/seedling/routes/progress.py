"""Endpoint exposing a child's seed balance and streak."""

from datetime import datetime

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from seedling.database import get_session
from seedling.schemas import ProgressRead
from seedling.progress import child_progress_snapshot
from seedling.routes.deps import get_child_context, get_now

router = APIRouter(prefix="/progress", tags=["progress"])


@router.get("/child/{child_id}", response_model=ProgressRead)
async def read_progress(
    child_id: int,
    db: AsyncSession = Depends(get_session),
    now: datetime = Depends(get_now),
):
    child, tz_name = await get_child_context(db, child_id)
    snapshot = await child_progress_snapshot(db, child.id, tz_name, now=now)
    return ProgressRead.model_validate(snapshot)
