import logging
from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from seedling.database import get_session
from seedling.schemas import (
    TodayTaskRead,
    CompletionUpdate,
    CompletionRead,
    CompletionResult,
    HistoryEntry,
    ProgressRead,
)
from seedling.crud import (
    get_task,
    get_assignment,
    list_due_tasks,
    list_completions,
    list_completion_history,
)
from seedling.backfill import backfill_missed_completions
from seedling.progress import set_completion_status
from seedling.dates import day_bounds, weekday_key
from seedling.models import STATUS_PENDING
from seedling.schedule import parse_days
from seedling.routes.deps import get_child_context, get_now

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tasks", tags=["tasks"])


@router.get("/child/{child_id}/today", response_model=List[TodayTaskRead])
async def list_today(
    child_id: int,
    db: AsyncSession = Depends(get_session),
    now: datetime = Depends(get_now),
):
    """Tasks due today for a child with the status logged so far."""
    child, tz_name = await get_child_context(db, child_id)
    await backfill_missed_completions(db, child.id, tz_name, now=now)
    due = await list_due_tasks(db, child.id, child.family_id, weekday_key(tz_name, now))
    logged = await list_completions(db, child.id, date_range=day_bounds(tz_name, now))
    status_by_task = {entry.task_id: entry.status for entry in logged}
    return [
        TodayTaskRead(
            id=task.id,
            title=task.title,
            points=task.points,
            status=status_by_task.get(task.id, STATUS_PENDING),
            days_of_week=parse_days(task.days_of_week),
        )
        for task in due
    ]


@router.post("/{task_id}/complete", response_model=CompletionResult)
async def complete_task(
    task_id: int,
    data: CompletionUpdate,
    db: AsyncSession = Depends(get_session),
    now: datetime = Depends(get_now),
):
    task = await get_task(db, task_id)
    if not task:
        raise HTTPException(status_code=404, detail="Task not found")
    child, tz_name = await get_child_context(db, data.child_id)
    if child.family_id != task.family_id:
        raise HTTPException(status_code=404, detail="Task not found")
    if not await get_assignment(db, task.id, child.id):
        raise HTTPException(status_code=404, detail="Child not assigned to this task")

    completion, snapshot = await set_completion_status(
        db, task, child.id, data.status, tz_name, now=now
    )
    return CompletionResult(
        completion=CompletionRead.model_validate(completion),
        progress=ProgressRead.model_validate(snapshot),
    )


@router.get("/child/{child_id}/history", response_model=List[HistoryEntry])
async def completion_history(
    child_id: int,
    limit: int = Query(default=50, ge=1, le=200),
    db: AsyncSession = Depends(get_session),
    now: datetime = Depends(get_now),
):
    child, tz_name = await get_child_context(db, child_id)
    await backfill_missed_completions(db, child.id, tz_name, now=now)
    entries = await list_completion_history(db, child.id, limit=limit)
    return [
        HistoryEntry(
            id=entry.id,
            task_id=entry.task_id,
            task_title=entry.task.title,
            status=entry.status,
            seeds_earned=entry.seeds_earned,
            date=entry.date,
        )
        for entry in entries
    ]
