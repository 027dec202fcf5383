"""Fill gaps in a child's completion history with SKIPPED records.

A child who never opens the app on a day leaves no record at all.  The
backfill walks each assignment forward from its most recent record (or
the day it was assigned) up to yesterday and inserts a SKIPPED record for
every day the task was due but nothing was logged, so history reads the
same whether or not the child checked in.
"""

import logging
from datetime import datetime, timedelta

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from seedling.crud import list_assignments, get_last_completion, insert_completion_if_missing
from seedling.dates import day_key, day_start, local_date, utcnow
from seedling.errors import surfaces_storage_errors
from seedling.models import STATUS_SKIPPED
from seedling.schedule import is_active_on_day

logger = logging.getLogger(__name__)

ONE_DAY = timedelta(days=1)


@surfaces_storage_errors
async def backfill_missed_completions(
    db: AsyncSession,
    child_id: int,
    timezone: str = "UTC",
    *,
    now: datetime | None = None,
) -> int:
    """Insert SKIPPED records for due days with no record; returns how many.

    Idempotent: existing records of any status are left alone and a second
    run finds nothing to add.  Each assignment is committed separately, so
    an interrupted run leaves a partial but consistent backfill that the
    next call completes.
    """
    now = now or utcnow()
    today = local_date(timezone, now)
    assignments = await list_assignments(db, child_id)
    plans = [
        (a.task_id, a.task.days_of_week if a.task else None, a.assigned_at)
        for a in assignments
    ]

    inserted = 0
    for task_id, schedule, assigned_at in plans:
        last = await get_last_completion(db, child_id, task_id)
        anchor = last.date if last is not None else assigned_at
        cursor = local_date(timezone, anchor) + ONE_DAY
        added = 0
        try:
            while cursor < today:
                if is_active_on_day(schedule, day_key(cursor)):
                    created = await insert_completion_if_missing(
                        db,
                        task_id,
                        child_id,
                        day_start(timezone, cursor),
                        status=STATUS_SKIPPED,
                        seeds_earned=0,
                    )
                    if created:
                        added += 1
                cursor += ONE_DAY
            if not added:
                continue
            await db.commit()
        except IntegrityError:
            # A concurrent backfill wrote some of these days first.
            await db.rollback()
            logger.warning(
                "Backfill for child %s task %s collided with another writer",
                child_id,
                task_id,
            )
            continue
        inserted += added

    if inserted:
        logger.info("Backfilled %s skipped record(s) for child %s", inserted, child_id)
    return inserted
