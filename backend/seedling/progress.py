"""Streak, seed balance and streak reward computation.

Nothing computed here is stored: balances and streaks are folded from the
ledger tables on every call, so correcting a ledger row is enough to fix
every number derived from it.  Reward issuance is a read-then-write
against the reward log; the unique constraint on
``(child_id, period, streak_start)`` turns a concurrent duplicate into a
``ConcurrentRewardDuplicate`` that is logged and skipped.
"""

import logging
import os
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from seedling.backfill import backfill_missed_completions
from seedling.crud import (
    list_completions,
    list_due_tasks,
    sum_seed_sources,
    get_family_reward_config,
    find_latest_streak_reward,
    list_streak_rewards,
    insert_streak_reward,
    delete_streak_rewards,
    upsert_completion,
)
from seedling.dates import day_bounds, day_start, local_date, start_of_day, utcnow, weekday_key
from seedling.errors import ConcurrentRewardDuplicate, surfaces_storage_errors
from seedling.models import (
    Task,
    TaskCompletion,
    StreakRewardLog,
    STATUS_COMPLETED,
    PERIOD_DAILY,
    PERIOD_WEEKLY,
    PERIOD_MONTHLY,
    PERIOD_YEARLY,
)

logger = logging.getLogger(__name__)

# Completed records are read newest first in pages of this size.
STREAK_PAGE_SIZE = int(os.getenv("STREAK_PAGE_SIZE", "60"))

# Evaluated in this order; each period is independent of the others.
STREAK_THRESHOLDS = (
    (PERIOD_WEEKLY, 7),
    (PERIOD_MONTHLY, 31),
    (PERIOD_YEARLY, 365),
)

ONE_DAY = timedelta(days=1)


@dataclass(frozen=True)
class StreakInfo:
    count: int = 0
    start_date: datetime | None = None


@dataclass(frozen=True)
class ProgressSnapshot:
    seed_balance: int
    streak: int
    streak_start: datetime | None
    completed_today: int
    total_logged_today: int


@surfaces_storage_errors
async def calculate_seed_balance(db: AsyncSession, child_id: int) -> int:
    """Return a child's spendable seeds.

    Earned seeds (tasks, missions, streak bonuses, manual adjustments) minus
    seeds spent on rewards and approved or terminated privileges.  The
    result may be negative; spending call sites check it before allowing a
    spend.
    """
    sources = await sum_seed_sources(db, child_id)
    return sources.balance


@surfaces_storage_errors
async def calculate_child_streak(
    db: AsyncSession,
    child_id: int,
    timezone: str,
    *,
    now: datetime | None = None,
    page_size: int = STREAK_PAGE_SIZE,
) -> StreakInfo:
    """Count consecutive local days with at least one completed task.

    The walk starts at today and accepts either the expected day or the
    day before it, so a streak stays alive while today's tasks are still
    open.  Days after the expected day are ignored; anything older ends
    the streak.
    """
    now = now or utcnow()
    expected = local_date(timezone, now)
    count = 0
    start = None
    previous = None
    offset = 0

    while True:
        page = await list_completions(
            db,
            child_id,
            status=STATUS_COMPLETED,
            limit=page_size,
            offset=offset,
        )
        stopped = False
        for completion in page:
            day = local_date(timezone, completion.date)
            if day == previous:
                continue
            previous = day
            if day == expected or day == expected - ONE_DAY:
                count += 1
                start = day
                expected = day - ONE_DAY
            elif day > expected:
                continue
            else:
                stopped = True
                break
        if stopped or len(page) < page_size:
            break
        offset += page_size

    if count == 0:
        return StreakInfo()
    if start is None:
        return StreakInfo(count=count, start_date=start_of_day(timezone, now))
    return StreakInfo(count=count, start_date=day_start(timezone, start))


async def _due_today(
    db: AsyncSession, child_id: int, family_id: int, timezone: str, now: datetime
) -> tuple[set[int], set[int], tuple[datetime, datetime]]:
    """Return the ids of tasks due today, those completed today, and today's window."""
    bounds = day_bounds(timezone, now)
    due = await list_due_tasks(db, child_id, family_id, weekday_key(timezone, now))
    due_ids = {task.id for task in due}
    if not due_ids:
        return due_ids, set(), bounds
    completions = await list_completions(
        db,
        child_id,
        status=STATUS_COMPLETED,
        date_range=bounds,
        task_ids=sorted(due_ids),
    )
    return due_ids, {completion.task_id for completion in completions}, bounds


async def _record_reward(db: AsyncSession, entry: StreakRewardLog) -> StreakRewardLog | None:
    try:
        saved = await insert_streak_reward(db, entry)
    except ConcurrentRewardDuplicate:
        logger.warning(
            "Skipped duplicate %s streak reward for child %s", entry.period, entry.child_id
        )
        return None
    logger.info(
        "Awarded %s streak reward of %s seeds to child %s (streak %s)",
        saved.period,
        saved.seeds_earned,
        saved.child_id,
        saved.streak_value,
    )
    return saved


async def _award_daily_reward(
    db: AsyncSession,
    child_id: int,
    family_id: int,
    timezone: str,
    amount: int,
    now: datetime,
) -> None:
    if not amount or amount <= 0:
        return
    due_ids, completed_ids, bounds = await _due_today(db, child_id, family_id, timezone, now)
    if not due_ids or completed_ids != due_ids:
        return
    if await list_streak_rewards(db, child_id, PERIOD_DAILY, within=bounds):
        return
    await _record_reward(
        db,
        StreakRewardLog(
            child_id=child_id,
            family_id=family_id,
            period=PERIOD_DAILY,
            streak_value=len(completed_ids),
            seeds_earned=amount,
            streak_start=bounds[0],
            awarded_at=now,
        ),
    )


@surfaces_storage_errors
async def reconcile_rewards(
    db: AsyncSession,
    child_id: int,
    family_id: int,
    timezone: str,
    *,
    now: datetime | None = None,
    streak_info: StreakInfo | None = None,
) -> StreakInfo:
    """Issue any daily or streak-threshold rewards the child is now owed.

    Call after every completion status change.  The daily bonus is paid
    once per local day when every task due today is completed.  Weekly,
    monthly and yearly bonuses are paid at most once per streak run: an
    existing entry awarded on or after the streak's start blocks another.
    """
    now = now or utcnow()
    info = streak_info or await calculate_child_streak(db, child_id, timezone, now=now)
    config = await get_family_reward_config(db, family_id)
    if config is None:
        return info

    await _award_daily_reward(db, child_id, family_id, timezone, config.daily, now)

    if not info.start_date or info.count == 0:
        return info

    for period, threshold in STREAK_THRESHOLDS:
        amount = config.amount_for(period)
        if amount <= 0 or info.count < threshold:
            continue
        last = await find_latest_streak_reward(db, child_id, period)
        if last is not None and last.awarded_at >= info.start_date:
            continue
        await _record_reward(
            db,
            StreakRewardLog(
                child_id=child_id,
                family_id=family_id,
                period=period,
                streak_value=info.count,
                seeds_earned=amount,
                streak_start=info.start_date,
                awarded_at=now,
            ),
        )
    return info


@surfaces_storage_errors
async def revoke_daily_if_incomplete(
    db: AsyncSession,
    child_id: int,
    family_id: int,
    timezone: str,
    *,
    now: datetime | None = None,
) -> int:
    """Undo today's daily bonus if the due tasks are no longer all done.

    Period rewards are never revoked.  Returns the number of entries removed.
    """
    now = now or utcnow()
    due_ids, completed_ids, bounds = await _due_today(db, child_id, family_id, timezone, now)
    if not due_ids or completed_ids == due_ids:
        return 0
    removed = await delete_streak_rewards(db, child_id, family_id, PERIOD_DAILY, bounds)
    if removed:
        logger.info("Revoked %s daily reward(s) for child %s", removed, child_id)
    return removed


@surfaces_storage_errors
async def child_progress_snapshot(
    db: AsyncSession,
    child_id: int,
    timezone: str,
    *,
    now: datetime | None = None,
) -> ProgressSnapshot:
    now = now or utcnow()
    balance = await calculate_seed_balance(db, child_id)
    streak = await calculate_child_streak(db, child_id, timezone, now=now)
    today = await list_completions(db, child_id, date_range=day_bounds(timezone, now))
    return ProgressSnapshot(
        seed_balance=balance,
        streak=streak.count,
        streak_start=streak.start_date,
        completed_today=sum(1 for entry in today if entry.status == STATUS_COMPLETED),
        total_logged_today=len(today),
    )


@surfaces_storage_errors
async def set_completion_status(
    db: AsyncSession,
    task: Task,
    child_id: int,
    status: str,
    timezone: str,
    *,
    now: datetime | None = None,
) -> tuple[TaskCompletion, ProgressSnapshot]:
    """Record today's status for a task and bring rewards up to date.

    History is backfilled first so the streak never sees a silent gap.
    Completing a task may issue rewards; any other status revokes a daily
    bonus that no longer holds.
    """
    now = now or utcnow()
    task_id, family_id = task.id, task.family_id
    seeds = task.points if status == STATUS_COMPLETED else 0

    await backfill_missed_completions(db, child_id, timezone, now=now)
    completion = await upsert_completion(
        db,
        task_id,
        child_id,
        start_of_day(timezone, now),
        status=status,
        seeds_earned=seeds,
    )
    logger.info("Child %s set task %s to %s", child_id, task_id, status)

    if status == STATUS_COMPLETED:
        await reconcile_rewards(db, child_id, family_id, timezone, now=now)
    else:
        await revoke_daily_if_incomplete(db, child_id, family_id, timezone, now=now)

    snapshot = await child_progress_snapshot(db, child_id, timezone, now=now)
    await db.refresh(completion)
    return completion, snapshot
