"""Asynchronous CRUD helpers for the seed ledger.

Each function in this module encapsulates a specific database operation
using SQLModel and SQLAlchemy.  Together they form the storage boundary
the progress engine reads from and writes to, which keeps the streak and
reward logic free of query details and the route handlers light.
"""

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlmodel import select, delete

from seedling.errors import ConcurrentRewardDuplicate
from seedling.models import (
    Family,
    Child,
    Task,
    TaskAssignment,
    TaskCompletion,
    StreakRewardLog,
    MissionReward,
    RewardDefinition,
    RewardRedemption,
    PrivilegeRequest,
    PointAdjustment,
    PERIOD_DAILY,
    PERIOD_WEEKLY,
    PERIOD_MONTHLY,
    PERIOD_YEARLY,
    PRIVILEGE_SPENT_STATUSES,
)
from seedling.schedule import is_active_on_day

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SeedSources:
    """Per-table sums that make up a child's seed balance."""

    completions: int = 0
    missions: int = 0
    streak_rewards: int = 0
    adjustments: int = 0
    redemptions: int = 0
    privileges: int = 0

    @property
    def balance(self) -> int:
        earned = self.completions + self.missions + self.streak_rewards + self.adjustments
        return earned - self.redemptions - self.privileges


@dataclass(frozen=True)
class RewardConfig:
    daily: int = 0
    weekly: int = 0
    monthly: int = 0
    yearly: int = 0

    def amount_for(self, period: str) -> int:
        return {
            PERIOD_DAILY: self.daily,
            PERIOD_WEEKLY: self.weekly,
            PERIOD_MONTHLY: self.monthly,
            PERIOD_YEARLY: self.yearly,
        }.get(period, 0)


# --- Family / child / task lookups -----------------------------------------


async def get_family(db: AsyncSession, family_id: int) -> Family | None:
    result = await db.execute(select(Family).where(Family.id == family_id))
    return result.scalar_one_or_none()


async def save_family(db: AsyncSession, family: Family) -> Family:
    db.add(family)
    await db.commit()
    await db.refresh(family)
    return family


async def get_child(db: AsyncSession, child_id: int) -> Child | None:
    """Fetch a child with its family loaded, or ``None`` if not found."""
    result = await db.execute(
        select(Child)
        .where(Child.id == child_id)
        .options(selectinload(Child.family))
    )
    return result.scalar_one_or_none()


async def get_task(db: AsyncSession, task_id: int) -> Task | None:
    result = await db.execute(select(Task).where(Task.id == task_id))
    return result.scalar_one_or_none()


async def get_assignment(
    db: AsyncSession, task_id: int, child_id: int
) -> TaskAssignment | None:
    result = await db.execute(
        select(TaskAssignment).where(
            TaskAssignment.task_id == task_id,
            TaskAssignment.child_id == child_id,
        )
    )
    return result.scalar_one_or_none()


async def list_assignments(db: AsyncSession, child_id: int) -> list[TaskAssignment]:
    """Return every assignment a child holds with its task eagerly loaded."""
    result = await db.execute(
        select(TaskAssignment)
        .where(TaskAssignment.child_id == child_id)
        .options(selectinload(TaskAssignment.task))
        .order_by(TaskAssignment.id)
    )
    return result.scalars().all()


async def list_due_tasks(
    db: AsyncSession, child_id: int, family_id: int, day_key: str
) -> list[Task]:
    """Active family tasks assigned to the child whose schedule includes ``day_key``."""
    result = await db.execute(
        select(Task)
        .join(TaskAssignment, TaskAssignment.task_id == Task.id)
        .where(
            TaskAssignment.child_id == child_id,
            Task.family_id == family_id,
            Task.active == True,  # noqa: E712
        )
        .order_by(Task.created_at, Task.id)
    )
    return [
        task for task in result.scalars().all()
        if is_active_on_day(task.days_of_week, day_key)
    ]


# --- Completion ledger -------------------------------------------------------


async def list_completions(
    db: AsyncSession,
    child_id: int,
    *,
    status: str | None = None,
    date_range: tuple[datetime, datetime] | None = None,
    task_ids: list[int] | None = None,
    limit: int | None = None,
    offset: int = 0,
    newest_first: bool = True,
) -> list[TaskCompletion]:
    """Query a child's completion records.

    ``date_range`` is a half-open ``(start, end)`` pair of UTC instants.
    """
    stmt = select(TaskCompletion).where(TaskCompletion.child_id == child_id)
    if status is not None:
        stmt = stmt.where(TaskCompletion.status == status)
    if date_range is not None:
        start, end = date_range
        stmt = stmt.where(TaskCompletion.date >= start, TaskCompletion.date < end)
    if task_ids is not None:
        stmt = stmt.where(TaskCompletion.task_id.in_(task_ids))
    if newest_first:
        stmt = stmt.order_by(TaskCompletion.date.desc(), TaskCompletion.id.desc())
    else:
        stmt = stmt.order_by(TaskCompletion.date, TaskCompletion.id)
    if offset:
        stmt = stmt.offset(offset)
    if limit is not None:
        stmt = stmt.limit(limit)
    result = await db.execute(stmt)
    return result.scalars().all()


async def list_completion_history(
    db: AsyncSession, child_id: int, limit: int = 50
) -> list[TaskCompletion]:
    """Most recent completion records with their task for display."""
    result = await db.execute(
        select(TaskCompletion)
        .where(TaskCompletion.child_id == child_id)
        .options(selectinload(TaskCompletion.task))
        .order_by(TaskCompletion.date.desc(), TaskCompletion.id.desc())
        .limit(limit)
    )
    return result.scalars().all()


async def get_completion(
    db: AsyncSession, task_id: int, child_id: int, day: datetime
) -> TaskCompletion | None:
    result = await db.execute(
        select(TaskCompletion).where(
            TaskCompletion.task_id == task_id,
            TaskCompletion.child_id == child_id,
            TaskCompletion.date == day,
        )
    )
    return result.scalar_one_or_none()


async def get_last_completion(
    db: AsyncSession, child_id: int, task_id: int
) -> TaskCompletion | None:
    """Return the latest-dated record of any status for a task and child."""
    result = await db.execute(
        select(TaskCompletion)
        .where(
            TaskCompletion.child_id == child_id,
            TaskCompletion.task_id == task_id,
        )
        .order_by(TaskCompletion.date.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def upsert_completion(
    db: AsyncSession,
    task_id: int,
    child_id: int,
    day: datetime,
    *,
    status: str,
    seeds_earned: int,
) -> TaskCompletion:
    """Create or update the record keyed by ``(task_id, child_id, day)``."""
    completion = await get_completion(db, task_id, child_id, day)
    if completion is None:
        completion = TaskCompletion(
            task_id=task_id,
            child_id=child_id,
            date=day,
            status=status,
            seeds_earned=seeds_earned,
        )
        db.add(completion)
        try:
            await db.commit()
        except IntegrityError:
            # Another request created the row first; update that one instead.
            await db.rollback()
            completion = await get_completion(db, task_id, child_id, day)
            if completion is None:
                raise
            completion.status = status
            completion.seeds_earned = seeds_earned
            db.add(completion)
            await db.commit()
    else:
        completion.status = status
        completion.seeds_earned = seeds_earned
        db.add(completion)
        await db.commit()
    await db.refresh(completion)
    return completion


async def insert_completion_if_missing(
    db: AsyncSession,
    task_id: int,
    child_id: int,
    day: datetime,
    *,
    status: str,
    seeds_earned: int = 0,
) -> bool:
    """Stage a record unless one already exists for that day.

    Existing records of any status are left untouched.  The caller commits.
    """
    if await get_completion(db, task_id, child_id, day) is not None:
        return False
    db.add(
        TaskCompletion(
            task_id=task_id,
            child_id=child_id,
            date=day,
            status=status,
            seeds_earned=seeds_earned,
        )
    )
    return True


# --- Seed balance sources ----------------------------------------------------


async def _sum(db: AsyncSession, column, *conditions) -> int:
    result = await db.execute(select(func.coalesce(func.sum(column), 0)).where(*conditions))
    return int(result.scalar_one())


async def sum_seed_sources(db: AsyncSession, child_id: int) -> SeedSources:
    """Sum every seed-affecting table for a child; empty tables count as 0."""
    return SeedSources(
        completions=await _sum(
            db, TaskCompletion.seeds_earned, TaskCompletion.child_id == child_id
        ),
        missions=await _sum(
            db, MissionReward.seeds_earned, MissionReward.child_id == child_id
        ),
        streak_rewards=await _sum(
            db, StreakRewardLog.seeds_earned, StreakRewardLog.child_id == child_id
        ),
        adjustments=await _sum(
            db, PointAdjustment.points, PointAdjustment.child_id == child_id
        ),
        redemptions=await _sum(
            db, RewardRedemption.seeds_spent, RewardRedemption.child_id == child_id
        ),
        privileges=await _sum(
            db,
            PrivilegeRequest.cost,
            PrivilegeRequest.child_id == child_id,
            PrivilegeRequest.status.in_(PRIVILEGE_SPENT_STATUSES),
        ),
    )


# --- Streak reward log -------------------------------------------------------


async def get_family_reward_config(
    db: AsyncSession, family_id: int
) -> RewardConfig | None:
    family = await get_family(db, family_id)
    if family is None:
        return None
    return RewardConfig(
        daily=family.daily_streak_reward or 0,
        weekly=family.weekly_streak_reward or 0,
        monthly=family.monthly_streak_reward or 0,
        yearly=family.yearly_streak_reward or 0,
    )


async def find_latest_streak_reward(
    db: AsyncSession, child_id: int, period: str
) -> StreakRewardLog | None:
    result = await db.execute(
        select(StreakRewardLog)
        .where(
            StreakRewardLog.child_id == child_id,
            StreakRewardLog.period == period,
        )
        .order_by(StreakRewardLog.awarded_at.desc(), StreakRewardLog.id.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def list_streak_rewards(
    db: AsyncSession,
    child_id: int,
    period: str | None = None,
    *,
    within: tuple[datetime, datetime] | None = None,
) -> list[StreakRewardLog]:
    stmt = select(StreakRewardLog).where(StreakRewardLog.child_id == child_id)
    if period is not None:
        stmt = stmt.where(StreakRewardLog.period == period)
    if within is not None:
        start, end = within
        stmt = stmt.where(
            StreakRewardLog.awarded_at >= start, StreakRewardLog.awarded_at < end
        )
    result = await db.execute(stmt.order_by(StreakRewardLog.awarded_at))
    return result.scalars().all()


async def insert_streak_reward(
    db: AsyncSession, entry: StreakRewardLog
) -> StreakRewardLog:
    """Append a reward-log entry.

    Raises ``ConcurrentRewardDuplicate`` when the child already holds an
    entry for the same period and streak run.
    """
    db.add(entry)
    try:
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        raise ConcurrentRewardDuplicate(entry.child_id, entry.period) from exc
    await db.refresh(entry)
    return entry


async def delete_streak_rewards(
    db: AsyncSession,
    child_id: int,
    family_id: int,
    period: str,
    within: tuple[datetime, datetime],
) -> int:
    """Delete entries awarded inside the half-open window; returns the count."""
    start, end = within
    result = await db.execute(
        delete(StreakRewardLog).where(
            StreakRewardLog.child_id == child_id,
            StreakRewardLog.family_id == family_id,
            StreakRewardLog.period == period,
            StreakRewardLog.awarded_at >= start,
            StreakRewardLog.awarded_at < end,
        )
    )
    await db.commit()
    return result.rowcount or 0


# --- Spending and adjustments ------------------------------------------------


async def get_reward(db: AsyncSession, reward_id: int) -> RewardDefinition | None:
    result = await db.execute(
        select(RewardDefinition).where(RewardDefinition.id == reward_id)
    )
    return result.scalar_one_or_none()


async def create_redemption(
    db: AsyncSession, redemption: RewardRedemption
) -> RewardRedemption:
    """Persist a reward redemption; the caller has already checked the balance."""
    db.add(redemption)
    await db.commit()
    await db.refresh(redemption)
    return redemption


async def create_point_adjustment(
    db: AsyncSession, adjustment: PointAdjustment
) -> PointAdjustment:
    db.add(adjustment)
    await db.commit()
    await db.refresh(adjustment)
    return adjustment


async def list_point_adjustments(
    db: AsyncSession, child_id: int, limit: int = 10
) -> list[PointAdjustment]:
    result = await db.execute(
        select(PointAdjustment)
        .where(PointAdjustment.child_id == child_id)
        .order_by(PointAdjustment.created_at.desc(), PointAdjustment.id.desc())
        .limit(limit)
    )
    return result.scalars().all()
