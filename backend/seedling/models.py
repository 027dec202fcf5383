"""Database models used by Seedling.

The models are defined with SQLModel (built on SQLAlchemy and Pydantic)
and represent families, children, tasks and the seed ledger tables the
progress engine folds over.  All timestamps are naive UTC datetimes.
"""

from typing import Optional, List
from datetime import datetime
from sqlmodel import SQLModel, Field, Relationship
from sqlalchemy import Column, JSON, UniqueConstraint

from seedling.dates import utcnow

STATUS_PENDING = "PENDING"
STATUS_COMPLETED = "COMPLETED"
STATUS_SKIPPED = "SKIPPED"
COMPLETION_STATUSES = (STATUS_PENDING, STATUS_COMPLETED, STATUS_SKIPPED)

PERIOD_DAILY = "DAILY"
PERIOD_WEEKLY = "WEEKLY"
PERIOD_MONTHLY = "MONTHLY"
PERIOD_YEARLY = "YEARLY"

PRIVILEGE_PENDING = "PENDING"
PRIVILEGE_APPROVED = "APPROVED"
PRIVILEGE_DENIED = "DENIED"
PRIVILEGE_TERMINATED = "TERMINATED"
# Privilege requests in these states have been paid for with seeds.
PRIVILEGE_SPENT_STATUSES = (PRIVILEGE_APPROVED, PRIVILEGE_TERMINATED)


class Family(SQLModel, table=True):
    """Household grouping children and tasks, with its streak reward table."""

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    timezone: str = "UTC"
    daily_streak_reward: int = 3
    weekly_streak_reward: int = 5
    monthly_streak_reward: int = 15
    yearly_streak_reward: int = 100
    created_at: datetime = Field(default_factory=utcnow)

    children: List["Child"] = Relationship(back_populates="family")


class Child(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    family_id: int = Field(foreign_key="family.id", index=True)
    created_at: datetime = Field(default_factory=utcnow)

    family: Family = Relationship(back_populates="children")


class Task(SQLModel, table=True):
    """Chore a parent defines; ``days_of_week`` of ``None`` means every day."""

    id: Optional[int] = Field(default=None, primary_key=True)
    family_id: int = Field(foreign_key="family.id", index=True)
    title: str
    description: Optional[str] = None
    points: int = 1
    days_of_week: Optional[List[str]] = Field(
        default=None, sa_column=Column(JSON)
    )
    active: bool = True
    created_at: datetime = Field(default_factory=utcnow)

    assignments: List["TaskAssignment"] = Relationship(back_populates="task")


class TaskAssignment(SQLModel, table=True):
    __table_args__ = (UniqueConstraint("task_id", "child_id"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    task_id: int = Field(foreign_key="task.id", index=True)
    child_id: int = Field(foreign_key="child.id", index=True)
    assigned_at: datetime = Field(default_factory=utcnow)

    task: Task = Relationship(back_populates="assignments")


class TaskCompletion(SQLModel, table=True):
    """One status record per task, child and local day.

    ``date`` holds the UTC instant of local midnight in the family timezone.
    """

    __table_args__ = (UniqueConstraint("task_id", "child_id", "date"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    task_id: int = Field(foreign_key="task.id", index=True)
    child_id: int = Field(foreign_key="child.id", index=True)
    date: datetime = Field(index=True)
    status: str = STATUS_PENDING  # PENDING, COMPLETED, SKIPPED
    seeds_earned: int = 0
    created_at: datetime = Field(default_factory=utcnow)

    task: Task = Relationship()


class StreakRewardLog(SQLModel, table=True):
    """Bonus seeds granted for a daily sweep or a streak threshold.

    ``streak_start`` is the start of the streak run being rewarded (for
    DAILY entries, the local day the bonus was earned).  The unique
    constraint keeps one entry per child, period and run.
    """

    __table_args__ = (UniqueConstraint("child_id", "period", "streak_start"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    child_id: int = Field(foreign_key="child.id", index=True)
    family_id: int = Field(foreign_key="family.id")
    period: str  # DAILY, WEEKLY, MONTHLY, YEARLY
    streak_value: int
    seeds_earned: int
    streak_start: datetime
    awarded_at: datetime = Field(default_factory=utcnow)


class MissionReward(SQLModel, table=True):
    """Seeds a child earned for taking part in a completed team mission."""

    id: Optional[int] = Field(default=None, primary_key=True)
    mission_id: Optional[int] = None
    child_id: int = Field(foreign_key="child.id", index=True)
    seeds_earned: int = 0
    created_at: datetime = Field(default_factory=utcnow)


class RewardDefinition(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    family_id: int = Field(foreign_key="family.id", index=True)
    title: str
    description: Optional[str] = None
    cost: int
    created_at: datetime = Field(default_factory=utcnow)


class RewardRedemption(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    reward_id: int = Field(foreign_key="rewarddefinition.id")
    child_id: int = Field(foreign_key="child.id", index=True)
    seeds_spent: int
    note: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)

    reward: RewardDefinition = Relationship()


class PrivilegeRequest(SQLModel, table=True):
    """Child request to spend seeds on a privilege (e.g. extra screen time)."""

    id: Optional[int] = Field(default=None, primary_key=True)
    child_id: int = Field(foreign_key="child.id", index=True)
    family_id: int = Field(foreign_key="family.id")
    title: str
    cost: int = 0
    status: str = PRIVILEGE_PENDING  # PENDING, APPROVED, DENIED, TERMINATED
    note: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    resolved_at: Optional[datetime] = None


class PointAdjustment(SQLModel, table=True):
    """Manual gift (positive) or penalty (negative) entered by a parent."""

    id: Optional[int] = Field(default=None, primary_key=True)
    family_id: int = Field(foreign_key="family.id")
    child_id: int = Field(foreign_key="child.id", index=True)
    points: int
    type: str  # GIFT or PENALTY
    note: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
