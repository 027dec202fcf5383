"""Pydantic models for progress snapshots and streak reward settings."""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field


class ProgressRead(BaseModel):
    seed_balance: int
    streak: int
    streak_start: Optional[datetime] = None
    completed_today: int
    total_logged_today: int

    class Config:
        from_attributes = True


class StreakConfigRead(BaseModel):
    daily_streak_reward: int
    weekly_streak_reward: int
    monthly_streak_reward: int
    yearly_streak_reward: int

    class Config:
        from_attributes = True


class StreakConfigUpdate(BaseModel):
    daily_streak_reward: int | None = Field(default=None)
    weekly_streak_reward: int | None = Field(default=None)
    monthly_streak_reward: int | None = Field(default=None)
    yearly_streak_reward: int | None = Field(default=None)
