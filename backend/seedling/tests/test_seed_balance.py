"""Tests for the seed balance fold over the ledger tables."""

import asyncio
import pathlib
import sys
from datetime import datetime

import pytest
from sqlalchemy import text
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker
from sqlmodel import SQLModel

sys.path.append(str(pathlib.Path(__file__).resolve().parents[2]))

from seedling.models import (
    Family,
    Child,
    Task,
    TaskCompletion,
    StreakRewardLog,
    MissionReward,
    RewardDefinition,
    RewardRedemption,
    PrivilegeRequest,
    PointAdjustment,
)
from seedling.crud import sum_seed_sources
from seedling.errors import StorageUnavailable
from seedling.progress import calculate_seed_balance


async def _setup():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    TestSession = async_sessionmaker(engine, expire_on_commit=False)
    async with TestSession() as session:
        family = Family(name="Okafor")
        session.add(family)
        await session.commit()
        await session.refresh(family)
        child = Child(name="Tobi", family_id=family.id)
        other = Child(name="Ada", family_id=family.id)
        task = Task(family_id=family.id, title="Feed the cat", points=4)
        reward = RewardDefinition(family_id=family.id, title="Movie night", cost=6)
        session.add_all([child, other, task, reward])
        await session.commit()
        for obj in (child, other, task, reward):
            await session.refresh(obj)
    return TestSession, family.id, child.id, other.id, task.id, reward.id


def test_balance_is_zero_for_empty_ledger():
    async def run():
        TestSession, _, child_id, _, _, _ = await _setup()
        async with TestSession() as session:
            assert await calculate_seed_balance(session, child_id) == 0

    asyncio.run(run())


def test_balance_folds_every_source():
    async def run():
        TestSession, family_id, child_id, other_id, task_id, reward_id = await _setup()
        async with TestSession() as session:
            session.add_all(
                [
                    TaskCompletion(
                        task_id=task_id,
                        child_id=child_id,
                        date=datetime(2024, 11, 13),
                        status="COMPLETED",
                        seeds_earned=4,
                    ),
                    TaskCompletion(
                        task_id=task_id,
                        child_id=child_id,
                        date=datetime(2024, 11, 14),
                        status="COMPLETED",
                        seeds_earned=4,
                    ),
                    MissionReward(mission_id=1, child_id=child_id, seeds_earned=10),
                    StreakRewardLog(
                        child_id=child_id,
                        family_id=family_id,
                        period="DAILY",
                        streak_value=1,
                        seeds_earned=3,
                        streak_start=datetime(2024, 11, 14),
                    ),
                    PointAdjustment(
                        family_id=family_id, child_id=child_id, points=5, type="GIFT"
                    ),
                    PointAdjustment(
                        family_id=family_id, child_id=child_id, points=-2, type="PENALTY"
                    ),
                    RewardRedemption(reward_id=reward_id, child_id=child_id, seeds_spent=6),
                    PrivilegeRequest(
                        child_id=child_id, family_id=family_id, title="Late bedtime",
                        cost=7, status="APPROVED",
                    ),
                    PrivilegeRequest(
                        child_id=child_id, family_id=family_id, title="Games",
                        cost=1, status="TERMINATED",
                    ),
                    # Not spent: pending and denied requests.
                    PrivilegeRequest(
                        child_id=child_id, family_id=family_id, title="Tablet",
                        cost=50, status="PENDING",
                    ),
                    PrivilegeRequest(
                        child_id=child_id, family_id=family_id, title="Sleepover",
                        cost=50, status="DENIED",
                    ),
                    # Another child's ledger never leaks in.
                    MissionReward(mission_id=1, child_id=other_id, seeds_earned=99),
                ]
            )
            await session.commit()

            sources = await sum_seed_sources(session, child_id)
            assert sources.completions == 8
            assert sources.missions == 10
            assert sources.streak_rewards == 3
            assert sources.adjustments == 3
            assert sources.redemptions == 6
            assert sources.privileges == 8
            assert await calculate_seed_balance(session, child_id) == 8 + 10 + 3 + 3 - 6 - 8
            assert await calculate_seed_balance(session, other_id) == 99

    asyncio.run(run())


def test_balance_moves_with_spends_and_earnings():
    async def run():
        TestSession, family_id, child_id, _, task_id, reward_id = await _setup()
        async with TestSession() as session:
            session.add(
                PointAdjustment(family_id=family_id, child_id=child_id, points=20, type="GIFT")
            )
            await session.commit()
            before = await calculate_seed_balance(session, child_id)

            session.add(RewardRedemption(reward_id=reward_id, child_id=child_id, seeds_spent=6))
            await session.commit()
            assert await calculate_seed_balance(session, child_id) == before - 6

            session.add(
                TaskCompletion(
                    task_id=task_id,
                    child_id=child_id,
                    date=datetime(2024, 11, 14),
                    status="COMPLETED",
                    seeds_earned=4,
                )
            )
            await session.commit()
            assert await calculate_seed_balance(session, child_id) == before - 2

    asyncio.run(run())


def test_balance_may_go_negative():
    async def run():
        TestSession, family_id, child_id, _, _, _ = await _setup()
        async with TestSession() as session:
            session.add(
                PointAdjustment(family_id=family_id, child_id=child_id, points=-5, type="PENALTY")
            )
            await session.commit()
            assert await calculate_seed_balance(session, child_id) == -5

    asyncio.run(run())


def test_storage_failure_raises_storage_unavailable():
    async def run():
        TestSession, _, child_id, _, _, _ = await _setup()
        async with TestSession() as session:
            await session.execute(text("DROP TABLE streakrewardlog"))
            await session.commit()
            with pytest.raises(StorageUnavailable):
                await calculate_seed_balance(session, child_id)

    asyncio.run(run())
