"""Tests for daily and streak-threshold reward issuance and revocation."""

import asyncio
import pathlib
import sys
from datetime import date, datetime, timedelta

import pytest
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker
from sqlmodel import SQLModel

sys.path.append(str(pathlib.Path(__file__).resolve().parents[2]))

from seedling.models import (
    Family,
    Child,
    Task,
    TaskAssignment,
    TaskCompletion,
    StreakRewardLog,
)
from seedling.crud import get_task, insert_streak_reward, list_streak_rewards
from seedling.dates import day_start
from seedling.errors import ConcurrentRewardDuplicate
from seedling.progress import (
    calculate_seed_balance,
    reconcile_rewards,
    revoke_daily_if_incomplete,
    set_completion_status,
)

NOW = datetime(2024, 11, 14, 8, 0)
TODAY = date(2024, 11, 14)


async def _setup(task_count=1, url="sqlite+aiosqlite:///:memory:", **family_kwargs):
    engine = create_async_engine(url)
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    TestSession = async_sessionmaker(engine, expire_on_commit=False)
    async with TestSession() as session:
        family = Family(name="Nguyen", **family_kwargs)
        session.add(family)
        await session.commit()
        await session.refresh(family)
        child = Child(name="Linh", family_id=family.id)
        session.add(child)
        await session.commit()
        await session.refresh(child)
        task_ids = []
        for i in range(task_count):
            task = Task(family_id=family.id, title=f"Chore {i}", points=2)
            session.add(task)
            await session.commit()
            await session.refresh(task)
            session.add(
                TaskAssignment(
                    task_id=task.id,
                    child_id=child.id,
                    assigned_at=NOW - timedelta(days=10),
                )
            )
            await session.commit()
            task_ids.append(task.id)
    return TestSession, family.id, child.id, task_ids


async def _set(session, task_id, child_id, status, now=NOW):
    task = await get_task(session, task_id)
    return await set_completion_status(session, task, child_id, status, "UTC", now=now)


async def _log_completed(session, task_id, child_id, days):
    for day in days:
        session.add(
            TaskCompletion(
                task_id=task_id,
                child_id=child_id,
                date=day_start("UTC", day),
                status="COMPLETED",
                seeds_earned=2,
            )
        )
    await session.commit()


def test_daily_reward_when_every_due_task_is_completed():
    async def run():
        TestSession, family_id, child_id, task_ids = await _setup(daily_streak_reward=3)
        async with TestSession() as session:
            # Close the history gap so the only change is today's completion.
            await _log_completed(
                session, task_ids[0], child_id, [TODAY - timedelta(days=1)]
            )
            before = await calculate_seed_balance(session, child_id)

            completion, snapshot = await _set(session, task_ids[0], child_id, "COMPLETED")
            assert completion.status == "COMPLETED"
            assert completion.seeds_earned == 2
            assert completion.date == datetime(2024, 11, 14)

            daily = await list_streak_rewards(session, child_id, "DAILY")
            assert len(daily) == 1
            assert daily[0].seeds_earned == 3
            assert daily[0].streak_value == 1
            assert snapshot.seed_balance == before + 2 + 3
            assert snapshot.completed_today == 1
            assert snapshot.streak == 2

            # Completing again the same day pays nothing more.
            await _set(session, task_ids[0], child_id, "COMPLETED")
            assert len(await list_streak_rewards(session, child_id, "DAILY")) == 1
            assert await calculate_seed_balance(session, child_id) == before + 5

    asyncio.run(run())


def test_no_daily_reward_until_all_due_tasks_are_done():
    async def run():
        TestSession, _, child_id, task_ids = await _setup(task_count=2)
        async with TestSession() as session:
            await _set(session, task_ids[0], child_id, "COMPLETED")
            assert await list_streak_rewards(session, child_id, "DAILY") == []
            await _set(session, task_ids[1], child_id, "COMPLETED")
            daily = await list_streak_rewards(session, child_id, "DAILY")
            assert len(daily) == 1
            assert daily[0].streak_value == 2

    asyncio.run(run())


def test_zero_amount_disables_a_period():
    async def run():
        TestSession, _, child_id, task_ids = await _setup(daily_streak_reward=0)
        async with TestSession() as session:
            await _set(session, task_ids[0], child_id, "COMPLETED")
            assert await list_streak_rewards(session, child_id) == []

    asyncio.run(run())


def test_weekly_reward_issued_once_per_streak_run():
    async def run():
        TestSession, family_id, child_id, task_ids = await _setup(
            daily_streak_reward=3, weekly_streak_reward=5
        )
        async with TestSession() as session:
            await _log_completed(
                session,
                task_ids[0],
                child_id,
                [TODAY - timedelta(days=i) for i in range(1, 7)],
            )
            _, snapshot = await _set(session, task_ids[0], child_id, "COMPLETED")
            assert snapshot.streak == 7

            weekly = await list_streak_rewards(session, child_id, "WEEKLY")
            assert len(weekly) == 1
            assert weekly[0].seeds_earned == 5
            assert weekly[0].streak_value == 7
            assert weekly[0].streak_start == datetime(2024, 11, 8)
            assert snapshot.seed_balance == 7 * 2 + 3 + 5

            # Reconciling again, or the next day with the streak still going,
            # does not pay the same run twice.
            await reconcile_rewards(session, child_id, family_id, "UTC", now=NOW)
            tomorrow = NOW + timedelta(days=1)
            _, snapshot = await _set(
                session, task_ids[0], child_id, "COMPLETED", now=tomorrow
            )
            assert snapshot.streak == 8
            assert len(await list_streak_rewards(session, child_id, "WEEKLY")) == 1
            assert len(await list_streak_rewards(session, child_id, "DAILY")) == 2

    asyncio.run(run())


def test_new_streak_run_earns_weekly_reward_again():
    async def run():
        TestSession, family_id, child_id, task_ids = await _setup(
            daily_streak_reward=0, weekly_streak_reward=5
        )
        async with TestSession() as session:
            session.add(
                StreakRewardLog(
                    child_id=child_id,
                    family_id=family_id,
                    period="WEEKLY",
                    streak_value=7,
                    seeds_earned=5,
                    streak_start=datetime(2024, 10, 1),
                    awarded_at=datetime(2024, 10, 7, 9, 0),
                )
            )
            await session.commit()
            await _log_completed(
                session,
                task_ids[0],
                child_id,
                [TODAY - timedelta(days=i) for i in range(7)],
            )
            info = await reconcile_rewards(session, child_id, family_id, "UTC", now=NOW)
            assert info.count == 7
            weekly = await list_streak_rewards(session, child_id, "WEEKLY")
            assert len(weekly) == 2
            assert weekly[-1].streak_start == datetime(2024, 11, 8)

    asyncio.run(run())


def test_daily_revocation_round_trip():
    async def run():
        TestSession, family_id, child_id, task_ids = await _setup(
            daily_streak_reward=3, weekly_streak_reward=5
        )
        async with TestSession() as session:
            await _log_completed(
                session,
                task_ids[0],
                child_id,
                [TODAY - timedelta(days=i) for i in range(1, 7)],
            )
            await _set(session, task_ids[0], child_id, "COMPLETED")
            assert len(await list_streak_rewards(session, child_id, "DAILY")) == 1
            balance = await calculate_seed_balance(session, child_id)

            completion, snapshot = await _set(session, task_ids[0], child_id, "PENDING")
            assert completion.seeds_earned == 0
            assert await list_streak_rewards(session, child_id, "DAILY") == []
            # Period rewards are kept.
            assert len(await list_streak_rewards(session, child_id, "WEEKLY")) == 1
            assert snapshot.seed_balance == balance - 2 - 3

            await _set(session, task_ids[0], child_id, "COMPLETED")
            assert len(await list_streak_rewards(session, child_id, "DAILY")) == 1
            assert len(await list_streak_rewards(session, child_id, "WEEKLY")) == 1
            assert await calculate_seed_balance(session, child_id) == balance

    asyncio.run(run())


def test_revoke_is_a_no_op_when_everything_is_done():
    async def run():
        TestSession, family_id, child_id, task_ids = await _setup()
        async with TestSession() as session:
            await _set(session, task_ids[0], child_id, "COMPLETED")
            removed = await revoke_daily_if_incomplete(
                session, child_id, family_id, "UTC", now=NOW
            )
            assert removed == 0
            assert len(await list_streak_rewards(session, child_id, "DAILY")) == 1

    asyncio.run(run())


def test_duplicate_reward_entry_is_rejected():
    async def run():
        TestSession, family_id, child_id, _ = await _setup()
        async with TestSession() as session:
            def entry():
                return StreakRewardLog(
                    child_id=child_id,
                    family_id=family_id,
                    period="WEEKLY",
                    streak_value=7,
                    seeds_earned=5,
                    streak_start=datetime(2024, 11, 8),
                    awarded_at=NOW,
                )

            await insert_streak_reward(session, entry())
            with pytest.raises(ConcurrentRewardDuplicate):
                await insert_streak_reward(session, entry())
            assert len(await list_streak_rewards(session, child_id, "WEEKLY")) == 1

    asyncio.run(run())


def test_long_streak_pays_every_period_once():
    async def run():
        TestSession, family_id, child_id, task_ids = await _setup(
            weekly_streak_reward=5, monthly_streak_reward=15, yearly_streak_reward=100
        )
        async with TestSession() as session:
            await _log_completed(
                session,
                task_ids[0],
                child_id,
                [TODAY - timedelta(days=i) for i in range(400)],
            )
            info = await reconcile_rewards(session, child_id, family_id, "UTC", now=NOW)
            assert info.count == 400

            for period, amount in (("WEEKLY", 5), ("MONTHLY", 15), ("YEARLY", 100)):
                entries = await list_streak_rewards(session, child_id, period)
                assert len(entries) == 1
                assert entries[0].streak_value == 400
                assert entries[0].seeds_earned == amount

            before = len(await list_streak_rewards(session, child_id))
            await reconcile_rewards(session, child_id, family_id, "UTC", now=NOW)
            assert len(await list_streak_rewards(session, child_id)) == before

    asyncio.run(run())


def test_concurrent_reconciles_issue_each_reward_once(tmp_path):
    async def run():
        url = f"sqlite+aiosqlite:///{tmp_path / 'seedling.db'}"
        TestSession, family_id, child_id, task_ids = await _setup(
            url=url, daily_streak_reward=3, weekly_streak_reward=5
        )
        async with TestSession() as session:
            await _log_completed(
                session,
                task_ids[0],
                child_id,
                [TODAY - timedelta(days=i) for i in range(7)],
            )

        async def reconcile_in_own_session():
            async with TestSession() as session:
                return await reconcile_rewards(session, child_id, family_id, "UTC", now=NOW)

        results = await asyncio.gather(*(reconcile_in_own_session() for _ in range(4)))
        assert [info.count for info in results] == [7, 7, 7, 7]

        async with TestSession() as session:
            assert len(await list_streak_rewards(session, child_id, "WEEKLY")) == 1
            assert len(await list_streak_rewards(session, child_id, "DAILY")) == 1

    asyncio.run(run())
