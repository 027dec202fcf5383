"""Exceptions raised by the progress engine.

Every failure here is retryable: balances and streaks are recomputed from
the ledger on each call, so a caller can simply try again.
"""

import functools

from sqlalchemy.exc import SQLAlchemyError


class InvalidTimezone(ValueError):
    """An IANA zone name could not be resolved."""

    def __init__(self, name):
        super().__init__(f"Invalid timezone: {name!r}")
        self.name = name


class StorageUnavailable(RuntimeError):
    """A ledger read or write failed."""


class ConcurrentRewardDuplicate(RuntimeError):
    """A streak reward for the same child, period and run already exists."""

    def __init__(self, child_id: int, period: str):
        super().__init__(
            f"Streak reward {period} already recorded for child {child_id}"
        )
        self.child_id = child_id
        self.period = period


def surfaces_storage_errors(func):
    """Re-raise database failures from an async entry point as ``StorageUnavailable``."""

    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except SQLAlchemyError as exc:
            raise StorageUnavailable(str(exc)) from exc

    return wrapper
