"""Aggregate import for all API route modules."""

from . import (
    tasks,
    progress,
    families,
    rewards,
    points,
)

__all__ = [
    "tasks",
    "progress",
    "families",
    "rewards",
    "points",
]
