"""Convenience imports for all schema classes used by the API."""

from .task import (
    TodayTaskRead,
    CompletionUpdate,
    CompletionRead,
    CompletionResult,
    HistoryEntry,
)
from .progress import ProgressRead, StreakConfigRead, StreakConfigUpdate
from .reward import RedemptionCreate, RedemptionRead, RedemptionResult
from .points import PointAdjustmentCreate, PointAdjustmentRead

__all__ = [
    "TodayTaskRead",
    "CompletionUpdate",
    "CompletionRead",
    "CompletionResult",
    "HistoryEntry",
    "ProgressRead",
    "StreakConfigRead",
    "StreakConfigUpdate",
    "RedemptionCreate",
    "RedemptionRead",
    "RedemptionResult",
    "PointAdjustmentCreate",
    "PointAdjustmentRead",
]
