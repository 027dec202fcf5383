from datetime import datetime
from typing import List, Literal, Optional
from pydantic import BaseModel

from .progress import ProgressRead

CompletionStatusValue = Literal["PENDING", "COMPLETED", "SKIPPED"]


class TodayTaskRead(BaseModel):
    id: int
    title: str
    points: int
    status: CompletionStatusValue
    days_of_week: Optional[List[str]] = None


class CompletionUpdate(BaseModel):
    child_id: int
    status: CompletionStatusValue = "COMPLETED"


class CompletionRead(BaseModel):
    id: int
    task_id: int
    child_id: int
    date: datetime
    status: CompletionStatusValue
    seeds_earned: int

    class Config:
        from_attributes = True


class HistoryEntry(BaseModel):
    id: int
    task_id: int
    task_title: str
    status: CompletionStatusValue
    seeds_earned: int
    date: datetime


class CompletionResult(BaseModel):
    completion: CompletionRead
    progress: ProgressRead
