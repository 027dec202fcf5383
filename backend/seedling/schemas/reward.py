from datetime import datetime
from typing import Optional
from pydantic import BaseModel


class RedemptionCreate(BaseModel):
    child_id: int
    note: Optional[str] = None


class RedemptionRead(BaseModel):
    id: int
    reward_id: int
    child_id: int
    seeds_spent: int
    note: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class RedemptionResult(BaseModel):
    redemption: RedemptionRead
    balance: int
