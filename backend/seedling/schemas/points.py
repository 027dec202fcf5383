from datetime import datetime
from typing import Literal, Optional
from pydantic import BaseModel, Field


class PointAdjustmentCreate(BaseModel):
    child_id: int
    type: Literal["GIFT", "PENALTY"]
    amount: int = Field(gt=0)
    note: Optional[str] = None


class PointAdjustmentRead(BaseModel):
    id: int
    child_id: int
    type: str
    points: int
    note: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True
