"""Shared dependencies and lookups for route handlers."""

from datetime import datetime

from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from seedling.crud import get_child
from seedling.dates import resolve_timezone, utcnow
from seedling.models import Child


def get_now() -> datetime:
    """Request clock as a naive UTC datetime."""
    return utcnow()


async def get_child_context(db: AsyncSession, child_id: int) -> tuple[Child, str]:
    """Return the child and its family's timezone (UTC when unset or invalid)."""
    child = await get_child(db, child_id)
    if not child:
        raise HTTPException(status_code=404, detail="Child not found")
    tz_name = resolve_timezone(child.family.timezone if child.family else None)
    return child, tz_name
