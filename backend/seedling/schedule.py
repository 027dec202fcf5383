"""Weekday schedules attached to tasks."""

from seedling.dates import WEEK_DAYS


def sanitize_day(value) -> str | None:
    """Map inputs such as ``"monday"`` or ``" Tue "`` to a weekday key."""
    if not isinstance(value, str):
        return None
    normalized = value.strip()[:3].upper()
    return normalized if normalized in WEEK_DAYS else None


def parse_days(value) -> list[str] | None:
    """Return the weekday keys of a stored schedule, or ``None`` for every day."""
    if not value or not isinstance(value, (list, tuple)):
        return None
    parsed = [day for day in (sanitize_day(entry) for entry in value) if day]
    return parsed or None


def is_active_on_day(value, key: str) -> bool:
    days = parse_days(value)
    if not days:
        return True
    return key in days
