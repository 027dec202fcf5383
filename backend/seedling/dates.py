"""Day boundary helpers shared by the streak, reward and backfill code.

Instants are naive ``datetime`` values in UTC, matching how the models
store timestamps.  A family's "day" is the calendar day in its IANA
timezone, so every boundary is computed by rendering the instant in that
zone and converting local midnight back to UTC.
"""

import functools
import logging
from datetime import date, datetime, time, timedelta, timezone as dt_timezone
from zoneinfo import ZoneInfo

from seedling.errors import InvalidTimezone

logger = logging.getLogger(__name__)

DEFAULT_TIMEZONE = "UTC"
WEEK_DAYS = ("SUN", "MON", "TUE", "WED", "THU", "FRI", "SAT")


def utcnow() -> datetime:
    """Current time as a naive UTC datetime."""
    return datetime.now(dt_timezone.utc).replace(tzinfo=None)


@functools.lru_cache(maxsize=64)
def _zone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (KeyError, ValueError, TypeError, OSError) as exc:
        raise InvalidTimezone(name) from exc


def is_valid_timezone(name: str | None) -> bool:
    if not name:
        return False
    try:
        _zone(name)
    except InvalidTimezone:
        return False
    return True


def resolve_timezone(name: str | None) -> str:
    """Return ``name`` if it is a usable zone, otherwise fall back to UTC."""
    if is_valid_timezone(name):
        return name
    if name:
        logger.warning("Unknown timezone %r, falling back to %s", name, DEFAULT_TIMEZONE)
    return DEFAULT_TIMEZONE


def _as_utc(instant: datetime) -> datetime:
    if instant.tzinfo is None:
        return instant.replace(tzinfo=dt_timezone.utc)
    return instant.astimezone(dt_timezone.utc)


def local_date(tz_name: str, instant: datetime) -> date:
    """Calendar date of ``instant`` as seen on a wall clock in ``tz_name``."""
    return _as_utc(instant).astimezone(_zone(tz_name)).date()


def day_start(tz_name: str, day: date) -> datetime:
    """UTC instant of local midnight at the start of ``day``."""
    local_midnight = datetime.combine(day, time.min, tzinfo=_zone(tz_name))
    return local_midnight.astimezone(dt_timezone.utc).replace(tzinfo=None)


def start_of_day(tz_name: str, instant: datetime) -> datetime:
    return day_start(tz_name, local_date(tz_name, instant))


def day_bounds(tz_name: str, instant: datetime) -> tuple[datetime, datetime]:
    """Half-open ``[start, end)`` window of the local day containing ``instant``.

    ``end`` is the following local midnight, so days that gain or lose an
    hour to daylight saving are 25 or 23 hours long.
    """
    day = local_date(tz_name, instant)
    return day_start(tz_name, day), day_start(tz_name, day + timedelta(days=1))


def day_key(day: date) -> str:
    # date.weekday() counts from Monday; keys count from Sunday.
    return WEEK_DAYS[(day.weekday() + 1) % 7]


def weekday_key(tz_name: str, instant: datetime) -> str:
    return day_key(local_date(tz_name, instant))
