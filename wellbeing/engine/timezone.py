"""Reference-timezone date arithmetic.

Every conversion between a calendar day and an absolute instant goes through
this module, so slot boundaries and lag offsets agree on where a day starts.
Instants are returned in UTC; calendar days are interpreted in
``REFERENCE_TIMEZONE``.

    "2025-10-15" (Asia/Tokyo) -> 2025-10-14T15:00:00+00:00
"""

from __future__ import annotations

from contextlib import contextmanager
from datetime import date, datetime, time, timezone
from zoneinfo import ZoneInfo

from wellbeing.config.settings import REFERENCE_TIMEZONE
from wellbeing.engine.errors import InvalidRange


def reference_zone() -> ZoneInfo:
    return ZoneInfo(REFERENCE_TIMEZONE)


def parse_date(value: str, field_name: str = "date") -> date:
    """Parse a ``YYYY-MM-DD`` string, rejecting impossible calendar dates."""
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError):
        raise InvalidRange(
            f"{field_name} must be a calendar date in YYYY-MM-DD format",
            issues={field_name: value},
        ) from None


@contextmanager
def calendar_guard(issues: dict):
    """Report date arithmetic that leaves years 1..9999 as an invalid range."""
    try:
        yield
    except OverflowError:
        raise InvalidRange(
            "date range is outside the supported calendar",
            issues=issues,
        ) from None


def format_date(day: date) -> str:
    return day.isoformat()


def ensure_aware(instant: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if instant.tzinfo is None:
        return instant.replace(tzinfo=timezone.utc)
    return instant


def to_reference_date(instant: datetime) -> date:
    """Calendar day of an instant as seen in the reference timezone."""
    return ensure_aware(instant).astimezone(reference_zone()).date()


def from_reference_date(day: date, at: time = time(0, 0)) -> datetime:
    """UTC instant of wall-clock ``at`` on ``day`` in the reference timezone."""
    local = datetime.combine(day, at, tzinfo=reference_zone())
    return local.astimezone(timezone.utc)


def today_reference(now: datetime | None = None) -> date:
    now = now or datetime.now(timezone.utc)
    return to_reference_date(now)


def parse_instant(value: str) -> datetime:
    return ensure_aware(datetime.fromisoformat(value.replace("Z", "+00:00")))


def to_utc_iso(instant: datetime) -> str:
    return ensure_aware(instant).astimezone(timezone.utc).isoformat()
