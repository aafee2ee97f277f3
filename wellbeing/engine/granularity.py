"""Granularity Resolver — time-unit specs to slot widths and windows.

A granularity spec is ``"<magnitude><unit>"`` with unit one of
h (hour), d (day), w (week) or m (month).  Magnitudes are bounded per unit so
slot counts and lag lookups stay tractable:

  h: 1-24    d: 1-30    w: 1-4    m: 1-12

A month is treated as exactly 30 days.  Over multi-month windows the slot
boundaries drift away from calendar months; callers rely on the fixed width,
so this is kept as-is.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Optional

from wellbeing.config.settings import DEFAULT_WINDOW_SLOTS
from wellbeing.engine.errors import InvalidGranularity, InvalidRange
from wellbeing.engine.timezone import calendar_guard, from_reference_date, today_reference

UNIT_SECONDS: dict[str, int] = {
    "h": 3600,
    "d": 86400,
    "w": 7 * 86400,
    "m": 30 * 86400,  # approximation, not calendar-month aware
}

MAGNITUDE_BOUNDS: dict[str, tuple[int, int]] = {
    "h": (1, 24),
    "d": (1, 30),
    "w": (1, 4),
    "m": (1, 12),
}

UNIT_NAMES: dict[str, str] = {"h": "hour", "d": "day", "w": "week", "m": "month"}

# Future offsets looked up after a tagged event, in slot units
LAG_RANKS: tuple[int, ...] = (1, 2, 3)

_SPEC_RE = re.compile(r"^(\d+)([hdwm])$")
_ONE_DAY = timedelta(days=1)


@dataclass(frozen=True)
class Granularity:
    magnitude: int
    unit: str

    @property
    def spec(self) -> str:
        return f"{self.magnitude}{self.unit}"

    @property
    def slot_width(self) -> timedelta:
        return timedelta(seconds=self.magnitude * UNIT_SECONDS[self.unit])

    @property
    def lag_days(self) -> list[int]:
        """Day offsets for each lag rank.

        Daily summaries have day resolution, so sub-day slot widths step one
        day per rank.
        """
        step = max(self.slot_width // _ONE_DAY, 1)
        return [rank * step for rank in LAG_RANKS]


def parse_granularity(spec: str) -> Granularity:
    """Parse and bounds-check a granularity spec like ``"3h"`` or ``"1w"``."""
    match = _SPEC_RE.match((spec or "").strip())
    if not match:
        raise InvalidGranularity(
            f"Invalid granularity '{spec}': expected <magnitude><unit> with unit h, d, w or m",
            issues={"granularity": spec},
        )

    magnitude = int(match.group(1))
    unit = match.group(2)
    low, high = MAGNITUDE_BOUNDS[unit]
    if not low <= magnitude <= high:
        raise InvalidGranularity(
            f"Invalid granularity '{spec}': {UNIT_NAMES[unit]} magnitude must be "
            f"between {low} and {high}",
            issues={"granularity": spec},
        )
    return Granularity(magnitude=magnitude, unit=unit)


@dataclass(frozen=True)
class Window:
    """Half-open ``[start, end)`` UTC interval cut into fixed-width slots."""

    start: datetime
    end: datetime
    width: timedelta

    @property
    def total_slots(self) -> int:
        whole, remainder = divmod(self.end - self.start, self.width)
        return whole + (1 if remainder else 0)

    def slot_index(self, instant: datetime) -> int:
        """floor((instant - start) / width); may be negative or past the end."""
        return (instant - self.start) // self.width

    def slot_bounds(self, index: int) -> tuple[datetime, datetime]:
        slot_start = self.start + self.width * index
        return slot_start, slot_start + self.width


def resolve_window(
    granularity: Granularity,
    from_date: Optional[date] = None,
    to_date: Optional[date] = None,
    now: Optional[datetime] = None,
    default_slots: int = DEFAULT_WINDOW_SLOTS,
) -> Window:
    """Resolve inclusive calendar dates to a slot window.

    Explicit dates map to ``[from 00:00, to+1 00:00)`` in the reference
    timezone.  A missing ``to`` means today; a missing ``from`` means
    ``default_slots`` whole slots before the end.
    """
    if from_date is not None and to_date is not None and from_date > to_date:
        raise InvalidRange(
            "from must not be later than to",
            issues={"from": from_date.isoformat(), "to": to_date.isoformat()},
        )

    width = granularity.slot_width
    last_day = to_date if to_date is not None else today_reference(now)
    issues = {"to": last_day.isoformat()}
    if from_date is not None:
        issues["from"] = from_date.isoformat()

    with calendar_guard(issues):
        end = from_reference_date(last_day + _ONE_DAY)

        if from_date is not None:
            start = from_reference_date(from_date)
            if start >= end:
                raise InvalidRange("from must not be later than to", issues=issues)
        else:
            start = end - width * default_slots

        window = Window(
            start=start.astimezone(timezone.utc),
            end=end.astimezone(timezone.utc),
            width=width,
        )
        # The trailing slot keeps its full width and may end past ``end``
        window.slot_bounds(window.total_slots - 1)
    return window


def resolve_date_range(
    from_date: Optional[date],
    to_date: Optional[date],
    default_days: int,
    now: Optional[datetime] = None,
) -> tuple[date, date]:
    """Inclusive day range for the plain (unslotted) reports."""
    last_day = to_date if to_date is not None else today_reference(now)
    if from_date is not None:
        first_day = from_date
    else:
        with calendar_guard({"to": last_day.isoformat()}):
            first_day = last_day - timedelta(days=default_days - 1)
    if first_day > last_day:
        raise InvalidRange(
            "from must not be later than to",
            issues={"from": first_day.isoformat(), "to": last_day.isoformat()},
        )
    return first_day, last_day
