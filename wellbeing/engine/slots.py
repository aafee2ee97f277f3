"""Slot Aggregator — fixed-width, gap-filled score distributions.

Samples are bucketed by ``floor((t - window.start) / width)``.  Samples whose
index falls outside ``[0, total_slots)`` are dropped.  After all samples are
consumed, one summary is produced per slot index in ascending order, so empty
slots still appear with ``count == 0``, null min/max and empty histograms.

The companion sleep mode additionally averages (start, end) instant pairs per
slot: the representative start/end is the arithmetic mean of the raw instants,
and ``sleep_hours`` is the mean duration.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

from wellbeing.engine.granularity import Window
from wellbeing.engine.timezone import ensure_aware, to_utc_iso
from wellbeing.models.entry import SCORE_VALUES, DailySummary

logger = logging.getLogger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

SleepPair = tuple[Optional[datetime], Optional[datetime]]


@dataclass
class _SlotAccumulator:
    count: int = 0
    min: Optional[int] = None
    max: Optional[int] = None
    counts: dict[int, int] = field(default_factory=lambda: {v: 0 for v in SCORE_VALUES})
    sleep_samples: int = 0
    sleep_duration: timedelta = timedelta(0)
    sleep_start_total: timedelta = timedelta(0)   # sum of (start - epoch)
    sleep_end_total: timedelta = timedelta(0)

    def add(self, score: int) -> None:
        self.count += 1
        self.min = score if self.min is None else min(self.min, score)
        self.max = score if self.max is None else max(self.max, score)
        self.counts[score] += 1

    def add_sleep(self, start: datetime, end: datetime) -> None:
        self.sleep_samples += 1
        self.sleep_duration += end - start
        self.sleep_start_total += start - _EPOCH
        self.sleep_end_total += end - _EPOCH


@dataclass
class SlotSummary:
    slot_index: int
    start: datetime
    end: datetime
    count: int = 0
    min: Optional[int] = None
    max: Optional[int] = None
    counts: dict[int, int] = field(default_factory=dict)
    ratios: dict[int, float] = field(default_factory=dict)
    sleep_hours: Optional[float] = None
    sleep_start: Optional[datetime] = None
    sleep_end: Optional[datetime] = None

    def to_dict(self, include_sleep: bool = False) -> dict:
        d = {
            "slotIndex": self.slot_index,
            "startTime": to_utc_iso(self.start),
            "endTime": to_utc_iso(self.end),
            "min": self.min,
            "max": self.max,
            "count": self.count,
            "counts": {str(k): v for k, v in self.counts.items()},
            "ratios": {str(k): v for k, v in self.ratios.items()},
        }
        if include_sleep:
            d["sleepHours"] = self.sleep_hours
            d["sleepStart"] = to_utc_iso(self.sleep_start) if self.sleep_start else None
            d["sleepEnd"] = to_utc_iso(self.sleep_end) if self.sleep_end else None
        return d


class SlotAggregator:
    """Accumulates samples for one window; discard after ``summaries()``."""

    def __init__(self, window: Window):
        self._window = window
        self._total_slots = window.total_slots
        self._slots: dict[int, _SlotAccumulator] = {}
        self.discarded = 0

    @property
    def total_slots(self) -> int:
        return self._total_slots

    def add(
        self,
        timestamp: datetime,
        score: Optional[int],
        sleep: Optional[SleepPair] = None,
    ) -> bool:
        """Add one sample. Returns False when it was dropped."""
        if score is None or score not in SCORE_VALUES:
            self.discarded += 1
            return False

        index = self._window.slot_index(ensure_aware(timestamp))
        if index < 0 or index >= self._total_slots:
            self.discarded += 1
            return False

        acc = self._slots.get(index)
        if acc is None:
            acc = self._slots[index] = _SlotAccumulator()
        acc.add(int(score))

        if sleep is not None:
            start, end = sleep
            if start is not None and end is not None:
                start, end = ensure_aware(start), ensure_aware(end)
                if end >= start:
                    acc.add_sleep(start, end)
        return True

    def summaries(self) -> list[SlotSummary]:
        """One summary per slot index, ascending, including empty slots."""
        if self.discarded:
            logger.debug("Slot aggregation dropped %d sample(s) outside the window", self.discarded)

        result = []
        for index in range(self._total_slots):
            slot_start, slot_end = self._window.slot_bounds(index)
            acc = self._slots.get(index)
            if acc is None:
                result.append(SlotSummary(slot_index=index, start=slot_start, end=slot_end))
                continue

            summary = SlotSummary(
                slot_index=index,
                start=slot_start,
                end=slot_end,
                count=acc.count,
                min=acc.min,
                max=acc.max,
                counts=dict(acc.counts),
                ratios={v: acc.counts[v] / acc.count for v in SCORE_VALUES},
            )
            if acc.sleep_samples:
                n = acc.sleep_samples
                summary.sleep_hours = acc.sleep_duration.total_seconds() / 3600 / n
                summary.sleep_start = _EPOCH + acc.sleep_start_total / n
                summary.sleep_end = _EPOCH + acc.sleep_end_total / n
            result.append(summary)
        return result


def bucket_scores(
    window: Window,
    samples: Iterable[tuple[datetime, Optional[int]]],
) -> list[SlotSummary]:
    """Distribution of ``(timestamp, score)`` samples over the window."""
    aggregator = SlotAggregator(window)
    for timestamp, score in samples:
        aggregator.add(timestamp, score)
    return aggregator.summaries()


def bucket_daily_summaries(
    window: Window,
    summaries: Iterable[DailySummary],
) -> list[SlotSummary]:
    """Distribution of daily summaries, each placed at its day's start, with sleep averages."""
    aggregator = SlotAggregator(window)
    for daily in summaries:
        aggregator.add(daily.timestamp, daily.score, sleep=(daily.sleep_start, daily.sleep_end))
    return aggregator.summaries()
