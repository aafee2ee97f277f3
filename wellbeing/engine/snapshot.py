"""Read-only snapshot of the wellbeing log, taken from Redis once per request.

The reads run under ``WATCH`` on the store version key.  Any write bumps that
key, so if one lands mid-read the empty ``MULTI/EXEC`` fails with
``WatchError`` and the whole snapshot is read again.  The engine itself holds
no locks.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Iterable, Optional

import redis

from wellbeing.config.settings import REDIS_URL
from wellbeing.models.entry import (
    DAILY_INDEX_KEY,
    EVENT_INDEX_KEY,
    VERSION_KEY,
    DailySummary,
    Event,
    Tag,
)

logger = logging.getLogger(__name__)

MAX_SNAPSHOT_ATTEMPTS = 5


class SnapshotConflict(RuntimeError):
    """Writes kept racing the snapshot read."""


@dataclass
class Snapshot:
    events: list[Event] = field(default_factory=list)
    dailies: list[DailySummary] = field(default_factory=list)
    tag_names: dict[str, str] = field(default_factory=dict)
    version: int = 0

    def daily_scores(self) -> dict[date, Optional[int]]:
        return {d.day: d.score for d in self.dailies}


def _get_redis() -> redis.Redis:
    return redis.Redis.from_url(REDIS_URL, decode_responses=True)


def get_events(start: datetime, end: datetime, r: redis.Redis | None = None) -> list[Event]:
    """Events with ``start <= timestamp < end``, oldest first."""
    r = r or _get_redis()
    event_ids = r.zrangebyscore(EVENT_INDEX_KEY, start.timestamp(), f"({end.timestamp()}")
    events = []
    for eid in event_ids:
        event = Event.from_redis(r, eid)
        if event:
            events.append(event)
    return events


def get_daily_summaries(first_day: date, last_day: date, r: redis.Redis | None = None) -> list[DailySummary]:
    """Daily summaries for the inclusive day range, in date order."""
    r = r or _get_redis()
    days = r.zrangebyscore(DAILY_INDEX_KEY, first_day.toordinal(), last_day.toordinal())
    summaries = []
    for day in days:
        daily = DailySummary.from_redis(r, day)
        if daily:
            summaries.append(daily)
    return summaries


def get_tag_names(tag_ids: Iterable[str], r: redis.Redis | None = None) -> dict[str, str]:
    r = r or _get_redis()
    names = {}
    for tag_id in sorted(set(tag_ids)):
        tag = Tag.from_redis(r, tag_id)
        if tag:
            names[tag_id] = tag.name
    return names


def load_snapshot(
    event_range: tuple[datetime, datetime] | None = None,
    daily_range: tuple[date, date] | None = None,
    with_tag_names: bool = False,
    r: redis.Redis | None = None,
) -> Snapshot:
    """Read events, daily summaries and tag names as one consistent snapshot."""
    r = r or _get_redis()

    for attempt in range(1, MAX_SNAPSHOT_ATTEMPTS + 1):
        with r.pipeline() as pipe:
            try:
                pipe.watch(VERSION_KEY)
                snapshot = Snapshot(version=int(pipe.get(VERSION_KEY) or 0))
                if event_range is not None:
                    snapshot.events = get_events(*event_range, r=pipe)
                if daily_range is not None:
                    snapshot.dailies = get_daily_summaries(*daily_range, r=pipe)
                if with_tag_names:
                    tag_ids = {t for e in snapshot.events for t in e.tag_ids}
                    snapshot.tag_names = get_tag_names(tag_ids, r=pipe)
                pipe.multi()
                pipe.execute()
            except redis.WatchError:
                logger.warning(
                    "Snapshot read raced a write (attempt %d/%d), retrying",
                    attempt, MAX_SNAPSHOT_ATTEMPTS,
                )
                continue

        logger.debug(
            "Snapshot v%d: %d event(s), %d daily summaries",
            snapshot.version, len(snapshot.events), len(snapshot.dailies),
        )
        return snapshot

    raise SnapshotConflict(f"Could not read a consistent snapshot after {MAX_SNAPSHOT_ATTEMPTS} attempts")
