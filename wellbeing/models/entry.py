"""Wellbeing log records as stored in Redis.

The analytics engine only reads these; writes exist for the seed script and
tests.  Every write bumps ``VERSION_KEY`` so readers can detect a concurrent
update while assembling a snapshot.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import IntEnum
from typing import Optional

import redis

from wellbeing.engine.timezone import ensure_aware, from_reference_date, parse_instant, to_utc_iso

EVENT_PREFIX = "event:"
EVENT_INDEX_KEY = "event:index"
DAILY_PREFIX = "daily:"
DAILY_INDEX_KEY = "daily:index"
TAG_PREFIX = "tag:"
TAG_INDEX_KEY = "tag:index"
VERSION_KEY = "wellbeing:version"


class Score(IntEnum):
    VERY_BAD = -2
    BAD = -1
    NEUTRAL = 0
    GOOD = 1
    VERY_GOOD = 2


# Canonical bins, always iterated in this order
SCORE_VALUES: tuple[int, ...] = tuple(int(s) for s in Score)


def _optional_int(value) -> Optional[int]:
    if value is None or value == "":
        return None
    return int(value)


@dataclass
class Event:
    event_id: str
    timestamp: datetime
    score: Optional[int] = Score.NEUTRAL   # None = not scored
    tag_ids: set = field(default_factory=set)

    def to_dict(self) -> dict:
        return {
            "event_id": self.event_id,
            "timestamp": to_utc_iso(self.timestamp),
            "score": "" if self.score is None else int(self.score),
            "tag_ids": json.dumps(sorted(self.tag_ids)),
        }

    @classmethod
    def from_dict(cls, data: dict) -> Event:
        return cls(
            event_id=data["event_id"],
            timestamp=parse_instant(data["timestamp"]),
            score=_optional_int(data.get("score")),
            tag_ids=set(json.loads(data.get("tag_ids") or "[]")),
        )

    def to_redis(self, r: redis.Redis) -> None:
        """Persist the event hash and index it by epoch seconds."""
        r.hset(f"{EVENT_PREFIX}{self.event_id}", mapping=self.to_dict())
        r.zadd(EVENT_INDEX_KEY, {self.event_id: ensure_aware(self.timestamp).timestamp()})
        r.incr(VERSION_KEY)

    @classmethod
    def from_redis(cls, r: redis.Redis, event_id: str) -> Optional[Event]:
        data = r.hgetall(f"{EVENT_PREFIX}{event_id}")
        if not data:
            return None
        return cls.from_dict(_decode(data))


@dataclass
class DailySummary:
    day: date
    score: Optional[int] = Score.NEUTRAL
    sleep_start: Optional[datetime] = None
    sleep_end: Optional[datetime] = None

    @property
    def timestamp(self) -> datetime:
        """Start of the day in the reference timezone, as a UTC instant."""
        return from_reference_date(self.day)

    def to_dict(self) -> dict:
        return {
            "date": self.day.isoformat(),
            "score": "" if self.score is None else int(self.score),
            "sleep_start": to_utc_iso(self.sleep_start) if self.sleep_start else "",
            "sleep_end": to_utc_iso(self.sleep_end) if self.sleep_end else "",
        }

    @classmethod
    def from_dict(cls, data: dict) -> DailySummary:
        return cls(
            day=date.fromisoformat(data["date"]),
            score=_optional_int(data.get("score")),
            sleep_start=parse_instant(data["sleep_start"]) if data.get("sleep_start") else None,
            sleep_end=parse_instant(data["sleep_end"]) if data.get("sleep_end") else None,
        )

    def to_redis(self, r: redis.Redis) -> None:
        """Persist the summary hash; one per calendar day, keyed by date."""
        r.hset(f"{DAILY_PREFIX}{self.day.isoformat()}", mapping=self.to_dict())
        r.zadd(DAILY_INDEX_KEY, {self.day.isoformat(): self.day.toordinal()})
        r.incr(VERSION_KEY)

    @classmethod
    def from_redis(cls, r: redis.Redis, day: str) -> Optional[DailySummary]:
        data = r.hgetall(f"{DAILY_PREFIX}{day}")
        if not data:
            return None
        return cls.from_dict(_decode(data))


@dataclass
class Tag:
    tag_id: str
    name: str

    def to_redis(self, r: redis.Redis) -> None:
        r.hset(f"{TAG_PREFIX}{self.tag_id}", mapping={"tag_id": self.tag_id, "name": self.name})
        r.sadd(TAG_INDEX_KEY, self.tag_id)
        r.incr(VERSION_KEY)

    @classmethod
    def from_redis(cls, r: redis.Redis, tag_id: str) -> Optional[Tag]:
        data = r.hgetall(f"{TAG_PREFIX}{tag_id}")
        if not data:
            return None
        data = _decode(data)
        return cls(tag_id=data["tag_id"], name=data.get("name", ""))


def _decode(data: dict) -> dict:
    return {k.decode() if isinstance(k, bytes) else k:
            v.decode() if isinstance(v, bytes) else v
            for k, v in data.items()}
