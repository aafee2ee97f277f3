"""Shared test fixtures for the wellbeing analytics test suite."""

from datetime import date, datetime, time, timedelta, timezone
from unittest.mock import patch

import fakeredis
import pytest

from wellbeing.engine.timezone import from_reference_date
from wellbeing.models.entry import DailySummary, Event, Tag


# ── Reference timezone ──────────────────────────────────────────────────

@pytest.fixture(autouse=True)
def tokyo_reference_zone():
    """Pin the reference zone so expected instants don't depend on the environment."""
    with patch("wellbeing.engine.timezone.REFERENCE_TIMEZONE", "Asia/Tokyo"):
        yield


def at(day: str, hour: int = 0, minute: int = 0) -> datetime:
    """UTC instant of a wall-clock time on a reference-zone calendar day."""
    return from_reference_date(date.fromisoformat(day), time(hour, minute))


# ── Redis ────────────────────────────────────────────────────────────────

@pytest.fixture
def r():
    """Fresh fakeredis server per test (decode_responses=True like production)."""
    return fakeredis.FakeRedis(server=fakeredis.FakeServer(), decode_responses=True)


# ── Time Freezing ───────────────────────────────────────────────────────

@pytest.fixture
def frozen_now():
    """Fixed 'now': 2025-10-16T03:00:00Z, i.e. noon on 2025-10-16 in Tokyo."""
    return datetime(2025, 10, 16, 3, 0, 0, tzinfo=timezone.utc)


# ── Record Factories ────────────────────────────────────────────────────

@pytest.fixture
def make_event():
    """Factory fixture that creates Event instances with sensible defaults.

    Usage:
        event = make_event(at("2025-10-15", 9), score=1, tag_ids={"tag-a"})
    """
    _counter = 0

    def _factory(timestamp, score=0, tag_ids=None, **overrides):
        nonlocal _counter
        _counter += 1
        defaults = {
            "event_id": f"evt-{_counter}",
            "timestamp": timestamp,
            "score": score,
            "tag_ids": set(tag_ids or ()),
        }
        defaults.update(overrides)
        return Event(**defaults)

    return _factory


@pytest.fixture
def make_daily():
    def _factory(day, score=0, sleep_start=None, sleep_end=None):
        if isinstance(day, str):
            day = date.fromisoformat(day)
        return DailySummary(day=day, score=score, sleep_start=sleep_start, sleep_end=sleep_end)

    return _factory


@pytest.fixture
def seed_log(r):
    """Store events, daily summaries and tags into the fake Redis."""

    def _seed(events=(), dailies=(), tags=()):
        for tag in tags:
            if isinstance(tag, tuple):
                tag = Tag(tag_id=tag[0], name=tag[1])
            tag.to_redis(r)
        for event in events:
            event.to_redis(r)
        for daily in dailies:
            daily.to_redis(r)

    return _seed


@pytest.fixture
def weekly_scenario(make_event, make_daily):
    """One 'walk' event at the start of each of five weeks from 2025-01-06,
    with weekly daily scores [-1, -2, 2, 2, 1] one week after each."""
    first = date(2025, 1, 6)
    events = [
        make_event(at((first + timedelta(weeks=k)).isoformat(), 12), score=0, tag_ids={"tag-walk"})
        for k in range(5)
    ]
    dailies = [
        make_daily(first + timedelta(weeks=k + 1), score=s)
        for k, s in enumerate([-1, -2, 2, 2, 1])
    ]
    return events, dailies
