"""Analysis reports: parse the query, read one snapshot, shape the response.

Each report validates its query first (granularity and dates), so invalid
input never reaches Redis.  The snapshot is read once; everything after that
is pure computation over in-memory records.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import date, datetime, timedelta
from typing import Optional

import redis

from wellbeing.config.settings import (
    DEFAULT_CORRELATION_GRANULARITY,
    DEFAULT_DAILY_GRANULARITY,
    DEFAULT_EVENT_GRANULARITY,
    TREND_DEFAULT_DAYS,
)
from wellbeing.engine.correlation import LagCorrelationEstimator, occurrences_from_events
from wellbeing.engine.granularity import (
    Granularity,
    parse_granularity,
    resolve_date_range,
    resolve_window,
)
from wellbeing.engine.slots import bucket_daily_summaries, bucket_scores
from wellbeing.engine.snapshot import load_snapshot
from wellbeing.engine.timezone import (
    calendar_guard,
    from_reference_date,
    parse_date,
    to_reference_date,
)

logger = logging.getLogger(__name__)

_ONE_DAY = timedelta(days=1)


def _parse_dates(from_str: Optional[str], to_str: Optional[str]) -> tuple[Optional[date], Optional[date]]:
    from_date = parse_date(from_str, "from") if from_str else None
    to_date = parse_date(to_str, "to") if to_str else None
    return from_date, to_date


def _parse_query(
    granularity: Optional[str],
    default_granularity: str,
    from_str: Optional[str],
    to_str: Optional[str],
) -> tuple[Granularity, Optional[date], Optional[date]]:
    g = parse_granularity(granularity or default_granularity)
    from_date, to_date = _parse_dates(from_str, to_str)
    return g, from_date, to_date


def condition_distribution(
    granularity: Optional[str] = None,
    from_str: Optional[str] = None,
    to_str: Optional[str] = None,
    now: Optional[datetime] = None,
    r: redis.Redis | None = None,
) -> dict:
    """Score distribution of individual events per slot."""
    g, from_date, to_date = _parse_query(granularity, DEFAULT_EVENT_GRANULARITY, from_str, to_str)
    window = resolve_window(g, from_date, to_date, now=now)

    snapshot = load_snapshot(event_range=(window.start, window.end), r=r)
    slots = bucket_scores(window, ((e.timestamp, e.score) for e in snapshot.events))

    logger.info(
        "Condition distribution (%s): %d event(s) into %d slot(s)",
        g.spec, len(snapshot.events), len(slots),
    )
    return {"items": [s.to_dict() for s in slots], "granularity": g.spec}


def daily_distribution(
    granularity: Optional[str] = None,
    from_str: Optional[str] = None,
    to_str: Optional[str] = None,
    now: Optional[datetime] = None,
    r: redis.Redis | None = None,
) -> dict:
    """Score distribution of daily summaries per slot, with sleep averages."""
    g, from_date, to_date = _parse_query(granularity, DEFAULT_DAILY_GRANULARITY, from_str, to_str)
    window = resolve_window(g, from_date, to_date, now=now)

    first_day = to_reference_date(window.start)
    last_day = to_reference_date(window.end - timedelta(microseconds=1))
    snapshot = load_snapshot(daily_range=(first_day, last_day), r=r)
    slots = bucket_daily_summaries(window, snapshot.dailies)

    logger.info(
        "Daily distribution (%s): %d summaries into %d slot(s)",
        g.spec, len(snapshot.dailies), len(slots),
    )
    return {"items": [s.to_dict(include_sleep=True) for s in slots], "granularity": g.spec}


def tag_correlation(
    granularity: Optional[str] = None,
    from_str: Optional[str] = None,
    to_str: Optional[str] = None,
    now: Optional[datetime] = None,
    r: redis.Redis | None = None,
) -> dict:
    """Per-tag contribution to future wellbeing, split by sign."""
    g, from_date, to_date = _parse_query(granularity, DEFAULT_CORRELATION_GRANULARITY, from_str, to_str)
    window = resolve_window(g, from_date, to_date, now=now)
    estimator = LagCorrelationEstimator(granularity=g)

    # Lags reach past the window end, so summaries are read that much further.
    first_day = to_reference_date(window.start)
    last_day = to_reference_date(window.end - timedelta(microseconds=1))
    with calendar_guard({"to": last_day.isoformat()}):
        last_day += timedelta(days=max(estimator.lag_days))
    snapshot = load_snapshot(
        event_range=(window.start, window.end),
        daily_range=(first_day, last_day),
        with_tag_names=True,
        r=r,
    )

    result = estimator.estimate(
        occurrences_from_events(snapshot.events),
        snapshot.daily_scores(),
        snapshot.tag_names,
    )
    return result.to_dict()


def condition_trend(
    from_str: Optional[str] = None,
    to_str: Optional[str] = None,
    now: Optional[datetime] = None,
    r: redis.Redis | None = None,
) -> dict:
    """Daily summary scores in date order over an inclusive day range."""
    from_date, to_date = _parse_dates(from_str, to_str)
    first_day, last_day = resolve_date_range(from_date, to_date, TREND_DEFAULT_DAYS, now=now)

    snapshot = load_snapshot(daily_range=(first_day, last_day), r=r)
    return {
        "items": [{"date": d.day.isoformat(), "condition": d.score} for d in snapshot.dailies],
    }


def tag_usage(
    from_str: Optional[str] = None,
    to_str: Optional[str] = None,
    now: Optional[datetime] = None,
    r: redis.Redis | None = None,
) -> dict:
    """How often each tag was used and the mean score of the tagged events."""
    from_date, to_date = _parse_dates(from_str, to_str)
    first_day, last_day = resolve_date_range(from_date, to_date, TREND_DEFAULT_DAYS, now=now)

    with calendar_guard({"from": first_day.isoformat(), "to": last_day.isoformat()}):
        start = from_reference_date(first_day)
        end = from_reference_date(last_day + _ONE_DAY)
    snapshot = load_snapshot(event_range=(start, end), with_tag_names=True, r=r)

    usage: dict[str, int] = defaultdict(int)
    scores: dict[str, list[int]] = defaultdict(list)
    for event in snapshot.events:
        for tag_id in event.tag_ids:
            usage[tag_id] += 1
            if event.score is not None:
                scores[tag_id].append(int(event.score))

    items = []
    for tag_id, count in usage.items():
        tag_scores = scores[tag_id]
        items.append({
            "tagId": tag_id,
            "tagName": snapshot.tag_names.get(tag_id, "Unknown"),
            "usageCount": count,
            "averageCondition": sum(tag_scores) / len(tag_scores) if tag_scores else None,
        })
    items.sort(key=lambda item: (-item["usageCount"], item["tagId"]))
    return {"items": items}
