"""Seed Redis with eight weeks of demo wellbeing data.

Run: python -m wellbeing.scripts.seed_demo

Tags are wired with a known lagged effect so the correlation report has
something to find: exercise and meditation lift the following days,
overtime and late caffeine drag them down.
"""

import random
from datetime import datetime, time, timedelta, timezone

import redis

from wellbeing.config.settings import REDIS_URL
from wellbeing.engine.timezone import from_reference_date, today_reference
from wellbeing.models.entry import (
    DAILY_PREFIX,
    EVENT_PREFIX,
    TAG_PREFIX,
    VERSION_KEY,
    DailySummary,
    Event,
    Score,
    Tag,
)

DEMO_DAYS = 56

TAGS = [
    Tag(tag_id="tag-exercise", name="Exercise"),
    Tag(tag_id="tag-meditation", name="Meditation"),
    Tag(tag_id="tag-overtime", name="Overtime"),
    Tag(tag_id="tag-late-caffeine", name="Late caffeine"),
    Tag(tag_id="tag-headache", name="Headache"),
]

# Shift applied to the next three days' scores after a tagged event
TAG_EFFECTS = {
    "tag-exercise": 0.8,
    "tag-meditation": 0.5,
    "tag-overtime": -0.9,
    "tag-late-caffeine": -0.4,
    "tag-headache": 0.0,
}


def clear_log(r: redis.Redis) -> None:
    """Remove all events, daily summaries and tags."""
    for prefix in (EVENT_PREFIX, DAILY_PREFIX, TAG_PREFIX):
        for key in r.scan_iter(f"{prefix}*"):
            r.delete(key)
    r.delete(VERSION_KEY)


def _clamp_score(value: float) -> int:
    return max(Score.VERY_BAD, min(Score.VERY_GOOD, round(value)))


def seed(seed_value: int = 7):
    r = redis.Redis.from_url(REDIS_URL, decode_responses=True)
    clear_log(r)
    rng = random.Random(seed_value)

    for tag in TAGS:
        tag.to_redis(r)

    first_day = today_reference() - timedelta(days=DEMO_DAYS - 1)
    mood_shift = [0.0] * (DEMO_DAYS + 3)
    event_count = 0

    for offset in range(DEMO_DAYS):
        day = first_day + timedelta(days=offset)
        day_start = from_reference_date(day)

        # ── Events (micro-entries) ───────────────────────────────────────
        for n in range(rng.randint(2, 5)):
            tags = {t.tag_id for t in TAGS if rng.random() < 0.18}
            for tag_id in tags:
                for lag in (1, 2, 3):
                    mood_shift[offset + lag] += TAG_EFFECTS[tag_id] / lag
            event = Event(
                event_id=f"evt-{day.isoformat()}-{n}",
                timestamp=day_start + timedelta(hours=rng.uniform(7, 23)),
                score=_clamp_score(rng.gauss(mood_shift[offset], 1.0)),
                tag_ids=tags,
            )
            event.to_redis(r)
            event_count += 1

        # ── Daily summary with sleep ─────────────────────────────────────
        bedtime = from_reference_date(day - timedelta(days=1), time(23, 0))
        sleep_start = bedtime + timedelta(minutes=rng.randint(-60, 90))
        sleep_end = sleep_start + timedelta(hours=rng.uniform(5.5, 8.5))
        DailySummary(
            day=day,
            score=_clamp_score(rng.gauss(mood_shift[offset], 0.8)),
            sleep_start=sleep_start.astimezone(timezone.utc),
            sleep_end=sleep_end.astimezone(timezone.utc),
        ).to_redis(r)

    print(f"Seeded {len(TAGS)} tags, {event_count} events and {DEMO_DAYS} daily summaries")
    print(f"Range: {first_day.isoformat()} .. {(first_day + timedelta(days=DEMO_DAYS - 1)).isoformat()}")
    print(f"Generated at {datetime.now(timezone.utc).isoformat()}")


if __name__ == "__main__":
    seed()
