"""Application-wide configuration loaded from environment variables."""

import os

from dotenv import load_dotenv

load_dotenv()

# Redis
REDIS_URL: str = os.getenv("REDIS_URL", "redis://localhost:6379")

# Calendar days and bucket boundaries are anchored to this zone; instants in
# responses are always emitted in UTC.  Slots are fixed absolute durations, so
# in a zone with daylight saving time, slot starts drift off local midnight
# after a transition and a day-start sample can fall into the previous slot.
REFERENCE_TIMEZONE: str = os.getenv("REFERENCE_TIMEZONE", "Asia/Tokyo")

# ── Analysis windows ─────────────────────────────────────────────────────

# Number of slots in the trailing window used when the caller omits from/to
DEFAULT_WINDOW_SLOTS: int = int(os.getenv("DEFAULT_WINDOW_SLOTS", "16"))

# Per-endpoint granularity defaults
DEFAULT_EVENT_GRANULARITY: str = os.getenv("DEFAULT_EVENT_GRANULARITY", "3h")
DEFAULT_DAILY_GRANULARITY: str = os.getenv("DEFAULT_DAILY_GRANULARITY", "1w")
DEFAULT_CORRELATION_GRANULARITY: str = os.getenv("DEFAULT_CORRELATION_GRANULARITY", "1d")

# Trailing days for the plain daily trend listing
TREND_DEFAULT_DAYS: int = int(os.getenv("TREND_DEFAULT_DAYS", "30"))

# ── Tag Correlation ──────────────────────────────────────────────────────

# Virtual sample count of the "no effect" prior
PRIOR_WEIGHT: float = float(os.getenv("PRIOR_WEIGHT", "5"))
# Prior variance, matched to the width of the -2..2 score range
PRIOR_VARIANCE: float = float(os.getenv("PRIOR_VARIANCE", "1.0"))
# Observation count at which confidence saturates at 1.0
CONFIDENCE_THRESHOLD: int = int(os.getenv("CONFIDENCE_THRESHOLD", "10"))

# ── Server Configuration ─────────────────────────────────────────────────

SERVER_HOST: str = os.getenv("SERVER_HOST", "0.0.0.0")
SERVER_PORT: int = int(os.getenv("SERVER_PORT", "8000"))
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
