"""FastAPI server exposing the wellbeing analytics engine.

Read-only REST endpoints:
- /api/analysis/condition-hourly  event score distribution per slot
- /api/analysis/condition-daily   daily summary distribution + sleep averages
- /api/analysis/tag-correlation   per-tag contribution to future wellbeing
- /api/analysis/condition-trend   daily scores in date order
- /api/analysis/tag-usage         tag usage counts and mean event score

Malformed input yields HTTP 400 with ``{message, issues?}`` regardless of
which computation rejected it.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import redis
from fastapi import FastAPI, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from wellbeing.config.settings import REDIS_URL, REFERENCE_TIMEZONE
from wellbeing.engine import reports
from wellbeing.engine.errors import AnalyticsError

logger = logging.getLogger(__name__)

app = FastAPI(title="Wellbeing Analytics", description="Score distributions and tag contributions")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"


class ErrorResponse(BaseModel):
    message: str
    issues: Optional[Any] = None


class HealthResponse(BaseModel):
    status: str
    redis: bool
    referenceTimezone: str


BAD_REQUEST = {400: {"model": ErrorResponse, "description": "Invalid granularity or date range"}}


def _get_redis() -> redis.Redis:
    return redis.Redis.from_url(REDIS_URL, decode_responses=True)


# ── Error Handling ───────────────────────────────────────────────────────

@app.exception_handler(AnalyticsError)
async def analytics_error_handler(request: Request, exc: AnalyticsError):
    logger.info("Rejected %s: %s", request.url.path, exc.message)
    return JSONResponse(status_code=400, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    logger.info("Rejected %s: invalid query parameters", request.url.path)
    return JSONResponse(
        status_code=400,
        content={"message": "Invalid query parameters", "issues": jsonable_encoder(exc.errors())},
    )


# ── REST Endpoints ───────────────────────────────────────────────────────

@app.get("/api/health", response_model=HealthResponse)
def health():
    r = _get_redis()
    try:
        r.ping()
        redis_ok = True
    except redis.RedisError:
        redis_ok = False

    return {
        "status": "ok",
        "redis": redis_ok,
        "referenceTimezone": REFERENCE_TIMEZONE,
    }


@app.get("/api/analysis/condition-hourly", responses=BAD_REQUEST)
def condition_hourly(
    granularity: Optional[str] = Query(None, description="e.g. 3h, 1d, 1w, 1m"),
    from_: Optional[str] = Query(None, alias="from", pattern=DATE_PATTERN),
    to: Optional[str] = Query(None, pattern=DATE_PATTERN),
):
    """Event score distribution over gap-filled slots."""
    return reports.condition_distribution(granularity, from_, to, r=_get_redis())


@app.get("/api/analysis/condition-daily", responses=BAD_REQUEST)
def condition_daily(
    granularity: Optional[str] = Query(None, description="e.g. 1w, 1m"),
    from_: Optional[str] = Query(None, alias="from", pattern=DATE_PATTERN),
    to: Optional[str] = Query(None, pattern=DATE_PATTERN),
):
    """Daily summary score ratios per slot, with average sleep."""
    return reports.daily_distribution(granularity, from_, to, r=_get_redis())


@app.get("/api/analysis/tag-correlation", responses=BAD_REQUEST)
def tag_correlation(
    granularity: Optional[str] = Query(None, description="e.g. 1d, 1w, 1m"),
    from_: Optional[str] = Query(None, alias="from", pattern=DATE_PATTERN),
    to: Optional[str] = Query(None, pattern=DATE_PATTERN),
):
    """Shrunk per-tag contributions with confidence and credible intervals."""
    return reports.tag_correlation(granularity, from_, to, r=_get_redis())


@app.get("/api/analysis/condition-trend", responses=BAD_REQUEST)
def condition_trend(
    from_: Optional[str] = Query(None, alias="from", pattern=DATE_PATTERN),
    to: Optional[str] = Query(None, pattern=DATE_PATTERN),
):
    return reports.condition_trend(from_, to, r=_get_redis())


@app.get("/api/analysis/tag-usage", responses=BAD_REQUEST)
def tag_usage(
    from_: Optional[str] = Query(None, alias="from", pattern=DATE_PATTERN),
    to: Optional[str] = Query(None, pattern=DATE_PATTERN),
):
    return reports.tag_usage(from_, to, r=_get_redis())
