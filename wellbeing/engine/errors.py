"""Validation errors raised by the analytics engine.

All of them are detected before any store read or aggregation, and the
HTTP layer maps every subclass to the same 400 ``{message, issues}`` payload.
"""

from __future__ import annotations

from typing import Any, Optional


class AnalyticsError(Exception):
    """Base class for caller-facing validation failures."""

    def __init__(self, message: str, issues: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.issues = issues

    def to_dict(self) -> dict:
        payload: dict[str, Any] = {"message": self.message}
        if self.issues:
            payload["issues"] = self.issues
        return payload


class InvalidGranularity(AnalyticsError):
    """Granularity spec is unparseable or its magnitude is out of bounds."""


class InvalidRange(AnalyticsError):
    """Date range is malformed or ``from`` is later than ``to``."""
