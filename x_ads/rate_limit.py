"""
Rate limiting utilities and retry/backoff policy.
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Mapping

DEFAULT_RETRYABLE_STATUSES = frozenset({429, 500, 502, 503, 504})


@dataclass(slots=True)
class RateLimitInfo:
    """Represents parsed rate limit metadata from X API headers."""

    limit: int | None = None
    remaining: int | None = None
    reset_at: int | None = None

    @classmethod
    def from_headers(cls, headers: Mapping[str, str]) -> "RateLimitInfo":
        normalized = {key.lower(): value for key, value in headers.items()}
        return cls(
            limit=_to_int(normalized.get("x-rate-limit-limit")),
            remaining=_to_int(normalized.get("x-rate-limit-remaining")),
            reset_at=_to_int(normalized.get("x-rate-limit-reset")),
        )

    def seconds_until_reset(self) -> float | None:
        """Seconds until ``x-rate-limit-reset``; ``None`` when the header is absent."""

        if self.reset_at is None:
            return None
        now = datetime.now(timezone.utc).timestamp()
        return max(self.reset_at - now, 0.0)


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """
    Bounded exponential backoff applied by the API client.

    ``max_attempts`` counts every request, the first one included. With
    ``jitter`` enabled the delay is drawn uniformly from ``[0, computed]``.
    """

    max_attempts: int = 5
    base_delay: float = 1.0
    max_delay: float = 60.0
    exponential_base: float = 2.0
    jitter: bool = True
    retryable_statuses: frozenset[int] = field(default=DEFAULT_RETRYABLE_STATUSES)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError("delays must not be negative")

    def is_retryable(self, status: int) -> bool:
        return status in self.retryable_statuses

    def calculate_delay(self, attempt: int) -> float:
        """Backoff before retry number ``attempt`` (0 for the first retry)."""

        delay = min(self.base_delay * (self.exponential_base ** attempt), self.max_delay)
        if self.jitter:
            delay = random.uniform(0.0, delay)
        return delay

    def delay_for(self, attempt: int, retry_after: float | None = None) -> float:
        """Honor ``Retry-After`` capped at ``max_delay``, else back off."""

        if retry_after is not None:
            return min(retry_after, self.max_delay)
        return self.calculate_delay(attempt)


def parse_retry_after(value: str | None) -> float | None:
    """Parse a ``Retry-After`` header given as seconds or an HTTP date."""

    if value is None:
        return None
    value = value.strip()
    if not value:
        return None
    try:
        return max(float(value), 0.0)
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max((when - datetime.now(timezone.utc)).total_seconds(), 0.0)


def _to_int(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None
