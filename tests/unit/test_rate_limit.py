"""
Unit tests for the retry policy and rate limit header parsing.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from email.utils import format_datetime

import pytest

from x_ads.rate_limit import RateLimitInfo, RetryPolicy, parse_retry_after


# ============================================================================
# RateLimitInfo Tests
# ============================================================================


def test_rate_limit_info_from_headers():
    """Test parsing rate limit info from X API headers."""
    headers = {
        "x-rate-limit-limit": "300",
        "x-rate-limit-remaining": "299",
        "x-rate-limit-reset": "1728730800",
    }

    info = RateLimitInfo.from_headers(headers)

    assert info.limit == 300
    assert info.remaining == 299
    assert info.reset_at == 1728730800


def test_rate_limit_info_from_headers_case_insensitive():
    """Test header parsing is case-insensitive."""
    headers = {
        "X-Rate-Limit-Limit": "300",
        "X-RATE-LIMIT-REMAINING": "299",
        "x-RATE-limit-RESET": "1728730800",
    }

    info = RateLimitInfo.from_headers(headers)

    assert info.limit == 300
    assert info.remaining == 299
    assert info.reset_at == 1728730800


def test_rate_limit_info_from_headers_missing_values():
    """Test handling missing rate limit headers."""
    info = RateLimitInfo.from_headers({})

    assert info.limit is None
    assert info.remaining is None
    assert info.reset_at is None


def test_rate_limit_info_seconds_until_reset():
    """Test calculating seconds until rate limit reset."""
    now = datetime.now(timezone.utc).timestamp()

    info = RateLimitInfo(limit=300, remaining=0, reset_at=int(now + 3600))
    seconds = info.seconds_until_reset()
    assert seconds is not None
    assert 3550 <= seconds <= 3610

    assert RateLimitInfo(limit=300, remaining=0, reset_at=int(now - 3600)).seconds_until_reset() == 0.0
    assert RateLimitInfo(limit=300, remaining=0, reset_at=None).seconds_until_reset() is None


# ============================================================================
# RetryPolicy Tests
# ============================================================================


def test_retry_policy_calculate_delay_exponential():
    """Test exponential backoff calculation without jitter."""
    policy = RetryPolicy(base_delay=1.0, exponential_base=2.0, max_delay=60.0, jitter=False)

    assert policy.calculate_delay(0) == 1.0
    assert policy.calculate_delay(1) == 2.0
    assert policy.calculate_delay(2) == 4.0
    assert policy.calculate_delay(3) == 8.0


def test_retry_policy_calculate_delay_max_cap():
    """Test delay is capped at max_delay."""
    policy = RetryPolicy(base_delay=1.0, exponential_base=2.0, max_delay=10.0, jitter=False)

    # 1.0 * 2^10 = 1024.0, capped at 10.0
    assert policy.calculate_delay(10) == 10.0


def test_retry_policy_calculate_delay_with_jitter():
    """Test jitter draws the delay between 0 and the computed value."""
    policy = RetryPolicy(base_delay=1.0, exponential_base=2.0, max_delay=60.0, jitter=True)

    delays = [policy.calculate_delay(2) for _ in range(100)]

    assert all(0.0 <= d <= 4.0 for d in delays)
    assert len(set(delays)) > 10


def test_retry_policy_prefers_retry_after():
    policy = RetryPolicy(jitter=False)

    assert policy.delay_for(0, retry_after=7.0) == 7.0
    assert policy.delay_for(2) == 4.0


def test_retry_policy_caps_retry_after_at_max_delay():
    policy = RetryPolicy(max_delay=60.0, jitter=True)

    assert policy.delay_for(0, retry_after=3600.0) == 60.0
    assert policy.delay_for(3, retry_after=0.0) == 0.0


def test_retry_policy_default_retryable_statuses():
    policy = RetryPolicy()

    for status in (429, 500, 502, 503, 504):
        assert policy.is_retryable(status)
    for status in (400, 401, 403, 404, 422):
        assert not policy.is_retryable(status)


def test_retry_policy_rejects_invalid_values():
    with pytest.raises(ValueError):
        RetryPolicy(max_attempts=0)
    with pytest.raises(ValueError):
        RetryPolicy(base_delay=-1)


def test_retry_policy_is_immutable():
    policy = RetryPolicy()
    with pytest.raises(AttributeError):
        policy.max_attempts = 10  # type: ignore[misc]


# ============================================================================
# Retry-After parsing
# ============================================================================


@pytest.mark.parametrize(
    ("value", "expected"),
    [("2", 2.0), (" 10 ", 10.0), ("0", 0.0), ("-3", 0.0), ("", None), (None, None), ("soon", None)],
)
def test_parse_retry_after_seconds(value, expected):
    assert parse_retry_after(value) == expected


def test_parse_retry_after_http_date():
    when = datetime.now(timezone.utc) + timedelta(seconds=30)

    delay = parse_retry_after(format_datetime(when, usegmt=True))

    assert delay is not None
    assert 25 <= delay <= 31
