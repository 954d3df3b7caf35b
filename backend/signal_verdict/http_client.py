"""
HTTP retry and timeout policy for outbound calls.

Only transient failures are retried: transport errors, timeouts, 429 and
5xx gateway errors. A response that arrived but could not be parsed is a
deterministic failure and is never retried.
"""

import httpx


class Timeouts:
    """Timeout presets (seconds)."""
    OPENAI_COMPLETION = 40.0
    OPENAI_EMBEDDING = 15.0
    CONNECT = 5.0


class RetryConfig:
    """Retry settings - minimal to avoid cumulative delays."""
    MAX_RETRIES = 2
    INITIAL_BACKOFF = 0.5  # seconds
    MAX_BACKOFF = 1.5      # seconds

    # Non-retryable status codes
    NON_RETRYABLE_CODES = frozenset({400, 401, 403, 404, 422})

    # Retryable status codes
    RETRYABLE_CODES = frozenset({429, 500, 502, 503, 504})


def get_timeout(seconds: float) -> httpx.Timeout:
    return httpx.Timeout(seconds, connect=Timeouts.CONNECT)


def is_retryable_error(status_code: int) -> bool:
    """Check if an HTTP error is retryable."""
    return status_code in RetryConfig.RETRYABLE_CODES


def backoff_delay(attempt: int) -> float:
    """Exponential backoff for the *attempt*-th retry (0-based), capped."""
    return min(RetryConfig.INITIAL_BACKOFF * (2 ** attempt), RetryConfig.MAX_BACKOFF)
