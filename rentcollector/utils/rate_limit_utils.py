"""
Rate limiting detection for remote ledger errors.

RPC providers signal rate limiting in different ways: an HTTP 429 status
that surfaces through httpx, a JSON-RPC error message, or a provider specific
text. This module centralises the check so every caller agrees on it.
"""

from typing import Optional

RATE_LIMIT_INDICATORS = [
    "429",
    "too many requests",
    "rate limit",
    "rate-limit",
    "ratelimit",
    "throttle",
]


def is_rate_limit_error(error_message: str) -> bool:
    """
    Check if an error message indicates rate limiting.

    Args:
        error_message: The error message to check

    Returns:
        True if this appears to be a rate limiting error
    """
    error_lower = error_message.lower()
    for indicator in RATE_LIMIT_INDICATORS:
        if indicator in error_lower:
            return True
    return False


def is_rate_limit_exception(error: Optional[BaseException]) -> bool:
    """
    Check an exception and its cause chain for a rate limiting signature.

    Args:
        error: The exception raised by a remote call

    Returns:
        True if the exception, or anything it was raised from, looks rate limited
    """
    seen = set()
    while error is not None and id(error) not in seen:
        seen.add(id(error))
        response = getattr(error, "response", None)
        if getattr(response, "status_code", None) == 429:
            return True
        if is_rate_limit_error(str(error)):
            return True
        error = error.__cause__ or error.__context__
    return False
