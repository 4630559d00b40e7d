"""Retry delay policy."""

from ai_scan.consts import DEFAULT_BACKOFF_BASE, RATE_LIMIT_BACKOFF_BASE
from ai_scan.models.model_batch import ErrorKind


def calculate_retry_delay(attempt: int, error_kind: ErrorKind | None) -> float:
    """Exponential backoff delay in seconds before a retry.

    Rate limits back off from 60s (60, 120, 240, ...); every other error
    kind from 5s (5, 10, 20, ...).

    Args:
        attempt: 0-based index of the retry about to happen
        error_kind: Kind of the failure being retried

    Returns:
        Delay in seconds
    """
    base = RATE_LIMIT_BACKOFF_BASE if error_kind == ErrorKind.RATE_LIMIT else DEFAULT_BACKOFF_BASE
    return base * (2 ** max(0, attempt))
