"""Tests for retry delay calculation."""

import pytest

from ai_scan.models.model_batch import ErrorKind
from ai_scan.processing.backoff import calculate_retry_delay


class TestCalculateRetryDelay:
    """Tests for calculate_retry_delay."""

    def test_rate_limit_sequence(self) -> None:
        delays = [calculate_retry_delay(attempt, ErrorKind.RATE_LIMIT) for attempt in range(3)]

        assert delays == [60.0, 120.0, 240.0]

    @pytest.mark.parametrize(
        "kind",
        [ErrorKind.TIMEOUT, ErrorKind.PROCESS_CRASH, ErrorKind.UNKNOWN, None],
    )
    def test_general_sequence(self, kind) -> None:
        delays = [calculate_retry_delay(attempt, kind) for attempt in range(3)]

        assert delays == [5.0, 10.0, 20.0]
