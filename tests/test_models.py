"""Tests for data models."""

import pytest
from pydantic import ValidationError

from ai_scan.models import Checkpoint, LockInfo, MiniBatch, PendingScan, ProcessorConfig

from conftest import make_scan


class TestProcessorConfig:
    """Tests for ProcessorConfig."""

    def test_defaults(self) -> None:
        config = ProcessorConfig()

        assert config.batch_size == 100
        assert config.mini_batch_size == 5
        assert config.delay_seconds == 5.0
        assert config.max_retries == 3
        assert config.timeout_seconds == 180

    @pytest.mark.parametrize("requested,expected", [(0, 1), (-1, 1), (7, 7), (42, 10)])
    def test_mini_batch_size_clamped(self, requested: int, expected: int) -> None:
        assert ProcessorConfig(mini_batch_size=requested).mini_batch_size == expected

    def test_batch_size_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            ProcessorConfig(batch_size=0)


class TestScanModels:
    """Tests for scan and batch models."""

    def test_pending_scan_is_immutable(self) -> None:
        scan = make_scan(1)

        with pytest.raises(ValidationError):
            scan.url = "https://other.example.com"

    def test_pending_scan_rejects_unknown_level(self) -> None:
        with pytest.raises(ValidationError):
            PendingScan(scan_id="s1", url="https://example.com", wcag_level="AAAA")

    def test_mini_batch_size_bounds(self) -> None:
        with pytest.raises(ValidationError):
            MiniBatch(mini_batch_number=1, scans=[])
        with pytest.raises(ValidationError):
            MiniBatch(mini_batch_number=1, scans=[make_scan(i) for i in range(11)])


class TestStorageModels:
    """Tests for checkpoint and lock file models."""

    def test_checkpoint_uses_file_key_names(self) -> None:
        checkpoint = Checkpoint(input_file="/data/scans.csv", processed_scan_ids=["a"])

        data = checkpoint.model_dump(mode="json", by_alias=True)

        assert set(data) == {
            "inputFile",
            "processedScanIds",
            "lastBatch",
            "lastMiniBatch",
            "startedAt",
            "updatedAt",
        }
        assert isinstance(data["startedAt"], str)

    def test_lock_info_round_trip(self) -> None:
        info = LockInfo(pid=1234, hostname="worker-1")

        data = info.model_dump(mode="json", by_alias=True)
        restored = LockInfo.model_validate(data)

        assert set(data) == {"pid", "hostname", "startedAt"}
        assert restored == info
