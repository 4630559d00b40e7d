"""Tests for CheckpointManager."""

import json
import os
from pathlib import Path

import pytest

from ai_scan.errors import CheckpointError
from ai_scan.storage.checkpoint_manager import CheckpointManager


@pytest.fixture
def checkpoint_path(tmp_path: Path) -> Path:
    return tmp_path / ".ai-scan-checkpoint.json"


class TestCheckpointManager:
    """Tests for checkpoint persistence."""

    def test_load_missing_returns_none(self, checkpoint_path: Path) -> None:
        manager = CheckpointManager(checkpoint_path)

        assert manager.load_checkpoint() is None
        assert not manager.is_processed("anything")

    def test_init_and_save_writes_json(self, checkpoint_path: Path) -> None:
        manager = CheckpointManager(checkpoint_path)
        checkpoint = manager.init_checkpoint("/data/scans.csv")

        manager.save_checkpoint(checkpoint)

        data = json.loads(checkpoint_path.read_text(encoding="utf-8"))
        assert data["inputFile"] == "/data/scans.csv"
        assert data["processedScanIds"] == []
        assert data["lastBatch"] == 0
        assert data["lastMiniBatch"] == 0
        assert "startedAt" in data and "updatedAt" in data
        assert not Path(f"{checkpoint_path}.tmp").exists()

    def test_mark_processed_buffers_until_flush(self, checkpoint_path: Path) -> None:
        manager = CheckpointManager(checkpoint_path)
        manager.save_checkpoint(manager.init_checkpoint("input.csv"))

        manager.mark_processed(["a", "b"])
        on_disk = json.loads(checkpoint_path.read_text(encoding="utf-8"))
        assert on_disk["processedScanIds"] == []
        assert not manager.is_processed("a")

        manager.flush(last_batch=1, last_mini_batch=3)

        on_disk = json.loads(checkpoint_path.read_text(encoding="utf-8"))
        assert on_disk["processedScanIds"] == ["a", "b"]
        assert on_disk["lastBatch"] == 1
        assert on_disk["lastMiniBatch"] == 3
        assert manager.is_processed("a")

    def test_processed_ids_only_grow(self, checkpoint_path: Path) -> None:
        manager = CheckpointManager(checkpoint_path)
        manager.save_checkpoint(manager.init_checkpoint("input.csv"))

        manager.mark_processed(["a", "b"])
        manager.flush()
        manager.mark_processed(["b", "c"])
        manager.flush()

        reloaded = CheckpointManager(checkpoint_path).load_checkpoint()
        assert reloaded is not None
        assert reloaded.processed_scan_ids == ["a", "b", "c"]

    def test_flush_updates_timestamp(self, checkpoint_path: Path) -> None:
        manager = CheckpointManager(checkpoint_path)
        checkpoint = manager.init_checkpoint("input.csv")
        manager.save_checkpoint(checkpoint)
        first_update = checkpoint.updated_at

        manager.mark_processed(["a"])
        manager.flush()

        assert manager.checkpoint.updated_at >= first_update
        assert manager.checkpoint.started_at == checkpoint.started_at

    def test_flush_without_checkpoint_raises(self, checkpoint_path: Path) -> None:
        manager = CheckpointManager(checkpoint_path)
        manager.mark_processed(["a"])

        with pytest.raises(CheckpointError):
            manager.flush()

    def test_resume_from_disk(self, checkpoint_path: Path) -> None:
        first = CheckpointManager(checkpoint_path)
        first.save_checkpoint(first.init_checkpoint("input.csv"))
        first.mark_processed(["a"])
        first.flush()

        second = CheckpointManager(checkpoint_path)
        checkpoint = second.load_checkpoint()

        assert checkpoint is not None
        assert checkpoint.input_file == "input.csv"
        assert second.is_processed("a")
        assert not second.is_processed("b")

    def test_corrupt_checkpoint_raises(self, checkpoint_path: Path) -> None:
        checkpoint_path.write_text("{not json", encoding="utf-8")

        with pytest.raises(CheckpointError):
            CheckpointManager(checkpoint_path).load_checkpoint()

    def test_failed_write_keeps_previous_state(self, checkpoint_path: Path, monkeypatch) -> None:
        manager = CheckpointManager(checkpoint_path)
        manager.save_checkpoint(manager.init_checkpoint("input.csv"))
        manager.mark_processed(["a"])
        manager.flush()

        real_replace = os.replace

        def broken_replace(src, dst):
            raise OSError("disk full")

        monkeypatch.setattr("ai_scan.storage.checkpoint_manager.os.replace", broken_replace)
        manager.mark_processed(["b"])
        with pytest.raises(CheckpointError):
            manager.flush()

        on_disk = json.loads(checkpoint_path.read_text(encoding="utf-8"))
        assert on_disk["processedScanIds"] == ["a"]
        assert not manager.is_processed("b")
        assert manager.checkpoint.processed_scan_ids == ["a"]
        assert manager.processed_count == 1

        # Buffered IDs survive the failed write and go out with the next flush
        monkeypatch.setattr("ai_scan.storage.checkpoint_manager.os.replace", real_replace)
        manager.flush()

        assert json.loads(checkpoint_path.read_text(encoding="utf-8"))["processedScanIds"] == ["a", "b"]
        assert manager.is_processed("b")
        assert manager.processed_count == 2

    def test_clear_checkpoint(self, checkpoint_path: Path) -> None:
        manager = CheckpointManager(checkpoint_path)
        manager.save_checkpoint(manager.init_checkpoint("input.csv"))
        manager.mark_processed(["a"])
        manager.flush()

        manager.clear_checkpoint()

        assert not checkpoint_path.exists()
        assert manager.checkpoint is None
        assert not manager.is_processed("a")
        # Clearing twice is fine
        manager.clear_checkpoint()
