"""Checkpoint persistence for resumable runs."""

import json
import logging
import os
from pathlib import Path

from pydantic import ValidationError

from ai_scan.consts import CHECKPOINT_FILENAME
from ai_scan.errors import CheckpointError
from ai_scan.models.common import _utc_now
from ai_scan.models.model_storage import Checkpoint

logger = logging.getLogger(__name__)


class CheckpointManager:
    """Tracks processed scan IDs for one input source.

    IDs are buffered with mark_processed() and persisted by flush(). Writes go
    to a temp file that replaces the checkpoint, so a crash mid-write leaves the
    previously flushed state intact.
    """

    def __init__(self, checkpoint_path: Path | str = CHECKPOINT_FILENAME):
        """Initialize CheckpointManager.

        Args:
            checkpoint_path: Location of the checkpoint JSON file
        """
        self.checkpoint_path = Path(checkpoint_path)
        self._checkpoint: Checkpoint | None = None
        self._processed: set[str] = set()
        self._pending: list[str] = []

    @property
    def checkpoint(self) -> Checkpoint | None:
        return self._checkpoint

    @property
    def processed_count(self) -> int:
        return len(self._processed)

    def _adopt(self, checkpoint: Checkpoint) -> None:
        self._checkpoint = checkpoint
        self._processed = set(checkpoint.processed_scan_ids)

    def init_checkpoint(self, input_file: str) -> Checkpoint:
        """Start a fresh checkpoint for an input source (in memory only).

        Args:
            input_file: Identifier of the input source

        Returns:
            The new Checkpoint
        """
        now = _utc_now()
        checkpoint = Checkpoint(input_file=input_file, started_at=now, updated_at=now)
        self._adopt(checkpoint)
        self._pending = []
        return checkpoint

    def load_checkpoint(self) -> Checkpoint | None:
        """Load the persisted checkpoint.

        Returns:
            Checkpoint, or None if no checkpoint file exists

        Raises:
            CheckpointError: If the file exists but cannot be read or parsed
        """
        if not self.checkpoint_path.exists():
            self._checkpoint = None
            self._processed = set()
            return None

        try:
            data = json.loads(self.checkpoint_path.read_text(encoding="utf-8"))
            checkpoint = Checkpoint.model_validate(data)
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            raise CheckpointError(f"Failed to load checkpoint {self.checkpoint_path}: {e}") from e

        self._adopt(checkpoint)
        logger.debug(
            f"Loaded checkpoint {self.checkpoint_path} "
            f"({len(self._processed)} processed scans)"
        )
        return checkpoint

    def save_checkpoint(self, checkpoint: Checkpoint) -> Path:
        """Persist a checkpoint atomically, refreshing updated_at.

        Args:
            checkpoint: Checkpoint to write

        Returns:
            Path to the checkpoint file

        Raises:
            CheckpointError: If the file cannot be written
        """
        checkpoint.updated_at = _utc_now()
        content = json.dumps(checkpoint.model_dump(mode="json", by_alias=True), indent=2)
        tmp_path = self.checkpoint_path.with_name(self.checkpoint_path.name + ".tmp")

        try:
            self.checkpoint_path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(content, encoding="utf-8")
            os.replace(tmp_path, self.checkpoint_path)
        except OSError as e:
            raise CheckpointError(f"Failed to save checkpoint {self.checkpoint_path}: {e}") from e

        self._adopt(checkpoint)
        return self.checkpoint_path

    def mark_processed(self, scan_ids: list[str]) -> None:
        """Buffer scan IDs until the next flush()."""
        self._pending.extend(scan_ids)

    def flush(self, last_batch: int | None = None, last_mini_batch: int | None = None) -> None:
        """Append buffered IDs to the checkpoint and persist it.

        Args:
            last_batch: Batch number just completed
            last_mini_batch: Mini-batch number just completed

        Raises:
            CheckpointError: If no checkpoint is loaded or the write fails
        """
        if self._checkpoint is None:
            if not self._pending:
                return
            raise CheckpointError(
                "Cannot flush: no checkpoint loaded. Call load_checkpoint() or init_checkpoint() first."
            )

        new_ids = [sid for sid in dict.fromkeys(self._pending) if sid not in self._processed]
        update: dict = {"processed_scan_ids": [*self._checkpoint.processed_scan_ids, *new_ids]}
        if last_batch is not None:
            update["last_batch"] = last_batch
        if last_mini_batch is not None:
            update["last_mini_batch"] = last_mini_batch

        # In-memory state and the buffer only change once the write succeeded
        self.save_checkpoint(self._checkpoint.model_copy(update=update))
        self._pending = []

    def is_processed(self, scan_id: str) -> bool:
        return scan_id in self._processed

    def clear_checkpoint(self) -> None:
        """Delete the persisted checkpoint and forget in-memory state.

        Raises:
            CheckpointError: If the file exists but cannot be removed
        """
        try:
            self.checkpoint_path.unlink(missing_ok=True)
        except OSError as e:
            raise CheckpointError(f"Failed to clear checkpoint {self.checkpoint_path}: {e}") from e

        self._checkpoint = None
        self._processed = set()
        self._pending = []
        logger.debug(f"Cleared checkpoint {self.checkpoint_path}")
