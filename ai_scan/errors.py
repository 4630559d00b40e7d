"""Exceptions that abort a run.

Row-level and job-level problems never raise; they are recorded as
SkippedRow / FailedScan entries. Only the conditions below propagate.
"""

from pathlib import Path


class AiScanError(Exception):
    """Base class for run-aborting errors."""


class InputReadError(AiScanError):
    """The input source could not be read at all."""

    def __init__(self, path: Path | str, reason: str):
        self.path = Path(path)
        self.reason = reason
        super().__init__(f"Cannot read input file {self.path}: {reason}")


class CheckpointError(AiScanError):
    """Checkpoint state could not be read or persisted."""


class LockError(AiScanError):
    """Lock file I/O failed for a reason other than an existing lock."""


class CsvWriteError(AiScanError):
    """An output row could not be serialized."""


class TemplateError(AiScanError):
    """A prompt template is missing placeholders or fails to compile."""


class LockHeldError(AiScanError):
    """Another run owns the directory lock."""

    def __init__(self, lock_path: Path | str, owner: str | None = None, stale: bool = False):
        self.lock_path = Path(lock_path)
        self.owner = owner
        self.stale = stale
        detail = f" held by {owner}" if owner else ""
        hint = " (stale; rerun with --break-stale-lock to remove it)" if stale else ""
        super().__init__(f"Lock {self.lock_path}{detail}{hint}")
