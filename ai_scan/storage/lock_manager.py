"""Advisory single-instance lock for a working directory."""

import json
import logging
import os
import socket
from datetime import UTC, timedelta
from pathlib import Path

from pydantic import ValidationError

from ai_scan.consts import STALE_LOCK_MAX_AGE_SECONDS
from ai_scan.errors import LockError
from ai_scan.models.common import _utc_now
from ai_scan.models.model_storage import LockInfo

logger = logging.getLogger(__name__)


def _is_process_running(pid: int) -> bool:
    """Check whether a PID is alive on this host (signal 0 check)."""
    if pid <= 0:
        return False
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        # Exists but owned by someone else
        return True
    except OSError:
        return False
    return True


class LockManager:
    """File-existence mutex guarding a directory against concurrent runs.

    acquire_lock() never overwrites an existing lock file, stale or not.
    Stale locks are reported through is_stale() and removed only via
    break_lock().
    """

    def __init__(self, lock_file_path: Path | str):
        """Initialize LockManager.

        Args:
            lock_file_path: Location of the lock file
        """
        self.lock_file_path = Path(lock_file_path)
        self._owned = False

    @property
    def is_held(self) -> bool:
        """Whether this instance currently owns the lock."""
        return self._owned

    def acquire_lock(self) -> bool:
        """Create the lock file exclusively.

        Returns:
            True if acquired, False if a lock file already exists

        Raises:
            LockError: If the lock file cannot be created for another reason
        """
        info = LockInfo(pid=os.getpid(), hostname=socket.gethostname(), started_at=_utc_now())
        content = json.dumps(info.model_dump(mode="json", by_alias=True), indent=2)

        try:
            with open(self.lock_file_path, "x", encoding="utf-8") as f:
                f.write(content)
        except FileExistsError:
            logger.debug(f"Lock already held: {self.lock_file_path}")
            return False
        except OSError as e:
            raise LockError(f"Failed to create lock {self.lock_file_path}: {e}") from e

        self._owned = True
        logger.debug(f"Acquired lock {self.lock_file_path} (pid={info.pid})")
        return True

    def read_lock_info(self) -> LockInfo | None:
        """Read the current lock owner.

        Returns:
            LockInfo, or None if there is no lock or its content is unreadable
        """
        try:
            data = json.loads(self.lock_file_path.read_text(encoding="utf-8"))
            return LockInfo.model_validate(data)
        except FileNotFoundError:
            return None
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            logger.warning(f"Unreadable lock file {self.lock_file_path}: {e}")
            return None

    def release_lock(self) -> None:
        """Remove the lock file. Missing file is not an error.

        Raises:
            LockError: If the lock file exists but cannot be removed
        """
        try:
            self.lock_file_path.unlink(missing_ok=True)
        except OSError as e:
            raise LockError(f"Failed to release lock {self.lock_file_path}: {e}") from e

        self._owned = False
        logger.debug(f"Released lock {self.lock_file_path}")

    def is_stale(self, info: LockInfo) -> bool:
        """Report whether a lock looks abandoned.

        A lock is stale when it was taken on this host by a PID that is no
        longer running, or when it is older than 24 hours.

        Args:
            info: Lock contents from read_lock_info()

        Returns:
            True if the lock appears abandoned
        """
        if info.hostname == socket.gethostname() and not _is_process_running(info.pid):
            return True

        started_at = info.started_at
        if started_at.tzinfo is None:
            started_at = started_at.replace(tzinfo=UTC)
        age = _utc_now() - started_at
        return age > timedelta(seconds=STALE_LOCK_MAX_AGE_SECONDS)

    def break_lock(self) -> bool:
        """Remove a stale lock left by a crashed run.

        Returns:
            True if a stale lock was removed, False if there was no lock or it is live
        """
        info = self.read_lock_info()
        if info is None:
            if self.lock_file_path.exists():
                # Corrupt lock content, nothing to verify against
                logger.warning(f"Removing unreadable lock file {self.lock_file_path}")
                self.release_lock()
                return True
            return False

        if not self.is_stale(info):
            return False

        logger.warning(
            f"Removing stale lock {self.lock_file_path} "
            f"(pid={info.pid}, host={info.hostname}, started={info.started_at.isoformat()})"
        )
        self.release_lock()
        return True
