"""Watched-directory discovery and file relocation."""

import logging
import shutil
from dataclasses import dataclass, field
from pathlib import Path

from ai_scan.consts import FAILED_DIRNAME, INPUT_FILE_EXTENSION, PROCESSED_DIRNAME
from ai_scan.models.common import _utc_now

logger = logging.getLogger(__name__)


@dataclass
class ScanDirectoryResult:
    """Eligible input files found in a directory."""

    files: list[Path] = field(default_factory=list)
    total_found: int = 0


def _eligible_files(directory: Path) -> list[Path]:
    return sorted(
        p
        for p in directory.iterdir()
        if p.is_file() and p.suffix.lower() == INPUT_FILE_EXTENSION and not p.name.startswith(".")
    )


def scan_directory(directory: Path | str, max_files: int | None = None) -> ScanDirectoryResult:
    """List eligible input files directly under a directory.

    Files are returned in lexicographic path order. Subdirectories
    (processed/, failed/) are not descended into.

    Args:
        directory: Watched directory
        max_files: Limit on returned files; total_found still counts all

    Returns:
        ScanDirectoryResult with files and the total number found
    """
    files = _eligible_files(Path(directory))
    total_found = len(files)
    if max_files is not None and max_files >= 0:
        files = files[:max_files]
    return ScanDirectoryResult(files=files, total_found=total_found)


def has_files_to_process(directory: Path | str) -> bool:
    """Check whether a directory holds at least one eligible input file."""
    path = Path(directory)
    if not path.is_dir():
        return False
    return bool(_eligible_files(path))


def ensure_subdirectories(directory: Path | str) -> tuple[Path, Path]:
    """Create processed/ and failed/ under a directory if missing.

    Returns:
        Tuple of (processed_dir, failed_dir)
    """
    base = Path(directory)
    processed_dir = base / PROCESSED_DIRNAME
    failed_dir = base / FAILED_DIRNAME
    processed_dir.mkdir(parents=True, exist_ok=True)
    failed_dir.mkdir(parents=True, exist_ok=True)
    return processed_dir, failed_dir


def _move(file_path: Path, target_dir: Path) -> Path:
    target_dir.mkdir(parents=True, exist_ok=True)
    destination = target_dir / file_path.name
    if destination.exists():
        # Keep earlier copies of a re-dropped file
        stamp = _utc_now().strftime("%Y%m%d-%H%M%S")
        destination = target_dir / f"{file_path.stem}-{stamp}{file_path.suffix}"
    shutil.move(str(file_path), str(destination))
    logger.info(f"Moved {file_path.name} to {target_dir.name}/")
    return destination


def move_to_processed(file_path: Path | str, directory: Path | str) -> Path:
    """Move an input file into directory/processed/.

    Returns:
        New path of the file
    """
    return _move(Path(file_path), Path(directory) / PROCESSED_DIRNAME)


def move_to_failed(file_path: Path | str, directory: Path | str) -> Path:
    """Move an input file into directory/failed/.

    Returns:
        New path of the file
    """
    return _move(Path(file_path), Path(directory) / FAILED_DIRNAME)
