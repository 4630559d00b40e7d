"""Batch execution and directory-mode file handling."""

from ai_scan.processing.backoff import calculate_retry_delay
from ai_scan.processing.directory_scanner import (
    ScanDirectoryResult,
    ensure_subdirectories,
    has_files_to_process,
    move_to_failed,
    move_to_processed,
    scan_directory,
)
from ai_scan.processing.mini_batch_processor import MiniBatchProcessor

__all__ = [
    "MiniBatchProcessor",
    "ScanDirectoryResult",
    "calculate_retry_delay",
    "ensure_subdirectories",
    "has_files_to_process",
    "move_to_failed",
    "move_to_processed",
    "scan_directory",
]
