"""Durable run state: checkpoint and lock files."""

from ai_scan.storage.checkpoint_manager import CheckpointManager
from ai_scan.storage.lock_manager import LockManager

__all__ = ["CheckpointManager", "LockManager"]
