"""Pydantic models for AI Scan CLI."""

from ai_scan.models.model_batch import (
    Batch,
    ErrorKind,
    FailedScan,
    InvocationResult,
    MiniBatch,
    MiniBatchOutcome,
    ProcessingProgress,
)
from ai_scan.models.model_config import ProcessorConfig, clamp_mini_batch_size
from ai_scan.models.model_output import FailedScanRow, ImportRow
from ai_scan.models.model_scan import (
    ComplianceLevel,
    ImpactLevel,
    Issue,
    ParseResult,
    PendingScan,
    ScanResult,
    ScanStatus,
    SkippedRow,
)
from ai_scan.models.model_storage import Checkpoint, LockInfo
from ai_scan.models.model_summary import ProcessingStatus, ProcessingSummary, SummaryStats

__all__ = [
    # Scan models
    "ComplianceLevel",
    "ImpactLevel",
    "Issue",
    "ParseResult",
    "PendingScan",
    "ScanResult",
    "ScanStatus",
    "SkippedRow",
    # Batch models
    "Batch",
    "ErrorKind",
    "FailedScan",
    "InvocationResult",
    "MiniBatch",
    "MiniBatchOutcome",
    "ProcessingProgress",
    # Storage models
    "Checkpoint",
    "LockInfo",
    # Summary models
    "ProcessingStatus",
    "ProcessingSummary",
    "SummaryStats",
    # Output models
    "FailedScanRow",
    "ImportRow",
    # Config
    "ProcessorConfig",
    "clamp_mini_batch_size",
]
