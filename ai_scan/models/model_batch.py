"""Batch partitioning and execution outcome models."""

from dataclasses import dataclass, field
from enum import Enum

from pydantic import BaseModel, Field

from ai_scan.consts import MAX_MINI_BATCH_SIZE
from ai_scan.models.model_scan import PendingScan, ScanResult


class ErrorKind(str, Enum):
    """Classification of job failures."""

    # Invocation errors - retried with backoff
    RATE_LIMIT = "RATE_LIMIT"
    TIMEOUT = "TIMEOUT"
    PROCESS_CRASH = "PROCESS_CRASH"
    UNKNOWN = "UNKNOWN"

    # Reconciliation error - terminal for the missing job
    INVALID_OUTPUT = "INVALID_OUTPUT"


class MiniBatch(BaseModel):
    """Jobs sent to the agent in a single invocation."""

    mini_batch_number: int = Field(ge=1, description="1-based, resets per batch")
    scans: list[PendingScan] = Field(min_length=1, max_length=MAX_MINI_BATCH_SIZE)

    @property
    def size(self) -> int:
        return len(self.scans)


class Batch(BaseModel):
    """Outer grouping of mini-batches used for checkpointing and progress."""

    batch_number: int = Field(ge=1)
    scans: list[PendingScan]
    mini_batches: list[MiniBatch]


class FailedScan(BaseModel):
    """Terminal failure of a job."""

    scan_id: str
    url: str
    error_kind: ErrorKind
    error_message: str


@dataclass
class InvocationResult:
    """Result of one agent invocation."""

    success: bool
    output: str | None = None
    error: str | None = None
    error_kind: ErrorKind | None = None
    duration_ms: int = 0


@dataclass
class MiniBatchOutcome:
    """Result of processing one mini-batch, retries included."""

    mini_batch_number: int
    results: list[ScanResult] = field(default_factory=list)
    failed_scans: list[FailedScan] = field(default_factory=list)
    retry_count: int = 0
    duration_ms: int = 0


@dataclass
class ProcessingProgress:
    """Snapshot passed to progress callbacks before each mini-batch."""

    batch_number: int
    mini_batch_number: int
    total_mini_batches: int
    processed_urls: int
    total_urls: int
    current_url: str | None = None
