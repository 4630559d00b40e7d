"""Run summary models."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class ProcessingStatus(str, Enum):
    """Overall outcome of a run."""

    COMPLETED = "completed"
    PARTIAL_FAILURE = "partial_failure"
    COMPLETE_FAILURE = "complete_failure"


class SummaryStats(BaseModel):
    """Aggregate counters collected while a run executes."""

    start_time: datetime
    end_time: datetime
    files_processed: int = Field(default=0, ge=0)
    total_urls: int = Field(default=0, ge=0)
    successful: int = Field(default=0, ge=0)
    failed: int = Field(default=0, ge=0)
    skipped: int = Field(default=0, ge=0)
    output_files: list[str] = Field(default_factory=list)
    failed_files: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)


class ProcessingSummary(BaseModel):
    """Machine-readable run report printed with --json-summary."""

    status: ProcessingStatus
    files_processed: int
    total_urls: int
    successful: int
    failed: int
    skipped: int
    duration_seconds: float
    output_files: list[str] = Field(default_factory=list)
    failed_files: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
