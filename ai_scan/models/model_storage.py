"""On-disk state models for checkpoint and lock files."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from ai_scan.models.common import _utc_now


class Checkpoint(BaseModel):
    """Checkpoint file stored next to the run as .ai-scan-checkpoint.json.

    Processed IDs only ever grow while a run owns the checkpoint.
    """

    model_config = ConfigDict(populate_by_name=True)

    input_file: str = Field(alias="inputFile", description="Input source identifier")
    processed_scan_ids: list[str] = Field(default_factory=list, alias="processedScanIds")
    last_batch: int = Field(default=0, ge=0, alias="lastBatch")
    last_mini_batch: int = Field(default=0, ge=0, alias="lastMiniBatch")
    output_file: str | None = Field(default=None, alias="outputFile", description="Results CSV rows are appended to")
    started_at: datetime = Field(default_factory=_utc_now, alias="startedAt")
    updated_at: datetime = Field(default_factory=_utc_now, alias="updatedAt")


class LockInfo(BaseModel):
    """Contents of the advisory lock file."""

    model_config = ConfigDict(populate_by_name=True)

    pid: int = Field(description="Owner process ID")
    hostname: str
    started_at: datetime = Field(default_factory=_utc_now, alias="startedAt")
