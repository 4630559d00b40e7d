"""Row models for the CSV files handed to the import endpoint."""

from pydantic import BaseModel, Field

from ai_scan.models.model_scan import ScanStatus


class ImportRow(BaseModel):
    """One output row per completed job."""

    scan_id: str = Field(min_length=1)
    url: str
    page_title: str
    wcag_level: str
    ai_summary: str
    ai_remediation_plan: str
    ai_model: str
    total_issues: int = Field(ge=0)
    critical_count: int = Field(ge=0)
    serious_count: int = Field(ge=0)
    moderate_count: int = Field(ge=0)
    minor_count: int = Field(ge=0)
    ai_issues_json: str
    status: ScanStatus = ScanStatus.COMPLETED
    error_message: str | None = None
    tokens_used: int = Field(ge=0)
    processing_time: int = Field(ge=0, description="Seconds")


class FailedScanRow(BaseModel):
    """One row of the failed-scans CSV used for follow-up retries."""

    scan_id: str
    url: str
    error_type: str
    error_message: str
