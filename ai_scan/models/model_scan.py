"""Scan job and finding models."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ComplianceLevel(str, Enum):
    """Target WCAG conformance tier."""

    A = "A"
    AA = "AA"
    AAA = "AAA"


class ImpactLevel(str, Enum):
    """Severity of an accessibility issue."""

    CRITICAL = "CRITICAL"
    SERIOUS = "SERIOUS"
    MODERATE = "MODERATE"
    MINOR = "MINOR"


class ScanStatus(str, Enum):
    """Terminal status of a processed job."""

    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class PendingScan(BaseModel):
    """A job read from the input source, immutable once parsed."""

    model_config = ConfigDict(frozen=True)

    scan_id: str = Field(min_length=1, description="Stable job identifier")
    url: str = Field(min_length=1, description="Page to analyze")
    wcag_level: ComplianceLevel = Field(description="Target compliance level")
    email: str | None = Field(default=None, description="Contact email")
    created_at: str | None = Field(default=None, description="ISO-8601 creation timestamp")
    page_title: str | None = Field(default=None, description="Known page title")
    existing_issues: list[dict[str, Any]] = Field(
        default_factory=list, description="Rule-engine issues to enhance"
    )


class SkippedRow(BaseModel):
    """An input row rejected by validation."""

    row: int = Field(ge=1, description="1-based row number, header included")
    reason: str


class ParseResult(BaseModel):
    """Outcome of parsing an input source."""

    scans: list[PendingScan] = Field(default_factory=list)
    skipped: list[SkippedRow] = Field(default_factory=list)
    total_rows: int = Field(default=0, ge=0, description="Data rows seen, header excluded")


class Issue(BaseModel):
    """A single AI finding, owned by its ScanResult.

    Serialized with the agent's camelCase keys so the embedded issues JSON
    matches what the import endpoint expects.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str
    rule_id: str = Field(default="", alias="ruleId")
    relevant_criterion: str = Field(default="", alias="wcagCriteria")
    impact: ImpactLevel = Field(default=ImpactLevel.MODERATE)
    description: str
    help_text: str = Field(default="", alias="helpText")
    help_url: str = Field(default="", alias="helpUrl")
    html_snippet: str = Field(default="", alias="htmlSnippet")
    selector: str = Field(default="", alias="cssSelector")
    ai_explanation: str = Field(default="", alias="aiExplanation")
    ai_fix_suggestion: str = Field(default="", alias="aiFixSuggestion")
    ai_priority: int = Field(default=5, ge=1, le=10, alias="aiPriority")


class ScanResult(BaseModel):
    """Findings for one successfully processed job."""

    scan_id: str
    url: str = ""
    page_title: str = ""
    wcag_level: ComplianceLevel = ComplianceLevel.AA
    summary: str = ""
    remediation_plan: str = ""
    issues: list[Issue] = Field(default_factory=list)
    status: ScanStatus = ScanStatus.COMPLETED
    duration_ms: int | None = Field(default=None, ge=0)
