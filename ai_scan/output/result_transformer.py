"""Map scan results to import rows."""

import json
import math

from ai_scan.consts import (
    AI_MODEL,
    DEFAULT_PROCESSING_TIME_SECONDS,
    TOKEN_ESTIMATE_BASE,
    TOKEN_ESTIMATE_CHARS_PER_TOKEN,
)
from ai_scan.models.model_output import ImportRow
from ai_scan.models.model_scan import ImpactLevel, ScanResult


def issues_to_json(result: ScanResult) -> str:
    """Serialize a result's issues as a JSON array with camelCase keys."""
    return json.dumps([issue.model_dump(mode="json", by_alias=True) for issue in result.issues])


def estimate_tokens_used(result: ScanResult, issues_json: str | None = None) -> int:
    """Rough token estimate: base prompt size plus output at ~4 chars per token."""
    issues_json = issues_json if issues_json is not None else issues_to_json(result)
    output_chars = len(result.summary) + len(result.remediation_plan) + len(issues_json)
    return TOKEN_ESTIMATE_BASE + math.ceil(output_chars / TOKEN_ESTIMATE_CHARS_PER_TOKEN)


def _processing_time_seconds(result: ScanResult) -> int:
    if not result.duration_ms:
        return DEFAULT_PROCESSING_TIME_SECONDS
    return math.ceil(result.duration_ms / 1000)


def transform_result(result: ScanResult) -> ImportRow:
    """Build the import row for one scan result."""
    counts = {impact: 0 for impact in ImpactLevel}
    for issue in result.issues:
        counts[issue.impact] += 1

    issues_json = issues_to_json(result)

    return ImportRow(
        scan_id=result.scan_id,
        url=result.url,
        page_title=result.page_title,
        wcag_level=result.wcag_level.value,
        ai_summary=result.summary,
        ai_remediation_plan=result.remediation_plan,
        ai_model=AI_MODEL,
        total_issues=len(result.issues),
        critical_count=counts[ImpactLevel.CRITICAL],
        serious_count=counts[ImpactLevel.SERIOUS],
        moderate_count=counts[ImpactLevel.MODERATE],
        minor_count=counts[ImpactLevel.MINOR],
        ai_issues_json=issues_json,
        status=result.status,
        error_message=None,
        tokens_used=estimate_tokens_used(result, issues_json),
        processing_time=_processing_time_seconds(result),
    )


def transform_to_import_format(results: list[ScanResult]) -> list[ImportRow]:
    """Transform scan results into import rows, one per result, in order."""
    return [transform_result(result) for result in results]
