"""Run summary classification and JSON rendering."""

import json

from ai_scan.models.model_summary import ProcessingStatus, ProcessingSummary, SummaryStats


def classify_status(successful: int, failed: int) -> ProcessingStatus:
    """Overall status from success and failure counts."""
    if failed == 0:
        return ProcessingStatus.COMPLETED
    if successful == 0:
        return ProcessingStatus.COMPLETE_FAILURE
    return ProcessingStatus.PARTIAL_FAILURE


def generate_summary(stats: SummaryStats) -> ProcessingSummary:
    """Build the run summary from collected statistics.

    Args:
        stats: Counters and timestamps collected during the run

    Returns:
        ProcessingSummary with status and duration in seconds (2 decimals)
    """
    duration_ms = (stats.end_time - stats.start_time).total_seconds() * 1000

    return ProcessingSummary(
        status=classify_status(stats.successful, stats.failed),
        files_processed=stats.files_processed,
        total_urls=stats.total_urls,
        successful=stats.successful,
        failed=stats.failed,
        skipped=stats.skipped,
        duration_seconds=round(duration_ms / 1000, 2),
        output_files=list(stats.output_files),
        failed_files=list(stats.failed_files),
        errors=list(stats.errors),
    )


def get_json_summary(summary: ProcessingSummary) -> str:
    """Render the summary as 2-space indented JSON."""
    return json.dumps(summary.model_dump(mode="json"), indent=2)


def print_json_summary(summary: ProcessingSummary) -> None:
    """Print the JSON summary to stdout."""
    print(get_json_summary(summary))
