"""CSV parser for pending scan exports."""

import csv
import json
import logging
from pathlib import Path

from ai_scan.errors import InputReadError
from ai_scan.models.model_scan import ComplianceLevel, ParseResult, PendingScan, SkippedRow

logger = logging.getLogger(__name__)

VALID_WCAG_LEVELS = {level.value for level in ComplianceLevel}


def _is_valid_url(url: str) -> bool:
    """Check that a URL uses an http(s) scheme."""
    return url.startswith("http://") or url.startswith("https://")


def _clean(record: dict[str, str | None], key: str) -> str:
    value = record.get(key)
    if value is None:
        return ""
    return str(value).strip()


def _validate_row(record: dict[str, str | None], row_number: int) -> PendingScan | SkippedRow:
    """Validate one CSV record.

    Args:
        record: Row as read by csv.DictReader
        row_number: 1-based row number, header included

    Returns:
        PendingScan if the row is valid, SkippedRow with a reason otherwise
    """
    scan_id = _clean(record, "scan_id")
    url = _clean(record, "url")
    wcag_level = _clean(record, "wcag_level")

    if not scan_id:
        return SkippedRow(row=row_number, reason="Missing scan_id")

    if not url:
        return SkippedRow(row=row_number, reason="Empty URL")
    if not _is_valid_url(url):
        return SkippedRow(
            row=row_number,
            reason="Invalid URL format (must start with http:// or https://)",
        )

    if not wcag_level:
        return SkippedRow(row=row_number, reason="Missing wcag_level")
    if wcag_level not in VALID_WCAG_LEVELS:
        return SkippedRow(
            row=row_number,
            reason=f"Invalid wcag_level '{wcag_level}' (must be A, AA, or AAA)",
        )

    existing_issues: list = []
    issues_json = _clean(record, "issues_json")
    if issues_json:
        try:
            parsed = json.loads(issues_json)
            if isinstance(parsed, list):
                existing_issues = [issue for issue in parsed if isinstance(issue, dict)]
        except json.JSONDecodeError:
            # Optional column, the scan is still usable without it
            logger.warning(f"Could not parse issues_json for scan {scan_id}")

    return PendingScan(
        scan_id=scan_id,
        url=url,
        wcag_level=ComplianceLevel(wcag_level),
        email=_clean(record, "email") or None,
        created_at=_clean(record, "created_at") or None,
        page_title=_clean(record, "page_title") or None,
        existing_issues=existing_issues,
    )


def parse_input_csv(file_path: Path | str) -> ParseResult:
    """Parse the input CSV containing pending scans.

    Expected headers: scan_id, url, wcag_level, email, created_at, page_title,
    issues_json. Only scan_id, url and wcag_level are required. Rows are
    validated independently, so one bad row never aborts the rest.

    Args:
        file_path: Path to the CSV file

    Returns:
        ParseResult with valid scans, skipped rows and the data row count

    Raises:
        InputReadError: If the file cannot be opened or decoded
    """
    path = Path(file_path)
    scans: list[PendingScan] = []
    skipped: list[SkippedRow] = []
    total_rows = 0

    try:
        with path.open(newline="", encoding="utf-8-sig") as f:
            reader = csv.DictReader(f, skipinitialspace=True)
            for record in reader:
                # Blank lines come back as all-empty records
                if not any((value or "").strip() for value in record.values() if isinstance(value, str)):
                    continue

                total_rows += 1
                row_number = total_rows + 1

                outcome = _validate_row(record, row_number)
                if isinstance(outcome, SkippedRow):
                    logger.debug(f"Skipping row {row_number}: {outcome.reason}")
                    skipped.append(outcome)
                else:
                    scans.append(outcome)
    except (OSError, UnicodeDecodeError, csv.Error) as e:
        raise InputReadError(path, str(e)) from e

    logger.info(
        f"Parsed {path.name}: {len(scans)} valid scans, {len(skipped)} skipped "
        f"({total_rows} rows)"
    )
    return ParseResult(scans=scans, skipped=skipped, total_rows=total_rows)
