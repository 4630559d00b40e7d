"""CSV output for import rows and failed scans."""

import csv
import logging
import os
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ValidationError

from ai_scan.consts import OUTPUT_FILE_MODE
from ai_scan.errors import CsvWriteError
from ai_scan.models.common import _utc_now
from ai_scan.models.model_batch import FailedScan
from ai_scan.models.model_output import FailedScanRow, ImportRow

logger = logging.getLogger(__name__)

IMPORT_HEADERS = list(ImportRow.model_fields)
FAILED_SCANS_HEADERS = list(FailedScanRow.model_fields)


def _timestamp() -> str:
    return _utc_now().strftime("%Y%m%d-%H%M%S")


def generate_output_path(output_option: Path | str, input_stem: str | None = None) -> Path:
    """Resolve where results for one input file are written.

    A value ending in .csv is used as-is. An existing directory gets a
    generated ai-results-<input>-<timestamp>.csv inside it. Anything else is
    treated as a file path.

    Args:
        output_option: --output value
        input_stem: Input filename without extension

    Returns:
        Absolute output path
    """
    path = Path(output_option)
    if path.suffix.lower() == ".csv":
        return path.resolve()

    if path.is_dir():
        stem = input_stem or "scan"
        return (path / f"ai-results-{stem}-{_timestamp()}.csv").resolve()

    return path.resolve()


def generate_failed_scans_path(directory: Path | str) -> Path:
    """Path of the failed-scans CSV inside an output directory."""
    return (Path(directory) / f"failed-scans-{_timestamp()}.csv").resolve()


def _validate_rows(rows: Sequence[BaseModel | dict[str, Any]], model: type[BaseModel]) -> list[dict[str, Any]]:
    validated = []
    for index, row in enumerate(rows, start=1):
        data = row.model_dump() if isinstance(row, BaseModel) else row
        try:
            validated.append(model.model_validate(data).model_dump(mode="json"))
        except ValidationError as e:
            raise CsvWriteError(f"Row {index} is not a valid {model.__name__}: {e}") from e
    return validated


def _write(path: Path, headers: list[str], rows: list[dict[str, Any]], append: bool = False) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    write_header = not (append and path.exists() and path.stat().st_size > 0)
    try:
        with path.open("a" if append else "w", newline="", encoding="utf-8") as f:
            writer = csv.DictWriter(f, fieldnames=headers, quoting=csv.QUOTE_ALL)
            if write_header:
                writer.writeheader()
            for row in rows:
                writer.writerow({key: "" if row[key] is None else row[key] for key in headers})
        os.chmod(path, OUTPUT_FILE_MODE)
    except OSError as e:
        raise CsvWriteError(f"Failed to write {path}: {e}") from e
    return path


def write_csv(path: Path | str, rows: Sequence[ImportRow | dict[str, Any]], append: bool = False) -> Path:
    """Write import rows to a CSV file.

    Every row is validated before anything is written, so a malformed row
    fails the whole write instead of producing a truncated file.

    Args:
        path: Destination file
        rows: Import rows
        append: Add rows to an existing file, writing the header only if the file is new or empty

    Returns:
        Path written

    Raises:
        CsvWriteError: If a row is malformed or the file cannot be written
    """
    validated = _validate_rows(rows, ImportRow)
    written = _write(Path(path), IMPORT_HEADERS, validated, append=append)
    logger.info(f"{'Appended' if append else 'Wrote'} {len(validated)} results to {written}")
    return written


def write_failed_scans_csv(path: Path | str, failed_scans: Sequence[FailedScan]) -> Path:
    """Write failed scans in a retry-friendly CSV.

    Args:
        path: Destination file
        failed_scans: Terminal failures from the run

    Returns:
        Path written
    """
    rows = [
        FailedScanRow(
            scan_id=f.scan_id,
            url=f.url,
            error_type=f.error_kind.value,
            error_message=f.error_message,
        )
        for f in failed_scans
    ]
    validated = _validate_rows(rows, FailedScanRow)
    written = _write(Path(path), FAILED_SCANS_HEADERS, validated)
    logger.info(f"Wrote {len(validated)} failed scans to {written}")
    return written
