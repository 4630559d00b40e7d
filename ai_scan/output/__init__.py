"""Result transformation, CSV output and run summaries."""

from ai_scan.output.csv_writer import (
    generate_failed_scans_path,
    generate_output_path,
    write_csv,
    write_failed_scans_csv,
)
from ai_scan.output.result_transformer import transform_to_import_format
from ai_scan.output.summary_generator import (
    classify_status,
    generate_summary,
    get_json_summary,
    print_json_summary,
)

__all__ = [
    "classify_status",
    "generate_failed_scans_path",
    "generate_output_path",
    "generate_summary",
    "get_json_summary",
    "print_json_summary",
    "transform_to_import_format",
    "write_csv",
    "write_failed_scans_csv",
]
