"""Input source parsing."""

from ai_scan.input.csv_parser import parse_input_csv

__all__ = ["parse_input_csv"]
