"""
Record parsers: turn a raw dataset file into column-mapped records.

Variants:
    csv_parser: Delimited text with header row, renames and per-field transforms
    xlsx_parser: Car cost workbook with period-from-sheet-name and row filtering
    transforms: Value coercions shared by dataset definitions
"""

from ingestion.parsers.csv_parser import CSVTransformOptions, parse_csv
from ingestion.parsers.xlsx_parser import ParsedWorkbook, parse_car_cost_workbook

__all__ = [
    "CSVTransformOptions",
    "parse_csv",
    "ParsedWorkbook",
    "parse_car_cost_workbook",
]
