"""
Car cost workbook parser.

The workbook has one sheet named after its reporting month (e.g. "Jan 2026").
Rows 1-3 are title and header rows; below the data sit footnotes and legends
that share the same columns. A row is data only when its first cell is a
serial number and its make cell holds a short name.
"""

import io
from dataclasses import dataclass
from typing import Any, Dict, List, Union
from openpyxl import load_workbook
from openpyxl.cell.rich_text import CellRichText
from core.exceptions import ParseError, SheetFormatError
from ingestion.parsers.transforms import to_number
import logging

logger = logging.getLogger(__name__)

MONTHS = {
    "Jan": "01",
    "Feb": "02",
    "Mar": "03",
    "Apr": "04",
    "May": "05",
    "Jun": "06",
    "Jul": "07",
    "Aug": "08",
    "Sep": "09",
    "Oct": "10",
    "Nov": "11",
    "Dec": "12",
}

# Column A is index 0
COLUMNS = [
    "sn",
    "make",
    "model",
    "coe_cat",
    "engine_capacity",
    "max_power_output",
    "fuel_type",
    "co2",
    "ves_banding",
    "omv",
    "gst_excise_duty",
    "arf",
    "ves_surcharge_rebate",
    "eeai",
    "registration_fee",
    "coe_premium",
    "total_basic_cost_without_coe",
    "total_basic_cost_with_coe",
    "selling_price_without_coe",
    "selling_price_with_coe",
    "difference_without_coe",
    "difference_with_coe",
]

TEXT_COLUMNS = frozenset({
    "make",
    "model",
    "coe_cat",
    "engine_capacity",
    "fuel_type",
    "ves_banding",
})

# "-" means not applicable
NULLABLE_NUMERIC_COLUMNS = frozenset({
    "difference_without_coe",
    "difference_with_coe",
})

HEADER_ROWS = 3
MAX_MAKE_LENGTH = 30
NULL_PLACEHOLDER = "-"


@dataclass(frozen=True)
class ParsedWorkbook:
    month: str
    sheet_name: str
    records: List[Dict[str, Any]]


def parse_month_from_sheet_name(sheet_name: str) -> str:
    """``"Jan 2026"`` -> ``"2026-01"``"""
    parts = sheet_name.strip().split()
    if len(parts) != 2:
        raise SheetFormatError(
            f'Unexpected sheet name format: "{sheet_name}"',
            context={"sheet_name": sheet_name}
        )

    abbreviation, year = parts
    month = MONTHS.get(abbreviation)
    if month is None:
        raise SheetFormatError(
            f'Unknown month abbreviation: "{abbreviation}"',
            context={"sheet_name": sheet_name}
        )
    if not (year.isdigit() and len(year) == 4):
        raise SheetFormatError(
            f'Unexpected year in sheet name: "{year}"',
            context={"sheet_name": sheet_name}
        )

    return f"{year}-{month}"


def _cell_value(value: Any) -> Any:
    if isinstance(value, CellRichText):
        return str(value)
    return value


def _is_serial_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_data_row(row: tuple) -> bool:
    """Serial number in column A and a short, non-empty make in column B"""
    if not row or not _is_serial_number(_cell_value(row[0])):
        return False

    make = _cell_value(row[1]) if len(row) > 1 else None
    make = "" if make is None else str(make).strip()
    return 0 < len(make) <= MAX_MAKE_LENGTH


def _coerce(column: str, value: Any) -> Any:
    if column in TEXT_COLUMNS:
        text = None if value is None else str(value).strip()
        return text or None

    if column in NULLABLE_NUMERIC_COLUMNS:
        if value is None or (isinstance(value, str) and value.strip() in ("", NULL_PLACEHOLDER)):
            return None
        return to_number(value)

    number = to_number(value)
    return 0 if number is None else number


def map_row(row: tuple, month: str) -> Dict[str, Any]:
    record: Dict[str, Any] = {"month": month}
    for index, column in enumerate(COLUMNS):
        value = _cell_value(row[index]) if index < len(row) else None
        record[column] = _coerce(column, value)
    return record


def parse_car_cost_workbook(content: Union[bytes, bytearray]) -> ParsedWorkbook:
    """
    Parse the car cost workbook held in memory.

    Raises:
        SheetFormatError: If the sheet name does not describe a month
        ParseError: If the workbook cannot be read or a numeric cell holds text
    """
    try:
        workbook = load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    except Exception as e:
        raise ParseError("Failed to open workbook", original_exception=e)

    try:
        if not workbook.worksheets:
            raise ParseError("No worksheets found in workbook")

        worksheet = workbook.worksheets[0]
        month = parse_month_from_sheet_name(worksheet.title)
        records = []

        for row_number, row in enumerate(
            worksheet.iter_rows(min_row=HEADER_ROWS + 1, values_only=True),
            start=HEADER_ROWS + 1
        ):
            if not is_data_row(row):
                continue
            try:
                records.append(map_row(row, month))
            except ValueError as e:
                raise ParseError(
                    "Non-numeric value in numeric column",
                    context={"sheet_name": worksheet.title, "line_number": row_number},
                    original_exception=e
                )
    finally:
        workbook.close()

    logger.info(
        f'Parsed {len(records)} car cost records for month {month} from sheet "{worksheet.title}"'
    )
    return ParsedWorkbook(month=month, sheet_name=worksheet.title, records=records)
