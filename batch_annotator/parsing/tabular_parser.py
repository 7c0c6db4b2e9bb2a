"""
CSV parsing for uploaded spreadsheets.

The parser is a single left-to-right scan so that quoted fields may contain
commas, escaped quotes and line breaks. Binary spreadsheet uploads are rejected
before decoding.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List

from ..exceptions import ConversionRequiredError, ParseError
from ..models import WorkUnit

logger = logging.getLogger(__name__)

EXCEL_SUFFIXES = ('.xlsx', '.xls')

CONVERSION_REQUIRED_MESSAGE = (
    'Excel files are not fully supported yet. Please save your Excel file as a CSV '
    'file and try again. You can do this by opening the file in Excel and using '
    '"Save As" > "CSV (Comma delimited)".'
)

# Header row plus 1-based counting
DISPLAY_ROW_OFFSET = 2


@dataclass(frozen=True)
class ParsedTable:
    header: List[str]
    rows: List[List[str]]

    @property
    def total_rows(self) -> int:
        return len(self.rows)


def _flush_row(current_row: List[str], rows: List[List[str]]) -> None:
    if any(field for field in current_row):
        rows.append(current_row)


def parse_csv(text: str) -> List[List[str]]:
    """
    Parse CSV text into rows of trimmed fields.

    Rows made up entirely of empty fields are dropped.
    """
    rows: List[List[str]] = []
    current_row: List[str] = []
    current_field: List[str] = []
    in_quotes = False
    i = 0
    length = len(text)

    while i < length:
        char = text[i]
        next_char = text[i + 1] if i + 1 < length else ''

        if char == '"':
            if in_quotes and next_char == '"':
                current_field.append('"')
                i += 2
                continue
            in_quotes = not in_quotes
        elif char == ',' and not in_quotes:
            current_row.append(''.join(current_field).strip())
            current_field = []
        elif char in '\r\n' and not in_quotes:
            if current_field or current_row:
                current_row.append(''.join(current_field).strip())
                _flush_row(current_row, rows)
                current_row = []
                current_field = []
            if char == '\r' and next_char == '\n':
                i += 1
        else:
            current_field.append(char)
        i += 1

    if current_field or current_row:
        current_row.append(''.join(current_field).strip())
        _flush_row(current_row, rows)

    return rows


def is_excel_file(file_name: str) -> bool:
    return file_name.lower().endswith(EXCEL_SUFFIXES)


def decode_upload(data: bytes, file_name: str) -> str:
    """Decode uploaded bytes as UTF-8 text, refusing binary spreadsheets."""
    if is_excel_file(file_name):
        raise ConversionRequiredError(CONVERSION_REQUIRED_MESSAGE)
    try:
        text = data.decode('utf-8')
    except UnicodeDecodeError as e:
        raise ParseError(f"{file_name} is not valid UTF-8 text: {e}") from e
    return text.lstrip('\ufeff')


def load_table(text: str) -> ParsedTable:
    """Split parsed CSV text into a header and data rows."""
    rows = parse_csv(text)
    if len(rows) < 2:
        raise ParseError("file must contain header and at least one data row")
    return ParsedTable(header=rows[0], rows=rows[1:])


def load_table_from_upload(data: bytes, file_name: str) -> ParsedTable:
    table = load_table(decode_upload(data, file_name))
    logger.info(f"Parsed {file_name}: {len(table.header)} columns, {table.total_rows} data rows")
    return table


def build_row_units(table: ParsedTable, source_name: str) -> List[WorkUnit]:
    return [
        WorkUnit(index=i, payload=tuple(row), source_name=source_name)
        for i, row in enumerate(table.rows)
    ]


def display_row_number(index: int) -> int:
    """Spreadsheet row number a user sees for a 0-based data row index."""
    return index + DISPLAY_ROW_OFFSET


def labeled_file_name(file_name: str) -> str:
    return f"labeled_{Path(file_name).stem}.csv"
