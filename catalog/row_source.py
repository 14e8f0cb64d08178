"""Row Source: turns an uploaded CSV/Excel file into raw rows.

Cells are read as text; typing and validation belong to the row normalizer.
Rows that are entirely blank are skipped, rows that carry values but none in
a recognised column are reported as parse errors.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

import pandas as pd

from .columns import fold_header
from .pipelines.outcomes import ErrorEntry

logger = logging.getLogger(__name__)


class FileType(str, Enum):
    """Supported file types."""
    CSV = "csv"
    EXCEL = "excel"
    UNKNOWN = "unknown"


class ParseError(Exception):
    """Raised when a file cannot be read as a sheet of rows."""
    pass


@dataclass
class RowSourceResult:
    """Rows read from one file plus the file-level bookkeeping."""
    data: list[dict[str, str]] = field(default_factory=list)
    row_numbers: list[int] = field(default_factory=list)
    errors: list[ErrorEntry] = field(default_factory=list)
    success: int = 0
    failed: int = 0
    duplicates: int = 0

    def add_row(self, row_number: int, row: dict[str, str]) -> None:
        self.success += 1
        self.data.append(row)
        self.row_numbers.append(row_number)

    def add_error(self, row_number: int, error: str, row: dict[str, str]) -> None:
        self.failed += 1
        self.errors.append(ErrorEntry(row=row_number, data=row, error=error))


def detect_file_type(filename: str) -> FileType:
    """Detect file type from the filename extension."""
    filename_lower = filename.lower()

    if filename_lower.endswith('.csv'):
        return FileType.CSV
    elif filename_lower.endswith('.xlsx'):
        return FileType.EXCEL

    return FileType.UNKNOWN


def _read_frame(path: Path, file_type: FileType) -> pd.DataFrame:
    options = {"dtype": str, "keep_default_na": False}
    try:
        if file_type == FileType.CSV:
            return pd.read_csv(path, encoding='utf-8-sig', **options)
        return pd.read_excel(path, sheet_name=0, engine='openpyxl', **options)
    except Exception as e:
        logger.error(f"Reading {path.name} failed: {e}")
        raise ParseError(f"Failed to read {file_type.value} file: {e}") from e


def _clean_cell(value: object) -> str:
    if value is None:
        return ""
    return str(value).strip()


def read_rows(path: str | Path, columns: dict[str, str]) -> RowSourceResult:
    """Read ``path`` into raw rows.

    Args:
        path: CSV or Excel file on disk
        columns: Folded header alias table used to recognise columns

    Returns:
        RowSourceResult with raw rows keyed by the sheet's own headers

    Raises:
        ParseError: If the file type is unsupported or the file is unreadable
    """
    path = Path(path)
    file_type = detect_file_type(path.name)
    if file_type == FileType.UNKNOWN:
        raise ParseError(f"Unsupported file type: {path.name}. Use Excel (.xlsx) or CSV")

    df = _read_frame(path, file_type)
    headers = [_clean_cell(h) for h in df.columns]
    if not any(headers):
        raise ParseError("No header row found")

    known = [h for h in headers if fold_header(h) in columns]
    logger.info(
        f"Parsed {path.name}: {len(df)} rows, {len(headers)} columns "
        f"({len(known)} recognised)"
    )

    result = RowSourceResult()
    for offset, values in enumerate(df.itertuples(index=False, name=None)):
        row_number = offset + 2  # header is row 1
        row = {
            header: _clean_cell(value)
            for header, value in zip(headers, values)
            if header and _clean_cell(value)
        }
        if not row:
            continue
        if not any(fold_header(header) in columns for header in row):
            result.add_error(row_number, "Row has no recognised columns", row)
            continue
        result.add_row(row_number, row)

    return result
