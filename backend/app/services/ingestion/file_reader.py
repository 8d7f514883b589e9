"""
Report File Reader

Turns uploaded bytes into an ordered list of header-keyed rows.
CSV values come back as trimmed strings; spreadsheet cells keep their
native type (numbers stay numbers so date serials can be converted).
"""
from __future__ import annotations
import io
import logging
import zipfile
from typing import Any, Dict, List

import pandas as pd

from ..errors import ReportParseError

logger = logging.getLogger(__name__)

Row = Dict[str, Any]


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def read_csv_rows(content: bytes) -> List[Row]:
    """Parse delimited text with a header row. Blank lines are skipped."""
    try:
        frame = pd.read_csv(
            io.BytesIO(content),
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
            encoding="utf-8-sig",
        )
    except pd.errors.EmptyDataError:
        return []
    except (pd.errors.ParserError, UnicodeDecodeError) as e:
        raise ReportParseError(f"CSV parsing error: {e}") from e

    frame.columns = [str(c).strip() for c in frame.columns]

    rows: List[Row] = []
    for record in frame.to_dict(orient="records"):
        rows.append({k: v.strip() if isinstance(v, str) else v for k, v in record.items()})
    return rows


def read_spreadsheet_rows(content: bytes, sheet_name: str) -> List[Row]:
    """
    Read one sheet of a workbook, using its first row as headers.

    Columns with a blank header are ignored and rows whose cells are all
    blank are skipped.
    """
    try:
        workbook = pd.ExcelFile(io.BytesIO(content))
    except (ValueError, OSError, ImportError, KeyError, zipfile.BadZipFile) as e:
        raise ReportParseError(f"Could not read spreadsheet: {e}") from e

    if sheet_name not in workbook.sheet_names:
        raise ReportParseError(
            f'Sheet "{sheet_name}" not found. Available sheets: {", ".join(workbook.sheet_names)}',
            details={"sheet_name": sheet_name, "available": list(workbook.sheet_names)},
        )

    frame = workbook.parse(sheet_name, header=None, dtype=object)
    if frame.empty:
        raise ReportParseError(f'Sheet "{sheet_name}" is empty')

    header_row = frame.iloc[0].tolist()
    headers = [(idx, str(h).strip()) for idx, h in enumerate(header_row) if not _is_blank(h)]

    rows: List[Row] = []
    for values in frame.iloc[1:].itertuples(index=False, name=None):
        record: Row = {}
        for idx, header in headers:
            cell = values[idx] if idx < len(values) else None
            if _is_blank(cell):
                record[header] = ""
            elif isinstance(cell, str):
                record[header] = cell.strip()
            else:
                record[header] = cell
        if any(v != "" for v in record.values()):
            rows.append(record)

    logger.debug(f"Read {len(rows)} rows from sheet '{sheet_name}'")
    return rows
