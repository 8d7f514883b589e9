"""
Commission Engine - Report Normalizer

Converts raw carrier rows into StandardizedRecord using the carrier's
format. All downstream stages read StandardizedRecord only.
"""
from __future__ import annotations
import logging
import math
import re
from datetime import date, datetime, timedelta
from decimal import Decimal, InvalidOperation
from pathlib import PurePath
from typing import Any, Dict, List, Optional

from dateutil import parser as date_parser

from ...models.ssot import FileType, NormalizedReport, StandardizedRecord
from ..carriers.formats import CURRENCY_FIELDS, DATE_FIELDS, CarrierFormatConfig
from ..carriers.registry import CarrierFormatRegistry
from ..errors import FileTypeMismatch, NoValidRecords, RowSchemaError
from .file_reader import read_csv_rows, read_spreadsheet_rows

logger = logging.getLogger(__name__)


# =============================================================================
# CONSTANTS
# =============================================================================

# Spreadsheet day 0. Serial 25569 is 1970-01-01.
SPREADSHEET_EPOCH = date(1899, 12, 30)

NUMERIC_RE = re.compile(r"^-?\d+(\.\d+)?$")

ZERO = Decimal("0")


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    if isinstance(value, str) and not value.strip():
        return True
    return False


def _clean_text(value: Any) -> Optional[str]:
    """Render a cell as trimmed text. Integral floats lose their '.0'."""
    if _is_missing(value):
        return None
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, datetime):
        return value.date().isoformat()
    return str(value).strip()


def spreadsheet_serial_to_date(serial: float) -> Optional[date]:
    """Convert a spreadsheet day serial to a calendar date (fraction dropped)."""
    try:
        return SPREADSHEET_EPOCH + timedelta(days=math.floor(serial))
    except (OverflowError, ValueError):
        return None


def parse_report_date(value: Any, serial_strings: bool = False) -> Optional[date]:
    """
    Parse a date cell.

    Numbers are spreadsheet serials. Strings use generic date parsing,
    except that a bare number is treated as a serial when `serial_strings`
    is set (spreadsheet sources). Anything unparseable becomes None.
    """
    if _is_missing(value) or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, (int, float)):
        return spreadsheet_serial_to_date(value)

    text = str(value).strip()
    if serial_strings and NUMERIC_RE.match(text):
        return spreadsheet_serial_to_date(float(text))
    try:
        return date_parser.parse(text).date()
    except (ValueError, OverflowError):
        logger.debug(f"Unparseable date value: '{text}'")
        return None


def parse_currency(value: Any, currency_symbol: str = "$") -> Decimal:
    """
    Parse '$1,234.50', '1234.5', '(141.84)' and similar into Decimal.

    Unparseable or missing values are zero.
    """
    if _is_missing(value) or isinstance(value, bool):
        return ZERO
    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            return ZERO
        return Decimal(str(value))

    text = str(value).strip()
    if currency_symbol:
        text = text.replace(currency_symbol, "")
    text = text.replace(",", "").replace(" ", "")
    if text.startswith("(") and text.endswith(")"):
        text = "-" + text[1:-1]
    try:
        amount = Decimal(text)
    except InvalidOperation:
        return ZERO
    return amount if amount.is_finite() else ZERO


def file_extension(filename: str) -> str:
    return PurePath(filename or "").suffix.lower().lstrip(".")


# =============================================================================
# NORMALIZER
# =============================================================================

class ReportNormalizer:
    """
    Normalizes one carrier report file.

    Unknown carriers and wrong file types abort the upload. Rows with
    missing required columns, or with no commissionable premium, are dropped.
    """

    def __init__(self, registry: CarrierFormatRegistry):
        self.registry = registry

    def resolve_format(self, carrier_name: str, filename: str) -> CarrierFormatConfig:
        """Look up the carrier format and check the file extension against it."""
        fmt = self.registry.get(carrier_name)
        extension = file_extension(filename)
        if extension not in fmt.extensions:
            if fmt.kind == FileType.EXCEL:
                expected = "an Excel file (.xlsx or .xls)"
            else:
                expected = "a CSV file"
            raise FileTypeMismatch(
                f"{fmt.name} requires {expected}, but received a {extension or 'unknown'} file.",
                details={"carrier": fmt.name, "expected": list(fmt.extensions), "received": extension},
            )
        return fmt

    def read_rows(self, content: bytes, fmt: CarrierFormatConfig) -> List[Dict[str, Any]]:
        if fmt.kind == FileType.EXCEL:
            return read_spreadsheet_rows(content, fmt.sheet_name)
        return read_csv_rows(content)

    def standardize(self, row: Dict[str, Any], fmt: CarrierFormatConfig, row_number: int = 0) -> StandardizedRecord:
        """
        Map one raw row to a StandardizedRecord.

        Raises:
            RowSchemaError: if a required column is missing or blank
        """
        missing = [c for c in fmt.required_columns if _is_missing(row.get(c))]
        if missing:
            raise RowSchemaError(
                f"Row {row_number} is missing required columns: {', '.join(missing)}",
                details={"row": row_number, "missing": missing},
            )

        serial_strings = fmt.kind == FileType.EXCEL
        values: Dict[str, Any] = {}
        for field_name, column in fmt.column_mapping.mapped().items():
            raw = row.get(column)
            if field_name in CURRENCY_FIELDS:
                values[field_name] = parse_currency(raw, fmt.currency_symbol)
            elif field_name in DATE_FIELDS:
                values[field_name] = parse_report_date(raw, serial_strings=serial_strings)
            else:
                values[field_name] = _clean_text(raw)

        return StandardizedRecord(
            writing_agent_number=values.pop("writing_agent_number") or "",
            client_name=values.pop("client_name") or "",
            policy_number=values.pop("policy_number") or "",
            commissionable_premium=values.pop("commissionable_premium"),
            commission_amount=values.pop("commission_amount"),
            row_number=row_number,
            **values,
        )

    def normalize(self, content: bytes, filename: str, carrier_name: str) -> NormalizedReport:
        """
        Parse and normalize one uploaded file.

        Raises:
            UnsupportedCarrier, FileTypeMismatch, ReportParseError, NoValidRecords
        """
        fmt = self.resolve_format(carrier_name, filename)
        rows = self.read_rows(content, fmt)

        report = NormalizedReport(
            carrier_name=fmt.name,
            file_type=fmt.kind,
            sheet_name=getattr(fmt, "sheet_name", None),
            total_rows=len(rows),
        )

        for index, row in enumerate(rows, start=1):
            try:
                record = self.standardize(row, fmt, row_number=index)
            except RowSchemaError as e:
                logger.debug(e.message)
                report.dropped_rows += 1
                continue

            if record.commissionable_premium <= 0:
                logger.debug(f"Row {index}: commissionable premium is not positive, skipping")
                report.dropped_rows += 1
                continue

            report.records.append(record)

        if not report.records:
            sheet_hint = f' (sheet: "{report.sheet_name}")' if report.sheet_name else ""
            raise NoValidRecords(
                f"No valid records found. Please check that your {fmt.kind.value.upper()} file "
                f"matches the expected format for {fmt.name}{sheet_hint}",
                details={"carrier": fmt.name, "total_rows": len(rows)},
            )

        logger.info(
            f"Normalized {fmt.name} report: {len(rows)} rows, "
            f"{len(report.records)} records, {report.dropped_rows} dropped"
        )
        return report
