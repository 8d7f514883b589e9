"""Commission Engine - Report Ingestion"""
from .normalizer import ReportNormalizer, parse_currency, parse_report_date, spreadsheet_serial_to_date
from .storage import ReportStorage
from .engine import IngestionEngine

__all__ = [
    "ReportNormalizer",
    "parse_currency",
    "parse_report_date",
    "spreadsheet_serial_to_date",
    "ReportStorage",
    "IngestionEngine",
]
