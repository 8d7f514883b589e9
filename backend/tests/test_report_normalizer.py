"""
Tests for the Report Normalizer.

Test Coverage:
1. Currency parsing (symbols, separators, parentheses negatives)
2. Date parsing (spreadsheet serials, text dates, garbage)
3. CSV reports: required columns, zero premiums, trimming
4. Spreadsheet reports: named sheet, native cell types
5. Upload-level rejections
"""
import io
from datetime import date
from decimal import Decimal

import pytest
from openpyxl import Workbook

from app.models.ssot import FileType
from app.services.errors import (
    FileTypeMismatch, NoValidRecords, ReportParseError, UnsupportedCarrier,
)
from app.services.ingestion import ReportNormalizer, parse_currency, parse_report_date


AETNA_HEADERS = [
    "WRITINGAGENTNUMBER", "WRITINGAGENTNAME", "CLIENT", "POLICYNUMBER", "PRODUCT",
    "EFFECTIVEDATE", "COMMISSIONABLEPREMIUM", "COMMISSIONAMOUNT",
]


def _workbook(rows, sheet_name="Commission Details", headers=AETNA_HEADERS) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = sheet_name
    ws.append(headers)
    for row in rows:
        ws.append(row)
    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


# =============================================================================
# TEST: VALUE PARSING
# =============================================================================

class TestParseCurrency:
    """Currency strings and numbers become Decimal."""

    @pytest.mark.parametrize("raw, expected", [
        ("$1,234.50", Decimal("1234.50")),
        ("  $ 120.00 ", Decimal("120.00")),
        ("(141.84)", Decimal("-141.84")),
        ("$(25.00)", Decimal("-25.00")),
        ("87", Decimal("87")),
        (120.5, Decimal("120.5")),
        (42, Decimal("42")),
    ])
    def test_parses_amounts(self, raw, expected):
        assert parse_currency(raw) == expected

    @pytest.mark.parametrize("raw", ["", None, "N/A", "abc", float("nan")])
    def test_unparseable_is_zero(self, raw):
        assert parse_currency(raw) == Decimal("0")

    def test_custom_currency_symbol(self):
        assert parse_currency("€1,000.25", "€") == Decimal("1000.25")


class TestParseReportDate:
    """Spreadsheet serials, text dates and unparseable values."""

    def test_serial_epoch(self):
        assert parse_report_date(25569) == date(1970, 1, 1)

    def test_serial_fraction_is_dropped(self):
        assert parse_report_date(45306.75) == date(2024, 1, 15)

    def test_text_date(self):
        assert parse_report_date("01/15/2024") == date(2024, 1, 15)
        assert parse_report_date("2024-01-15") == date(2024, 1, 15)

    def test_numeric_string_is_serial_only_for_spreadsheets(self):
        assert parse_report_date("45306", serial_strings=True) == date(2024, 1, 15)

    @pytest.mark.parametrize("raw", ["", None, "not a date", "13/45/2024"])
    def test_unparseable_is_none(self, raw):
        assert parse_report_date(raw) is None


# =============================================================================
# TEST: CSV REPORTS
# =============================================================================

class TestCsvNormalization:
    """Aflac delimited-text reports."""

    def test_standardizes_row(self, registry, aflac_report):
        content = aflac_report(
            " A123 ,Wes Writer,John Client,P-99,$120.00,$30.00,01/15/2024,02/01/2024,Accident Advantage",
        )

        report = ReportNormalizer(registry).normalize(content, "aflac.csv", "Aflac")

        assert report.carrier_name == "Aflac"
        assert report.file_type == FileType.CSV
        assert report.sheet_name is None
        assert len(report.records) == 1

        record = report.records[0]
        assert record.writing_agent_number == "A123"
        assert record.client_name == "John Client"
        assert record.policy_number == "P-99"
        assert record.commissionable_premium == Decimal("120.00")
        assert record.commission_amount == Decimal("30.00")
        assert record.effective_date == date(2024, 1, 15)
        assert record.commission_paid_date == date(2024, 2, 1)
        assert record.product == "Accident Advantage"
        assert record.row_number == 1

    def test_drops_rows_missing_required_columns(self, registry, aflac_report):
        content = aflac_report(
            "A123,Wes Writer,John Client,P-1,$120.00,$30.00,,,Accident Advantage",
            ",Wes Writer,No Agent,P-2,$120.00,$30.00,,,Accident Advantage",
            "A123,Wes Writer,,P-3,$120.00,$30.00,,,Accident Advantage",
        )

        report = ReportNormalizer(registry).normalize(content, "aflac.csv", "Aflac")

        assert [r.policy_number for r in report.records] == ["P-1"]
        assert report.dropped_rows == 2
        assert report.total_rows == 3

    def test_drops_non_positive_premiums(self, registry, aflac_report):
        content = aflac_report(
            "A123,Wes Writer,John Client,P-1,$0.00,$30.00,,,Accident Advantage",
            "A123,Wes Writer,John Client,P-2,(50.00),$30.00,,,Accident Advantage",
            "A123,Wes Writer,John Client,P-3,$75.00,$30.00,,,Accident Advantage",
        )

        report = ReportNormalizer(registry).normalize(content, "aflac.csv", "Aflac")

        assert [r.policy_number for r in report.records] == ["P-3"]

    def test_skips_blank_lines(self, registry, aflac_report):
        content = aflac_report(
            "A123,Wes Writer,John Client,P-1,$120.00,$30.00,,,Accident Advantage",
            "",
            "A123,Wes Writer,Jane Client,P-2,$60.00,$15.00,,,Accident Advantage",
        )

        report = ReportNormalizer(registry).normalize(content, "aflac.csv", "Aflac")

        assert len(report.records) == 2

    def test_no_surviving_rows_rejects_upload(self, registry, aflac_report):
        content = aflac_report("A123,Wes Writer,John Client,P-1,$0.00,$0.00,,,Accident Advantage")

        with pytest.raises(NoValidRecords) as exc:
            ReportNormalizer(registry).normalize(content, "aflac.csv", "Aflac")
        assert "Aflac" in exc.value.message

    def test_empty_file_rejects_upload(self, registry):
        with pytest.raises(NoValidRecords):
            ReportNormalizer(registry).normalize(b"", "aflac.csv", "Aflac")


# =============================================================================
# TEST: SPREADSHEET REPORTS
# =============================================================================

class TestSpreadsheetNormalization:
    """Aetna workbook reports."""

    def test_reads_configured_sheet(self, registry):
        content = _workbook([
            [12345.0, "Wes Writer", "John Client", "AET-1", "Dental Plus", 45306, 250.5, 25.05],
        ])

        report = ReportNormalizer(registry).normalize(content, "aetna.xlsx", "Aetna")

        assert report.file_type == FileType.EXCEL
        assert report.sheet_name == "Commission Details"
        record = report.records[0]
        assert record.writing_agent_number == "12345"
        assert record.policy_number == "AET-1"
        assert record.effective_date == date(2024, 1, 15)
        assert record.commissionable_premium == Decimal("250.5")

    def test_skips_fully_empty_rows(self, registry):
        content = _workbook([
            ["A1", "Wes Writer", "John Client", "AET-1", "Dental Plus", 45306, 100, 10],
            [None, None, None, None, None, None, None, None],
            ["A1", "Wes Writer", "Jane Client", "AET-2", "Dental Plus", 45306, 200, 20],
        ])

        report = ReportNormalizer(registry).normalize(content, "aetna.xlsx", "Aetna")

        assert report.total_rows == 2
        assert [r.policy_number for r in report.records] == ["AET-1", "AET-2"]

    def test_missing_sheet_is_parse_error(self, registry):
        content = _workbook([["A1", "W", "C", "P", "X", 45306, 100, 10]], sheet_name="Sheet1")

        with pytest.raises(ReportParseError) as exc:
            ReportNormalizer(registry).normalize(content, "aetna.xlsx", "Aetna")
        assert "Commission Details" in exc.value.message
        assert "Sheet1" in exc.value.message

    def test_corrupt_workbook_is_parse_error(self, registry):
        with pytest.raises(ReportParseError):
            ReportNormalizer(registry).normalize(b"not a workbook", "aetna.xlsx", "Aetna")


# =============================================================================
# TEST: UPLOAD-LEVEL REJECTIONS
# =============================================================================

class TestUploadRejections:
    """Carrier and file type are checked before any row is read."""

    def test_unknown_carrier(self, registry):
        with pytest.raises(UnsupportedCarrier):
            ReportNormalizer(registry).normalize(b"", "report.csv", "Acme Mutual")

    def test_excel_file_for_csv_carrier(self, registry):
        with pytest.raises(FileTypeMismatch) as exc:
            ReportNormalizer(registry).normalize(b"", "aflac.xlsx", "Aflac")
        assert "CSV" in exc.value.message

    def test_csv_file_for_excel_carrier(self, registry):
        with pytest.raises(FileTypeMismatch) as exc:
            ReportNormalizer(registry).normalize(b"", "aetna.csv", "Aetna")
        assert "Excel" in exc.value.message

    def test_extension_check_ignores_case(self, registry, aflac_report):
        content = aflac_report("A123,Wes Writer,John Client,P-1,$120.00,$30.00,,,Accident Advantage")
        report = ReportNormalizer(registry).normalize(content, "AFLAC.CSV", "Aflac")
        assert len(report.records) == 1
