"""Tests for column mapping detection and validation."""

from clearledger.models.import_batch import AmountStrategy
from clearledger.schemas.import_batch import ColumnMapping
from clearledger.services.mapping_service import (
    compute_header_fingerprint,
    detect_date_format,
    detect_date_format_from_rows,
    detect_mapping_from_headers,
    validate_mapping,
)


class TestDetectMapping:
    """Test header-based mapping guesses."""

    def test_signed_export(self):
        mapping, strategy = detect_mapping_from_headers(["Posting Date", "Description", "Amount", "Check or Slip #"])
        assert mapping.date == "Posting Date"
        assert mapping.amount == "Amount"
        assert mapping.description == "Description"
        assert strategy == AmountStrategy.signed

    def test_debit_credit_export(self):
        mapping, strategy = detect_mapping_from_headers(["Date", "Payee", "Debit", "Credit"])
        assert mapping.outflow == "Debit"
        assert mapping.inflow == "Credit"
        assert mapping.payee == "Payee"
        assert strategy == AmountStrategy.inflow_outflow

    def test_ofx_headers(self):
        mapping, strategy = detect_mapping_from_headers(["Date", "Amount", "Payee", "Memo", "Reference"])
        assert (mapping.date, mapping.amount, mapping.payee, mapping.memo, mapping.reference) == (
            "Date", "Amount", "Payee", "Memo", "Reference"
        )
        assert strategy == AmountStrategy.signed


class TestValidateMapping:
    """Test mapping problems."""

    def test_valid(self):
        assert validate_mapping(ColumnMapping(date="d", amount="a"), AmountStrategy.signed) == []

    def test_missing_date_and_amount(self):
        problems = validate_mapping(ColumnMapping(), AmountStrategy.signed)
        assert "Map a date column to continue." in problems
        assert "Map a signed amount column or switch to inflow/outflow." in problems

    def test_inflow_outflow_needs_both(self):
        problems = validate_mapping(ColumnMapping(date="d", inflow="i"), AmountStrategy.inflow_outflow)
        assert problems == ["Map both inflow and outflow columns to continue."]


class TestFingerprintAndDates:
    """Test header fingerprints and date format hints."""

    def test_fingerprint_ignores_case_and_spacing(self):
        assert compute_header_fingerprint(["Posting Date", "Amount"]) == compute_header_fingerprint(
            [" posting  date ", "AMOUNT"]
        )

    def test_fingerprint_depends_on_order(self):
        assert compute_header_fingerprint(["A", "B"]) != compute_header_fingerprint(["B", "A"])

    def test_date_format_hints(self):
        assert detect_date_format("2024-01-31") == "ymd"
        assert detect_date_format("31/01/2024") == "dmy"
        assert detect_date_format("01/31/2024") == "mdy"

    def test_date_format_from_rows_skips_blanks(self):
        rows = [{"Date": ""}, {"Date": "25/12/2024"}]
        assert detect_date_format_from_rows(rows, "Date") == "dmy"
        assert detect_date_format_from_rows(rows, None) is None
