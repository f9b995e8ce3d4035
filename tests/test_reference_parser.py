# tests/test_reference_parser.py
"""Unit tests for invoice reference parsing."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from app.models.invoice import Invoice
from app.utils.reference_parser import (
    parse_invoice_reference, format_invoice_reference, invoice_key, InvoiceKey,
)


class TestParseInvoiceReference:
    def test_standard_reference(self):
        key = parse_invoice_reference("Week 11 - 2025 (12-ABC-3)")
        assert key == InvoiceKey(plate="12-ABC-3", week=11, year=2025)
        assert key.lookup_key == ("12ABC3", 2025, 11)

    def test_case_and_spacing_tolerated(self):
        key = parse_invoice_reference("WEEK 3-2026 transport (ab-12-cd)")
        assert key.week == 3
        assert key.year == 2026
        assert key.plate == "AB-12-CD"

    def test_week_out_of_range(self):
        assert parse_invoice_reference("Week 0 - 2025 (12-ABC-3)") is None
        assert parse_invoice_reference("Week 54 - 2025 (12-ABC-3)") is None

    def test_missing_parts(self):
        assert parse_invoice_reference("Week 11 - 2025") is None
        assert parse_invoice_reference("Factuur 2025-0042") is None
        assert parse_invoice_reference("") is None
        assert parse_invoice_reference(None) is None

    def test_format_round_trips_through_parser(self):
        text = format_invoice_reference(7, 2025, "xy-99-z")
        assert text == "Week 7 - 2025 (XY-99-Z)"
        assert parse_invoice_reference(text).lookup_key == ("XY99Z", 2025, 7)


class TestInvoiceKey:
    def test_structured_columns_win(self):
        invoice = Invoice(reference="Week 11 - 2025 (12-ABC-3)", license_plate="99-xyz-9",
                          week_number=12, week_year=2025)
        key = invoice_key(invoice)
        assert key.lookup_key == ("99XYZ9", 2025, 12)

    def test_falls_back_to_reference(self):
        invoice = Invoice(reference="Week 11 - 2025 (12-ABC-3)", license_plate="12-ABC-3")
        assert invoice_key(invoice).week == 11

    def test_no_key(self):
        assert invoice_key(Invoice(reference="Creditnota 18")) is None
