# tests/test_toll_parsers.py
"""Unit tests for the toll export value parsers."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from datetime import date, datetime, time
from app.utils.toll_parsers import (
    normalize_plate, parse_date, parse_time, parse_money, parse_vat, normalize_country,
)


class TestPlate:
    def test_normalize(self):
        assert normalize_plate("12-abc-3") == "12ABC3"
        assert normalize_plate(" 12 ABC 3 ") == "12ABC3"

    def test_empty(self):
        assert normalize_plate(None) is None
        assert normalize_plate(" - ") is None


class TestParseDate:
    def test_dutch_formats(self):
        assert parse_date("10-03-2025") == date(2025, 3, 10)
        assert parse_date("10/03/25") == date(2025, 3, 10)
        assert parse_date("10.03.2025") == date(2025, 3, 10)

    def test_iso_with_trailing_time(self):
        assert parse_date("2025-03-10") == date(2025, 3, 10)
        assert parse_date("2025-03-10 08:15") == date(2025, 3, 10)

    def test_native_and_excel(self):
        assert parse_date(datetime(2025, 3, 10, 8, 15)) == date(2025, 3, 10)
        assert parse_date(date(2025, 3, 10)) == date(2025, 3, 10)
        assert parse_date(45726) == date(2025, 3, 10)

    def test_unreadable(self):
        assert parse_date("31-02-2025") is None
        assert parse_date("gisteren") is None
        assert parse_date("") is None
        assert parse_date(None) is None


class TestParseTime:
    def test_clock_strings(self):
        assert parse_time("08:15") == time(8, 15)
        assert parse_time("8:05:59") == time(8, 5)

    def test_excel_values(self):
        assert parse_time(0.5) == time(12, 0)
        assert parse_time(45726.25) == time(6, 0)

    def test_decimal_hours(self):
        assert parse_time("8,5") == time(8, 30)

    def test_unreadable(self):
        assert parse_time("25:00") is None
        assert parse_time("ochtend") is None
        assert parse_time(None) is None


class TestParseMoney:
    def test_euro_formats(self):
        assert parse_money("€ 1.234,56") == 1234.56
        assert parse_money("9,40") == 9.4
        assert parse_money("9.40") == 9.4
        assert parse_money(12) == 12.0

    def test_unreadable(self):
        assert parse_money("n.v.t.") is None
        assert parse_money(True) is None
        assert parse_money("") is None


class TestParseVat:
    def test_percent_forms(self):
        assert parse_vat("21") == 21
        assert parse_vat("21%") == 21
        assert parse_vat("0,21") == 21
        assert parse_vat(0.06) == 6
        assert parse_vat(9) == 9

    def test_zero_and_missing(self):
        assert parse_vat(0) == 0
        assert parse_vat("-1") == 0
        assert parse_vat("") is None
        assert parse_vat("hoog") is None


class TestNormalizeCountry:
    def test_codes_and_names(self):
        assert normalize_country("be") == "BE"
        assert normalize_country("België") == "BE"
        assert normalize_country("Germany") == "DE"
        assert normalize_country(" frankrijk ") == "FR"

    def test_unknown(self):
        assert normalize_country("Atlantis") is None
        assert normalize_country("") is None
        assert normalize_country(None) is None
