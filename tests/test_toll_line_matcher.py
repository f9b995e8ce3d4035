# tests/test_toll_line_matcher.py
"""Unit tests for choosing the invoice line a charge group lands on."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from datetime import date
from app.models.invoice import InvoiceLine, LINE_KIND_TOLL
from app.models.toll_transaction import TollTransaction
from app.services.toll_grouping import group_transactions
from app.services.toll_line_matcher import (
    match_line, build_toll_description, is_toll_line, is_toll_placeholder, line_toll_date,
    REUSE, REUSE_PLACEHOLDER, CREATE,
)

MONDAY = date(2025, 3, 10)


def make_group(country="BE", vat_rate=21, amounts=(9.40,)):
    txs = [TollTransaction(id=i, license_plate="12-ABC-3", transaction_date=MONDAY, amount=a,
                           country=country, vat_rate=vat_rate) for i, a in enumerate(amounts, 1)]
    return group_transactions(txs)[0]


def make_line(line_id, description, quantity=0, unit_price=0, vat_rate=21, **kwargs):
    return InvoiceLine(id=line_id, invoice_id=1, description=description, quantity=quantity,
                       unit_price=unit_price, total=quantity * unit_price, vat_rate=vat_rate, **kwargs)


class TestLineHelpers:
    def test_description(self):
        assert build_toll_description(MONDAY, "BE") == "Maandag 10-03-2025\nTol België"
        assert build_toll_description(date(2025, 3, 14), None) == "Vrijdag 14-03-2025\nTol"
        assert build_toll_description(MONDAY, "SE") == "Maandag 10-03-2025\nTol"

    def test_toll_line_detection(self):
        assert is_toll_line(make_line(1, "Maandag 10-03-2025\nTOL België"))
        assert is_toll_line(make_line(2, "Extra", line_kind=LINE_KIND_TOLL))
        assert not is_toll_line(make_line(3, "Huur trailer"))

    def test_placeholder(self):
        assert is_toll_placeholder(make_line(1, "Maandag 10-03-2025\nTol"))
        assert not is_toll_placeholder(make_line(2, "Maandag 10-03-2025\nTol", quantity=1, unit_price=4))

    def test_toll_date_prefers_structured_column(self):
        assert line_toll_date(make_line(1, "Maandag 10-03-2025\nTol")) == MONDAY
        assert line_toll_date(make_line(2, "Tol", toll_date=date(2025, 3, 11))) == date(2025, 3, 11)
        assert line_toll_date(make_line(3, "Tol")) is None


class TestMatchLine:
    def test_exact_placeholder_reused(self):
        line = make_line(1, "Maandag 10-03-2025\nTol België")
        decision = match_line(make_group(), [line])
        assert decision.action == REUSE
        assert decision.line is line
        assert (decision.quantity, decision.unit_price, decision.total, decision.vat_rate) == (1, 9.4, 9.4, 21)
        assert decision.description is None

    def test_placeholder_preferred_over_populated(self):
        populated = make_line(1, "Maandag 10-03-2025\nTol België", quantity=1, unit_price=3.20)
        blank = make_line(2, "Maandag 10-03-2025\nTol België")
        decision = match_line(make_group(), [populated, blank])
        assert decision.line is blank

    def test_populated_exact_line_is_updated(self):
        populated = make_line(1, "Maandag 10-03-2025\nTol België", quantity=1, unit_price=3.20)
        decision = match_line(make_group(amounts=(9.40, 1.00)), [populated])
        assert decision.action == REUSE
        assert decision.line is populated
        assert decision.total == 10.4

    def test_generic_placeholder_takes_country(self):
        generic = make_line(1, "Maandag 10-03-2025\nTol")
        decision = match_line(make_group(country="DE"), [generic])
        assert decision.action == REUSE_PLACEHOLDER
        assert decision.line is generic
        assert decision.description == "Maandag 10-03-2025\nTol Duitsland"

    def test_other_country_placeholder_is_fallback(self):
        belgium = make_line(1, "Maandag 10-03-2025\nTol België")
        decision = match_line(make_group(country="FR"), [belgium])
        assert decision.action == REUSE_PLACEHOLDER
        assert decision.description == "Maandag 10-03-2025\nTol Frankrijk"

    def test_unknown_country_matches_any_toll_line(self):
        line = make_line(1, "Maandag 10-03-2025\nTol België")
        decision = match_line(make_group(country=None), [line])
        assert decision.action == REUSE
        assert decision.toll_country is None

    def test_vat_must_match(self):
        line = make_line(1, "Maandag 10-03-2025\nTol België", vat_rate=9)
        decision = match_line(make_group(), [line])
        assert decision.action == CREATE
        assert decision.creates_line

    def test_other_date_and_other_lines_ignored(self):
        lines = [make_line(1, "Dinsdag 11-03-2025\nTol België"), make_line(2, "Huur trailer 10-03-2025")]
        decision = match_line(make_group(), lines)
        assert decision.action == CREATE
        assert decision.line is None
        assert decision.description == "Maandag 10-03-2025\nTol België"
