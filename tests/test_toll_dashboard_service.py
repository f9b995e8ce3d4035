# tests/test_toll_dashboard_service.py
"""Tests for the toll dashboard and the concept invoice overview."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from datetime import date
from app.schemas.toll import TollDashboardOut
from app.services.toll_dashboard_service import (
    build_toll_dashboard, list_concept_invoices,
    REASON_NO_INVOICE, REASON_NOT_LINKED, TOLL_STATUS_OPEN, TOLL_STATUS_COMPLETE,
)
from app.services.toll_reconcile_service import reconcile_new_toll_transactions

WEEK_11 = "Week 11 - 2025 (12-ABC-3)"
MONDAY = {"description": "Maandag 10-03-2025\nTol België"}
TUESDAY = {"description": "Dinsdag 11-03-2025\nTol België"}
ALL_TIME = 3650


@pytest.fixture(autouse=True)
def business_calendar(week_2025_from_dec_30):
    pass


class TestDashboard:
    def test_before_reconcile(self, db, make_invoice, make_tx):
        invoice = make_invoice(WEEK_11, lines=[MONDAY, TUESDAY])
        tx = make_tx()

        dash = build_toll_dashboard(db, days_back=ALL_TIME)

        assert dash["matched"] == []
        assert len(dash["unmatched"]) == 1
        row = dash["unmatched"][0]
        assert row["transaction_ids"] == [tx.id]
        assert row["week_id"] == "2025-11"
        assert row["reason"] == REASON_NOT_LINKED
        assert row["suggested_invoice_id"] == invoice.id

        reasons = {m["transaction_date"]: m["reason"] for m in dash["missing_toll"]}
        assert reasons[date(2025, 3, 10)] == "Toll transactions exist but none is linked to this line"
        assert reasons[date(2025, 3, 11)] == "No toll transactions for this date"

        assert dash["week_overview"] == [{
            "week_id": "2025-11", "license_plate": "12-ABC-3",
            "matched_amount": 0.0, "unmatched_amount": 9.40, "missing_toll_count": 2, "ok": False,
        }]
        TollDashboardOut.model_validate(dash)

    def test_after_reconcile(self, db, make_invoice, make_tx):
        invoice = make_invoice(WEEK_11, lines=[MONDAY, TUESDAY])
        make_tx(amount=9.40)
        make_tx(amount=0.60, plate="12abc3")
        reconcile_new_toll_transactions(db)

        dash = build_toll_dashboard(db, days_back=ALL_TIME)

        assert len(dash["matched"]) == 1
        matched = dash["matched"][0]
        assert matched["amount"] == 10.0
        assert matched["transaction_count"] == 2
        assert matched["invoice_reference"] == invoice.reference
        assert dash["unmatched"] == []
        assert [m["transaction_date"] for m in dash["missing_toll"]] == [date(2025, 3, 11)]
        assert dash["week_overview"][0]["matched_amount"] == 10.0
        assert dash["week_overview"][0]["ok"] is False
        TollDashboardOut.model_validate(dash)

    def test_week_ok_when_everything_billed(self, db, make_invoice, make_tx):
        make_invoice(WEEK_11, lines=[MONDAY])
        make_tx()
        reconcile_new_toll_transactions(db)

        dash = build_toll_dashboard(db, days_back=ALL_TIME)

        assert dash["missing_toll"] == []
        assert dash["week_overview"][0]["ok"] is True

    def test_no_invoice_reason(self, db, make_tx):
        make_tx()
        row = build_toll_dashboard(db, days_back=ALL_TIME)["unmatched"][0]
        assert row["reason"] == REASON_NO_INVOICE
        assert row["suggested_invoice_id"] is None

    def test_invoice_without_line_for_date(self, db, make_invoice, make_tx):
        make_invoice(WEEK_11, lines=[TUESDAY])
        make_tx()
        row = build_toll_dashboard(db, days_back=ALL_TIME)["unmatched"][0]
        assert "10-03-2025" in row["reason"]

    def test_placeholder_without_date_counts_against_invoice_week(self, db, make_invoice):
        make_invoice(WEEK_11, lines=[{"description": "Tol"}])
        missing = build_toll_dashboard(db, days_back=ALL_TIME)["missing_toll"]
        assert missing[0]["date_label"] == "Week 11 - 2025"
        assert missing[0]["week_id"] == "2025-11"

    def test_window_excludes_old_transactions(self, db, make_tx):
        make_tx()
        dash = build_toll_dashboard(db, days_back=1)
        assert dash["unmatched"] == []


class TestConceptInvoices:
    def test_open_and_complete(self, db, make_invoice):
        open_invoice = make_invoice(WEEK_11, lines=[MONDAY])
        done = make_invoice("Week 12 - 2025 (12-ABC-3)", lines=[
            {"description": "Maandag 17-03-2025\nTol België", "quantity": 1, "unit_price": 3.0},
        ])
        make_invoice("Week 13 - 2025 (12-ABC-3)", status="final", lines=[MONDAY])

        needs_toll = list_concept_invoices(db)
        assert [i["id"] for i in needs_toll] == [open_invoice.id]
        assert needs_toll[0]["toll_status"] == TOLL_STATUS_OPEN
        assert needs_toll[0]["open_toll_lines"] == 1
        assert needs_toll[0]["week_id"] == "2025-11"

        everything = {i["id"]: i for i in list_concept_invoices(db, needs_toll=False)}
        assert set(everything) == {open_invoice.id, done.id}
        assert everything[done.id]["toll_status"] == TOLL_STATUS_COMPLETE


class TestDashboardCoverage:
    def test_placeholders_on_invoices_sharing_a_key(self, db, make_invoice):
        first = make_invoice(WEEK_11, lines=[MONDAY])
        second = make_invoice(WEEK_11, lines=[MONDAY])

        missing = build_toll_dashboard(db, days_back=ALL_TIME)["missing_toll"]

        assert sorted(m["invoice_id"] for m in missing) == [first.id, second.id]

    def test_ignored_transactions_not_reported_unmatched(self, db, make_tx):
        make_tx(status="ignored")
        assert build_toll_dashboard(db, days_back=ALL_TIME)["unmatched"] == []

    def test_line_total_differs_from_linked_transactions(self, db, make_invoice, make_tx):
        invoice = make_invoice(WEEK_11, lines=[MONDAY])
        make_tx(amount=9.40)
        reconcile_new_toll_transactions(db)
        make_tx(amount=2.00)
        reconcile_new_toll_transactions(db)

        dash = build_toll_dashboard(db, days_back=ALL_TIME)

        line = invoice.lines[0]
        assert dash["line_mismatches"] == [{
            "invoice_id": invoice.id,
            "invoice_reference": WEEK_11,
            "invoice_line_id": line.id,
            "description": line.description,
            "line_total": 2.0,
            "linked_total": 11.4,
            "transaction_count": 2,
        }]
        TollDashboardOut.model_validate(dash)

    def test_consistent_lines_not_flagged(self, db, make_invoice, make_tx):
        make_invoice(WEEK_11, lines=[MONDAY])
        make_tx()
        reconcile_new_toll_transactions(db)
        assert build_toll_dashboard(db, days_back=ALL_TIME)["line_mismatches"] == []
