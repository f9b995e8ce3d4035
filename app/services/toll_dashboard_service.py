# app/services/toll_dashboard_service.py
"""
Read-only toll reporting.

build_toll_dashboard(db, days_back)
    matched       : linked transactions per (line, plate, date), with invoice reference
    unmatched     : unclaimed transactions per (plate, date), with a reason and
                    the concept invoice they would go to
    missing_toll  : toll placeholder lines on concept invoices that have no
                    transactions linked to them yet
    week_overview : per (week, plate) totals; ok when nothing is unmatched or missing
    line_mismatches: filled toll lines whose total differs from the sum of the
                    transactions linked to them (a later group for the same
                    date replaces the line total rather than adding to it)

list_concept_invoices(db)
    concept invoices with their count of open toll placeholders.
"""

from datetime import date, timedelta
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from app.config import settings
from app.models.invoice import Invoice, INVOICE_STATUS_CONCEPT
from app.models.toll_transaction import TollTransaction, STATUS_MATCHED
from app.services.toll_grouping import round_money, tx_plate_key
from app.services.toll_line_matcher import is_toll_line, is_toll_placeholder, line_toll_date, format_date_label
from app.services.toll_lookup import (
    ReconcileCache, chunked, load_lines_by_ids, load_invoices_by_ids, load_lines_for_invoices,
)
from app.services.toll_status import is_unclaimed
from app.utils.reference_parser import invoice_key
from app.utils.toll_parsers import normalize_plate
from app.utils.week import week_of, week_id
from app.utils.logger import get_logger

logger = get_logger(__name__)

TOLL_STATUS_OPEN = "open"
TOLL_STATUS_COMPLETE = "complete"

REASON_NO_INVOICE = ('No concept invoice found for this plate/week. Check that a concept invoice '
                     'with reference "Week WW - YYYY (PLATE)" exists.')
REASON_NOT_LINKED = "Concept invoice found, but these transactions are not linked yet. Use attach."
REASON_NO_LINE = ("Concept invoice found, but it has no toll line for {label}. "
                  "Attach will create one automatically.")


def _matched_rows(db: Session, txs: list) -> list:
    rows: dict[tuple, dict] = {}
    for tx in txs:
        if tx.status != STATUS_MATCHED or not tx.invoice_line_id:
            continue
        k = (tx.invoice_line_id, tx_plate_key(tx), tx.transaction_date)
        row = rows.setdefault(k, {
            "license_plate": tx.license_plate,
            "transaction_date": tx.transaction_date,
            "amount": Decimal("0"),
            "transaction_count": 0,
            "invoice_line_id": tx.invoice_line_id,
        })
        row["amount"] += Decimal(str(tx.amount or 0))
        row["transaction_count"] += 1

    lines = load_lines_by_ids(db, {r["invoice_line_id"] for r in rows.values()})
    invoices = load_invoices_by_ids(db, {line.invoice_id for line in lines.values()})
    out = []
    for row in rows.values():
        line = lines.get(row["invoice_line_id"])
        invoice = invoices.get(line.invoice_id) if line else None
        row["amount"] = round_money(row["amount"])
        row["invoice_id"] = invoice.id if invoice else None
        row["invoice_reference"] = invoice.reference if invoice else None
        out.append(row)
    return sorted(out, key=lambda r: r["transaction_date"], reverse=True)


def _unmatched_rows(txs: list, cache: ReconcileCache) -> list:
    rows: dict[tuple, dict] = {}
    for tx in txs:
        if not is_unclaimed(tx):
            continue
        k = (tx_plate_key(tx), tx.transaction_date)
        row = rows.setdefault(k, {
            "license_plate": tx.license_plate,
            "plate_key": k[0],
            "transaction_date": tx.transaction_date,
            "amount": Decimal("0"),
            "count": 0,
            "transaction_ids": [],
        })
        row["amount"] += Decimal(str(tx.amount or 0))
        row["count"] += 1
        row["transaction_ids"].append(tx.id)

    out = []
    for row in rows.values():
        d = row["transaction_date"]
        year, week = week_of(d)
        row["amount"] = round_money(row["amount"])
        row["week_id"] = week_id(d)
        row["suggested_invoice_id"] = None
        row["suggested_invoice_reference"] = None
        found = cache.invoice_for((row.pop("plate_key"), year, week))
        if found is None:
            row["reason"] = REASON_NO_INVOICE
        else:
            invoice, _ = found
            has_line = any(is_toll_line(l) and line_toll_date(l) == d for l in cache.lines_for(invoice.id))
            row["reason"] = REASON_NOT_LINKED if has_line else REASON_NO_LINE.format(label=format_date_label(d))
            row["suggested_invoice_id"] = invoice.id
            row["suggested_invoice_reference"] = invoice.reference
        out.append(row)
    return sorted(out, key=lambda r: r["transaction_date"], reverse=True)


def _missing_toll_rows(txs: list, cache: ReconcileCache) -> list:
    tx_keys = {(tx_plate_key(tx), tx.transaction_date) for tx in txs}
    linked = {
        (tx.invoice_line_id, tx_plate_key(tx), tx.transaction_date)
        for tx in txs if tx.status == STATUS_MATCHED and tx.invoice_line_id
    }

    out = []
    # every concept invoice, including ones that share a key with another
    for invoice in cache.concept_invoices:
        key = invoice_key(invoice)
        if key is None:
            continue
        plate_key, year, week = key.lookup_key
        for line in cache.lines_for(invoice.id):
            if not is_toll_placeholder(line):
                continue
            d = line_toll_date(line)
            row = {
                "invoice_id": invoice.id,
                "invoice_reference": invoice.reference,
                "invoice_line_id": line.id,
                "license_plate": key.plate,
                "transaction_date": d,
            }
            if d is None:
                # Placeholder without a date label: count it against the invoice week
                row.update(date_label=f"Week {week} - {year}", week_id=f"{year}-{week:02d}",
                           reason="Toll placeholder has no date")
                out.append(row)
                continue
            row.update(date_label=format_date_label(d), week_id=week_id(d))
            if (plate_key, d) not in tx_keys:
                row["reason"] = "No toll transactions for this date"
            elif (line.id, plate_key, d) not in linked:
                row["reason"] = "Toll transactions exist but none is linked to this line"
            else:
                continue
            out.append(row)
    return sorted(out, key=lambda r: (r["transaction_date"] or date.min, r["invoice_line_id"]), reverse=True)


def _line_mismatches(db: Session, cache: ReconcileCache) -> list:
    """Filled toll lines on concept invoices whose total is not the sum of their linked transactions."""
    lines = {
        line.id: (invoice, line)
        for invoice in cache.concept_invoices
        for line in cache.lines_for(invoice.id)
        if is_toll_line(line) and not is_toll_placeholder(line)
    }
    linked: dict[int, list] = {}
    for chunk in chunked(lines):
        rows = (
            db.query(TollTransaction.invoice_line_id, TollTransaction.amount)
            .filter(TollTransaction.invoice_line_id.in_(chunk), TollTransaction.status == STATUS_MATCHED)
            .all()
        )
        for line_id, amount in rows:
            linked.setdefault(line_id, []).append(Decimal(str(amount or 0)))

    out = []
    for line_id, amounts in linked.items():
        invoice, line = lines[line_id]
        line_total = round_money(line.total)
        linked_total = round_money(sum(amounts))
        if line_total == linked_total:
            continue
        out.append({
            "invoice_id": invoice.id,
            "invoice_reference": invoice.reference,
            "invoice_line_id": line_id,
            "description": line.description,
            "line_total": line_total,
            "linked_total": linked_total,
            "transaction_count": len(amounts),
        })
    if out:
        logger.warning(f"[TOLL-DASH] {len(out)} toll line(s) differ from their linked transactions")
    return sorted(out, key=lambda r: r["invoice_line_id"])


def _week_overview(matched: list, unmatched: list, missing: list) -> list:
    weeks: dict[tuple, dict] = {}

    def bucket(wid: str, plate: str) -> dict:
        return weeks.setdefault((wid, normalize_plate(plate) or plate), {
            "week_id": wid, "license_plate": plate,
            "matched_amount": Decimal("0"), "unmatched_amount": Decimal("0"), "missing_toll_count": 0,
        })

    for m in matched:
        bucket(week_id(m["transaction_date"]), m["license_plate"])["matched_amount"] += Decimal(str(m["amount"]))
    for u in unmatched:
        bucket(u["week_id"], u["license_plate"])["unmatched_amount"] += Decimal(str(u["amount"]))
    for miss in missing:
        bucket(miss["week_id"], miss["license_plate"])["missing_toll_count"] += 1

    out = []
    for w in weeks.values():
        w["matched_amount"] = round_money(w["matched_amount"])
        w["unmatched_amount"] = round_money(w["unmatched_amount"])
        w["ok"] = w["unmatched_amount"] == 0 and w["missing_toll_count"] == 0
        out.append(w)
    out.sort(key=lambda w: w["license_plate"])
    out.sort(key=lambda w: w["week_id"], reverse=True)
    return out


def build_toll_dashboard(db: Session, days_back: Optional[int] = None) -> dict:
    if days_back is None:
        days_back = settings.TOLL_DASHBOARD_DAYS_BACK
    since = date.today() - timedelta(days=days_back)

    txs = (
        db.query(TollTransaction)
        .filter(TollTransaction.transaction_date >= since)
        .order_by(TollTransaction.transaction_date.desc(), TollTransaction.id)
        .limit(settings.TOLL_DASHBOARD_SCAN_LIMIT)
        .all()
    )

    cache = ReconcileCache(db)
    concept_ids = [invoice.id for invoice in cache.concept_invoices]
    for invoice_id, lines in load_lines_for_invoices(db, concept_ids).items():
        cache.seed_lines(invoice_id, lines)

    matched = _matched_rows(db, txs)
    unmatched = _unmatched_rows(txs, cache)
    missing = _missing_toll_rows(txs, cache)
    overview = _week_overview(matched, unmatched, missing)
    mismatches = _line_mismatches(db, cache)

    logger.info(f"[TOLL-DASH] since={since} matched={len(matched)} unmatched={len(unmatched)} "
                f"missing={len(missing)} weeks={len(overview)} mismatched_lines={len(mismatches)}")
    return {
        "matched": matched,
        "unmatched": unmatched,
        "missing_toll": missing,
        "week_overview": overview,
        "line_mismatches": mismatches,
    }


def list_concept_invoices(db: Session, needs_toll: bool = True, limit: int = 300) -> list:
    """Concept invoices with their open toll placeholder count."""
    invoices = (
        db.query(Invoice)
        .filter(Invoice.status == INVOICE_STATUS_CONCEPT)
        .order_by(Invoice.invoice_date.desc(), Invoice.id.desc())
        .limit(min(limit, 500))
        .all()
    )
    lines = load_lines_for_invoices(db, [i.id for i in invoices])
    out = []
    for invoice in invoices:
        open_lines = sum(1 for line in lines.get(invoice.id, []) if is_toll_placeholder(line))
        if needs_toll and not open_lines:
            continue
        key = invoice_key(invoice)
        out.append({
            "id": invoice.id,
            "reference": invoice.reference,
            "invoice_date": invoice.invoice_date,
            "status": invoice.status,
            "license_plate": key.plate if key else None,
            "week_id": f"{key.year}-{key.week:02d}" if key else None,
            "open_toll_lines": open_lines,
            "toll_status": TOLL_STATUS_OPEN if open_lines else TOLL_STATUS_COMPLETE,
        })
    return out
