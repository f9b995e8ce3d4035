# app/services/toll_reconcile_service.py
"""
Toll reconciliation: binds toll transactions to lines of concept invoices.

add_toll_to_invoice(db, invoice_id)
    Scoped to one invoice. Pulls every transaction of the invoice's plate/week,
    re-homes the ones bound to another invoice (or to a line that no longer
    exists), and links everything not yet on this invoice.

reconcile_new_toll_transactions(db)
    Sweeps all unclaimed transactions (status "new", no line) against all
    concept invoices. Never touches transactions that are already bound.

Both paths: Grouping Engine -> Line Matcher -> Linker, commit per group.
"""

from sqlalchemy.orm import Session

from app.config import settings
from app.models.invoice import Invoice, INVOICE_STATUS_CONCEPT
from app.models.toll_transaction import TollTransaction, STATUS_NEW, STATUS_IGNORED
from app.services.toll_errors import InvoiceNotFound, InvoiceNotEligible, UnparsableReference
from app.services.toll_grouping import group_transactions, ChargeGroup
from app.services.toll_line_matcher import match_line
from app.services.toll_linker import apply_decision
from app.services.toll_lookup import ReconcileCache, load_lines_by_ids
from app.services.toll_status import unlink, is_unclaimed
from app.utils.reference_parser import invoice_key
from app.utils.week import week_of, week_bounds
from app.utils.logger import get_logger

logger = get_logger(__name__)

REASON_NO_CONCEPT_INVOICE = "No concept invoice for this plate/week"


def get_concept_invoice(db: Session, invoice_id: int):
    """Fetch an invoice and check it can receive toll. Returns (invoice, InvoiceKey)."""
    invoice = db.query(Invoice).filter(Invoice.id == invoice_id).first()
    if not invoice:
        raise InvoiceNotFound(invoice_id)
    if invoice.status != INVOICE_STATUS_CONCEPT:
        raise InvoiceNotEligible(invoice_id, invoice.status)
    key = invoice_key(invoice)
    if key is None:
        raise UnparsableReference(invoice_id, invoice.reference)
    return invoice, key


def _link_groups(db: Session, invoice_id: int, groups: list, cache: ReconcileCache) -> tuple[int, int]:
    matched = lines = 0
    for group in groups:
        decision = match_line(group, cache.lines_for(invoice_id))
        apply_decision(db, invoice_id, group, decision, cache)
        matched += len(group)
        lines += 1
    return matched, lines


def add_toll_to_invoice(db: Session, invoice_id: int) -> dict:
    invoice, key = get_concept_invoice(db, invoice_id)
    plate_key, year, week = key.lookup_key

    monday, sunday = week_bounds(year, week)
    txs = (
        db.query(TollTransaction)
        .filter(
            TollTransaction.plate_key == plate_key,
            TollTransaction.transaction_date >= monday,
            TollTransaction.transaction_date <= sunday,
        )
        .order_by(TollTransaction.id)
        .limit(settings.TOLL_SCAN_LIMIT)
        .all()
    )
    in_week = [tx for tx in txs if week_of(tx.transaction_date) == (year, week)]
    if not in_week:
        return {
            "matched_transactions": 0,
            "updated_invoice_lines": 0,
            "unlinked_transactions": 0,
            "message": f"No toll transactions found for week {week} of {year} and plate {key.plate}",
        }

    line_owner = {
        line_id: line.invoice_id
        for line_id, line in load_lines_by_ids(
            db, [tx.invoice_line_id for tx in in_week if tx.invoice_line_id]
        ).items()
    }

    to_link, to_unlink = [], []
    for tx in in_week:
        if tx.status == STATUS_IGNORED:
            continue
        if is_unclaimed(tx):
            to_link.append(tx)
        elif line_owner.get(tx.invoice_line_id) != invoice.id or tx.status == STATUS_NEW:
            # bound to another invoice, or to a line that no longer exists
            to_unlink.append(tx)
            to_link.append(tx)

    if to_unlink:
        for tx in to_unlink:
            logger.info(f"[TOLL-ATTACH] Re-homing transaction {tx.id} from line {tx.invoice_line_id} "
                        f"to invoice {invoice.id}")
            unlink(tx)
        db.commit()

    if not to_link:
        return {
            "matched_transactions": 0,
            "updated_invoice_lines": 0,
            "unlinked_transactions": 0,
            "message": "All toll transactions are already linked to this invoice",
        }

    cache = ReconcileCache(db)
    matched, lines = _link_groups(db, invoice.id, group_transactions(to_link), cache)
    logger.info(f"[TOLL-ATTACH] Invoice {invoice.id} ({key.plate} week {week}-{year}): "
                f"{matched} transaction(s) on {lines} line(s), {len(to_unlink)} re-homed")
    return {
        "matched_transactions": matched,
        "updated_invoice_lines": lines,
        "unlinked_transactions": len(to_unlink),
        "message": f"{matched} toll transaction(s) linked to {lines} invoice line(s)",
    }


def _unmatched_entry(group: ChargeGroup, reason: str) -> dict:
    return {
        "license_plate": group.license_plate,
        "transaction_date": group.transaction_date,
        "country": group.country,
        "vat_rate": group.vat_rate,
        "amount": group.total,
        "transaction_count": len(group),
        "reason": reason,
    }


def reconcile_new_toll_transactions(db: Session) -> dict:
    txs = (
        db.query(TollTransaction)
        .filter(TollTransaction.status == STATUS_NEW, TollTransaction.invoice_line_id.is_(None))
        .order_by(TollTransaction.id)
        .limit(settings.TOLL_SCAN_LIMIT)
        .all()
    )
    result = {
        "processed_transactions": len(txs),
        "matched_transactions": 0,
        "unmatched_groups": [],
        "updated_invoice_lines": 0,
    }
    if not txs:
        return result

    cache = ReconcileCache(db)
    for group in group_transactions(txs):
        year, week = group.year_week
        found = cache.invoice_for((group.plate_key, year, week))
        if found is None:
            result["unmatched_groups"].append(_unmatched_entry(group, REASON_NO_CONCEPT_INVOICE))
            continue
        invoice, _ = found
        decision = match_line(group, cache.lines_for(invoice.id))
        apply_decision(db, invoice.id, group, decision, cache)
        result["matched_transactions"] += len(group)
        result["updated_invoice_lines"] += 1

    logger.info(f"[TOLL-BATCH] processed={result['processed_transactions']} "
                f"matched={result['matched_transactions']} lines={result['updated_invoice_lines']} "
                f"unmatched_groups={len(result['unmatched_groups'])}")
    return result
