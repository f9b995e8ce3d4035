# app/services/toll_transaction_service.py
"""
Manual operations on individual toll transactions:
  - set_transaction_status: ignore / reinstate / release selected transactions
  - match_transactions_to_invoice: put a hand-picked selection on a concept invoice
"""

from collections import Counter

from sqlalchemy.orm import Session

from app.models.toll_transaction import TollTransaction, STATUS_IGNORED
from app.services.toll_errors import (
    InvalidStatusTransition, TransactionsNotFound, InconsistentSelection, NoTollLineAvailable,
)
from app.services.toll_grouping import ChargeGroup, UNKNOWN_COUNTRY, tx_plate_key, tx_vat_rate
from app.services.toll_line_matcher import match_line, is_toll_placeholder
from app.services.toll_linker import apply_decision
from app.services.toll_lookup import chunked, load_invoice_lines
from app.services.toll_reconcile_service import get_concept_invoice
from app.services.toll_dashboard_service import TOLL_STATUS_OPEN, TOLL_STATUS_COMPLETE
from app.services.toll_status import can_transition, transition
from app.utils.week import week_of
from app.utils.logger import get_logger

logger = get_logger(__name__)


def load_transactions(db: Session, ids) -> list:
    found = []
    for chunk in chunked(set(ids)):
        found.extend(db.query(TollTransaction).filter(TollTransaction.id.in_(chunk)).all())
    return sorted(found, key=lambda tx: tx.id)


def set_transaction_status(db: Session, ids: list, status: str) -> int:
    """
    Move the selected transactions to `status` ("new" or "ignored").
    "matched" is only reachable by linking. All transitions are validated
    before the first write. Returns the number of rows changed.
    """
    txs = load_transactions(db, ids)
    if not txs:
        raise TransactionsNotFound("No toll transactions found for the given ids")

    changing = [tx for tx in txs if tx.status != status]
    for tx in changing:
        if not can_transition(tx.status, status):
            raise InvalidStatusTransition(tx.id, tx.status, status)

    for tx in changing:
        transition(tx, status)
    db.commit()
    logger.info(f"[TOLL] {len(changing)} transaction(s) set to {status}")
    return len(changing)


def match_transactions_to_invoice(db: Session, ids: list, invoice_id: int,
                                  create_if_missing: bool = True) -> dict:
    invoice, key = get_concept_invoice(db, invoice_id)

    txs = load_transactions(db, ids)
    if not txs:
        raise TransactionsNotFound("No toll transactions found for the given ids")
    if any(tx.status == STATUS_IGNORED for tx in txs):
        raise InconsistentSelection("Ignored transactions must be reinstated before matching")

    plates = {tx_plate_key(tx) for tx in txs}
    dates = {tx.transaction_date for tx in txs}
    if len(plates) != 1 or len(dates) != 1:
        raise InconsistentSelection("Transactions must share license plate and transaction date")
    vat_rates = {tx_vat_rate(tx) for tx in txs}
    if len(vat_rates) != 1:
        raise InconsistentSelection("Transactions must share the VAT rate; match each rate separately")

    plate_key, year, week = key.lookup_key
    tx_date = dates.pop()
    if plates.pop() != plate_key or week_of(tx_date) != (year, week):
        raise InconsistentSelection(f"Transactions do not belong to invoice {invoice.reference!r}")

    countries = Counter((tx.country or "").upper() or UNKNOWN_COUNTRY for tx in txs)
    group = ChargeGroup(plate_key, tx_date, countries.most_common(1)[0][0], vat_rates.pop(), list(txs))

    decision = match_line(group, load_invoice_lines(db, invoice.id))
    if decision.creates_line and not create_if_missing:
        raise NoTollLineAvailable(f"No toll invoice line for {group.date_label} with VAT {group.vat_rate}% "
                                  f"and create_if_missing is off")

    line = apply_decision(db, invoice.id, group, decision)
    open_lines = sum(1 for l in load_invoice_lines(db, invoice.id) if is_toll_placeholder(l))
    logger.info(f"[TOLL] Manually matched {len(txs)} transaction(s) to line {line.id} of invoice {invoice.id}")
    return {
        "invoice_line_id": line.id,
        "total": decision.total,
        "vat_rate": decision.vat_rate,
        "invoice_reference": invoice.reference,
        "toll_status": TOLL_STATUS_OPEN if open_lines else TOLL_STATUS_COMPLETE,
    }
