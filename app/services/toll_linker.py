# app/services/toll_linker.py
"""
Writes a LineDecision: upsert the invoice line, then bind every transaction of
the charge group to it. Commits once per group, so a failure on a later group
leaves earlier groups in place (callers are safe to re-run).
"""

from typing import Optional

from sqlalchemy.orm import Session

from app.models.invoice import InvoiceLine, LINE_KIND_TOLL
from app.services.toll_grouping import ChargeGroup
from app.services.toll_line_matcher import LineDecision
from app.services.toll_lookup import ReconcileCache
from app.services.toll_status import link
from app.utils.logger import get_logger

logger = get_logger(__name__)


def _write_line(line: InvoiceLine, decision: LineDecision):
    # Replaces the amounts. Transactions linked earlier stay on the line; the
    # dashboard lists such lines under line_mismatches.
    line.quantity = decision.quantity
    line.unit_price = decision.unit_price
    line.total = decision.total
    line.vat_rate = decision.vat_rate
    line.line_kind = LINE_KIND_TOLL
    line.toll_date = decision.toll_date
    line.toll_country = decision.toll_country
    if decision.description:
        line.description = decision.description


def apply_decision(db: Session, invoice_id: int, group: ChargeGroup, decision: LineDecision,
                   cache: Optional[ReconcileCache] = None) -> InvoiceLine:
    if decision.creates_line:
        line = InvoiceLine(invoice_id=invoice_id, description=decision.description)
        _write_line(line, decision)
        db.add(line)
        db.flush()   # need line.id before linking
        if cache is not None:
            cache.add_line(line)
        logger.debug(f"[TOLL] Created line {line.id} on invoice {invoice_id}: {decision.total} "
                     f"({group.license_plate} {group.date_label})")
    else:
        line = decision.line
        _write_line(line, decision)
        logger.debug(f"[TOLL] Updated line {line.id} on invoice {invoice_id} ({decision.action}): "
                     f"{decision.total} ({group.license_plate} {group.date_label})")

    for tx in group.transactions:
        link(tx, line.id)

    db.commit()
    return line
