# app/services/toll_status.py
"""
Status state machine for toll transactions.

    new ──link──▶ matched ──unlink──▶ new
     │               │
     └──▶ ignored ◀──┘        ignored ──▶ new

Invariant: status "matched" <=> invoice_line_id is set. Attach, batch, manual
match and the status endpoint only change either field through this module.
"""

from datetime import datetime
from typing import Optional

from app.models.toll_transaction import STATUS_NEW, STATUS_MATCHED, STATUS_IGNORED, STATUSES
from app.services.toll_errors import InvalidStatusTransition

ALLOWED_TRANSITIONS = {
    STATUS_NEW: {STATUS_MATCHED, STATUS_IGNORED},
    STATUS_MATCHED: {STATUS_NEW, STATUS_IGNORED},
    STATUS_IGNORED: {STATUS_NEW},
}


def can_transition(current: Optional[str], target: str, line_id: Optional[int] = None) -> bool:
    current = current or STATUS_NEW
    if target not in STATUSES or target not in ALLOWED_TRANSITIONS.get(current, set()):
        return False
    return target != STATUS_MATCHED or line_id is not None


def transition(tx, target: str, line_id: Optional[int] = None):
    """Move `tx` to `target`, setting or clearing invoice_line_id accordingly. Does not commit."""
    if not can_transition(tx.status, target, line_id):
        raise InvalidStatusTransition(tx.id, tx.status, target)
    tx.status = target
    tx.invoice_line_id = line_id if target == STATUS_MATCHED else None
    tx.updated_at = datetime.utcnow()
    return tx


def unlink(tx):
    """Release a transaction from its invoice line."""
    if tx.status == STATUS_NEW:
        # "new" with a line id left behind: drop the stray reference
        tx.invoice_line_id = None
        tx.updated_at = datetime.utcnow()
        return tx
    return transition(tx, STATUS_NEW)


def link(tx, line_id: int):
    """Bind to an invoice line, releasing any previous binding first."""
    if tx.status == STATUS_MATCHED:
        unlink(tx)
    return transition(tx, STATUS_MATCHED, line_id)


def is_unclaimed(tx) -> bool:
    return tx.status == STATUS_NEW and tx.invoice_line_id is None
