# app/services/toll_lookup.py
"""
Read helpers shared by the toll services.
Lookups by id are chunked (settings.TOLL_LOOKUP_CHUNK_SIZE ids per query) and
scans are capped (settings.TOLL_SCAN_LIMIT rows) to stay inside store limits.
"""

from typing import Iterable, Optional

from sqlalchemy.orm import Session

from app.config import settings
from app.models.invoice import Invoice, InvoiceLine, INVOICE_STATUS_CONCEPT
from app.utils.reference_parser import invoice_key
from app.utils.logger import get_logger

logger = get_logger(__name__)


def chunked(items: Iterable, size: Optional[int] = None):
    size = size or settings.TOLL_LOOKUP_CHUNK_SIZE
    items = list(items)
    for i in range(0, len(items), size):
        yield items[i:i + size]


def load_lines_by_ids(db: Session, line_ids: Iterable[int]) -> dict:
    """line_id -> InvoiceLine for the ids that still exist."""
    found = {}
    for chunk in chunked(set(line_ids)):
        for line in db.query(InvoiceLine).filter(InvoiceLine.id.in_(chunk)).all():
            found[line.id] = line
    return found


def load_invoices_by_ids(db: Session, invoice_ids: Iterable[int]) -> dict:
    found = {}
    for chunk in chunked(set(invoice_ids)):
        for invoice in db.query(Invoice).filter(Invoice.id.in_(chunk)).all():
            found[invoice.id] = invoice
    return found


def load_lines_for_invoices(db: Session, invoice_ids: Iterable[int]) -> dict:
    """invoice_id -> [InvoiceLine, ...] (every requested id present, possibly empty)."""
    invoice_ids = set(invoice_ids)
    found = {invoice_id: [] for invoice_id in invoice_ids}
    for chunk in chunked(invoice_ids):
        rows = (db.query(InvoiceLine).filter(InvoiceLine.invoice_id.in_(chunk))
                .order_by(InvoiceLine.id).all())
        for line in rows:
            found[line.invoice_id].append(line)
    return found


def load_concept_invoices(db: Session) -> list:
    return (
        db.query(Invoice)
        .filter(Invoice.status == INVOICE_STATUS_CONCEPT)
        .order_by(Invoice.id)
        .limit(settings.TOLL_SCAN_LIMIT)
        .all()
    )


def load_invoice_lines(db: Session, invoice_id: int) -> list:
    return db.query(InvoiceLine).filter(InvoiceLine.invoice_id == invoice_id).order_by(InvoiceLine.id).all()


def index_invoices_by_key(invoices: Iterable) -> dict:
    """(plate_key, year, week) -> (Invoice, InvoiceKey). First invoice per key wins."""
    index = {}
    for invoice in invoices:
        key = invoice_key(invoice)
        if key is None:
            continue
        existing = index.get(key.lookup_key)
        if existing is not None:
            logger.warning(f"[TOLL] Concept invoices {existing[0].id} and {invoice.id} share toll key "
                           f"{key.lookup_key}; using {existing[0].id}")
            continue
        index[key.lookup_key] = (invoice, key)
    return index


class ReconcileCache:
    """
    Invoice and invoice-line lookups for ONE engine call.
    Build a fresh instance per call; never keep one around between calls.
    """

    def __init__(self, db: Session):
        self.db = db
        self._concept_invoices: Optional[list] = None
        self._invoices_by_key: Optional[dict] = None
        self._lines: dict[int, list] = {}

    @property
    def concept_invoices(self) -> list:
        if self._concept_invoices is None:
            self._concept_invoices = load_concept_invoices(self.db)
        return self._concept_invoices

    @property
    def invoices_by_key(self) -> dict:
        if self._invoices_by_key is None:
            self._invoices_by_key = index_invoices_by_key(self.concept_invoices)
        return self._invoices_by_key

    def invoice_for(self, lookup_key: tuple) -> Optional[tuple]:
        """(Invoice, InvoiceKey) for (plate_key, year, week), or None."""
        return self.invoices_by_key.get(lookup_key)

    def lines_for(self, invoice_id: int) -> list:
        lines = self._lines.get(invoice_id)
        if lines is None:
            lines = self._lines[invoice_id] = load_invoice_lines(self.db, invoice_id)
        return lines

    def add_line(self, line):
        self.lines_for(line.invoice_id).append(line)

    def seed_lines(self, invoice_id: int, lines: list):
        self._lines[invoice_id] = lines

