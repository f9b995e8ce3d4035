"""Shared fixtures: in-memory SQLite session and row factories."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

# Must be set before app.config is imported anywhere
os.environ["DATABASE_URL"] = "sqlite://"

import pytest
from datetime import date
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.database import create_tables
from app.models.invoice import Invoice, InvoiceLine, INVOICE_STATUS_CONCEPT
from app.models.toll_transaction import TollTransaction, STATUS_NEW


@pytest.fixture
def db():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    create_tables(bind=engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    yield session
    session.close()
    engine.dispose()


@pytest.fixture
def make_invoice(db):
    def _make(reference, status=INVOICE_STATUS_CONCEPT, lines=(), **kwargs):
        invoice = Invoice(reference=reference, status=status, **kwargs)
        db.add(invoice)
        db.flush()
        for spec in lines:
            db.add(InvoiceLine(invoice_id=invoice.id, **{"quantity": 0, "unit_price": 0, "total": 0,
                                                         "vat_rate": 21, **spec}))
        db.commit()
        return invoice
    return _make


@pytest.fixture
def make_tx(db):
    def _make(plate="12-ABC-3", day=date(2025, 3, 10), amount=9.40, country="BE", vat_rate=21,
              status=STATUS_NEW, invoice_line_id=None, **kwargs):
        tx = TollTransaction(license_plate=plate, transaction_date=day, amount=amount, country=country,
                             vat_rate=vat_rate, status=status, invoice_line_id=invoice_line_id, **kwargs)
        db.add(tx)
        db.commit()
        return tx
    return _make


@pytest.fixture
def week_2025_from_dec_30(monkeypatch):
    """Business calendar where week 1 of 2025 starts on Monday 30-12-2024."""
    from app.config import settings
    monkeypatch.setitem(settings.WEEK_START_OVERRIDES, 2025, date(2024, 12, 30))
