# app/models/invoice.py
"""
Invoices + invoice lines. Owned by the invoicing subsystem; the toll engine
only edits lines of "concept" invoices.

The toll key (plate, week, year) can be stored in structured columns; when
those are empty it is recovered from the reference "Week {W} - {Y} ({PLATE})".
Toll lines carry line_kind/toll_date/toll_country next to the human description.
"""

from sqlalchemy import Column, Integer, String, Date, Text, Numeric, ForeignKey
from sqlalchemy.orm import relationship
from app.database import Base

INVOICE_STATUS_CONCEPT = "concept"
LINE_KIND_TOLL = "toll"


class Invoice(Base):
    __tablename__ = "invoices"

    id = Column(Integer, primary_key=True, autoincrement=True)
    reference = Column(String(255))
    status = Column(String(30), nullable=False, default=INVOICE_STATUS_CONCEPT, index=True)
    invoice_date = Column(Date)
    # Structured toll key (optional, preferred over parsing the reference)
    license_plate = Column(String(20))
    week_number = Column(Integer)
    week_year = Column(Integer)

    lines = relationship("InvoiceLine", back_populates="invoice", order_by="InvoiceLine.id")

    def __repr__(self):
        return f"<Invoice {self.id} ref={self.reference!r} status={self.status}>"


class InvoiceLine(Base):
    __tablename__ = "invoice_lines"

    id = Column(Integer, primary_key=True, autoincrement=True)
    invoice_id = Column(Integer, ForeignKey("invoices.id"), nullable=False, index=True)
    description = Column(Text, nullable=False, default="")
    quantity = Column(Numeric(12, 2, asdecimal=False), nullable=False, default=0)
    unit_price = Column(Numeric(12, 2, asdecimal=False), nullable=False, default=0)
    vat_rate = Column(Integer, nullable=False, default=21)
    total = Column(Numeric(12, 2, asdecimal=False), nullable=False, default=0)
    line_kind = Column(String(20))      # toll | NULL
    toll_date = Column(Date)
    toll_country = Column(String(2))

    invoice = relationship("Invoice", back_populates="lines")

    def __repr__(self):
        return f"<InvoiceLine {self.id} invoice={self.invoice_id} qty={self.quantity} price={self.unit_price}>"
