# app/models/toll_transaction.py
"""
Toll transactions table: one gate/zone charge imported from a toll operator export.
Rows are created by the import service (status "new", no invoice line) and
only ever re-linked by the reconciliation engine via app/services/toll_status.py.
"""

from datetime import datetime, time
from sqlalchemy import Column, Integer, String, Date, Time, DateTime, Numeric, ForeignKey
from sqlalchemy.orm import validates
from app.database import Base
from app.utils.toll_parsers import normalize_plate

STATUS_NEW = "new"
STATUS_MATCHED = "matched"
STATUS_IGNORED = "ignored"
STATUSES = (STATUS_NEW, STATUS_MATCHED, STATUS_IGNORED)


class TollTransaction(Base):
    __tablename__ = "toll_transactions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    license_plate = Column(String(20), nullable=False)
    plate_key = Column(String(20), nullable=False, index=True)   # alphanumerics only
    transaction_date = Column(Date, nullable=False, index=True)
    transaction_time = Column(Time, nullable=False, default=time(0, 0))
    amount = Column(Numeric(12, 2, asdecimal=False), nullable=False)
    vat_rate = Column(Integer, nullable=False, default=21)
    country = Column(String(2))                                  # BE | DE | FR | ... | NULL
    location = Column(String(255))
    import_hash = Column(String(32), unique=True)
    invoice_line_id = Column(Integer, ForeignKey("invoice_lines.id"), index=True)
    status = Column(String(20), nullable=False, default=STATUS_NEW, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime)

    @validates("license_plate")
    def _sync_plate_key(self, key, value):
        value = (value or "").strip().upper()
        self.plate_key = normalize_plate(value) or value
        return value

    def __repr__(self):
        return (f"<TollTransaction {self.id} plate={self.license_plate} "
                f"date={self.transaction_date} status={self.status}>")
