# Toll Reconciliation: Database Models
# Import all models here for SQLAlchemy discovery

from app.models.invoice import Invoice, InvoiceLine           # noqa
from app.models.toll_transaction import TollTransaction       # noqa
