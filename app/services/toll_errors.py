# app/services/toll_errors.py
"""
Exceptions raised by the toll reconciliation services.
All of them are raised before the first write of the operation; routers map
them onto HTTP status codes.
"""


class TollError(Exception):
    """Base class for toll reconciliation errors."""


class InvoiceNotFound(TollError):
    def __init__(self, invoice_id):
        super().__init__(f"Invoice {invoice_id} not found")
        self.invoice_id = invoice_id


class InvoiceNotEligible(TollError):
    def __init__(self, invoice_id, status):
        super().__init__(f"Invoice {invoice_id} has status {status!r}; only concept invoices can receive toll")
        self.invoice_id = invoice_id
        self.status = status


class UnparsableReference(TollError):
    def __init__(self, invoice_id, reference):
        super().__init__(f"Invoice {invoice_id} has no valid toll key (week/year/plate) in reference {reference!r}")
        self.invoice_id = invoice_id
        self.reference = reference


class InvalidStatusTransition(TollError):
    def __init__(self, transaction_id, current, target):
        super().__init__(f"Toll transaction {transaction_id}: cannot go from {current!r} to {target!r}")
        self.transaction_id = transaction_id
        self.current = current
        self.target = target


class TransactionsNotFound(TollError):
    pass


class InconsistentSelection(TollError):
    """Selected transactions cannot be billed on one invoice line."""


class NoTollLineAvailable(TollError):
    pass
