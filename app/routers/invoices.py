# app/routers/invoices.py
"""Invoice-scoped toll actions"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from app.database import get_db
from app.schemas.toll import AddTollResultOut
from app.services.toll_errors import TollError
from app.services.toll_reconcile_service import add_toll_to_invoice
from app.routers.toll import toll_http_error

router = APIRouter()


@router.post("/invoices/{invoice_id}/add-toll", response_model=AddTollResultOut,
             summary="Attach the week's toll transactions to a concept invoice")
def add_toll(invoice_id: int, db: Session = Depends(get_db)):
    """
    Links every toll transaction of the invoice's plate and week to its toll lines.
    Transactions bound to another invoice are moved here. Safe to call repeatedly.
    """
    try:
        return add_toll_to_invoice(db, invoice_id)
    except TollError as e:
        raise toll_http_error(e)
