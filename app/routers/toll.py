# app/routers/toll.py
"""Toll transactions: import, batch reconcile, dashboard and manual corrections"""

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from typing import Optional
from app.database import get_db
from app.models.toll_transaction import TollTransaction, STATUSES
from app.schemas.toll import (
    TollTransactionOut, TollImportRequest, TollImportResultOut, TollStatusUpdate, TollManualMatch,
    ReconcileResultOut, TollDashboardOut, ConceptInvoiceOut, ManualMatchResultOut,
)
from app.services.toll_errors import (
    TollError, InvoiceNotFound, TransactionsNotFound, UnparsableReference,
)
from app.services.toll_reconcile_service import reconcile_new_toll_transactions
from app.services.toll_dashboard_service import build_toll_dashboard, list_concept_invoices
from app.services.toll_import_service import import_toll_transactions
from app.services.toll_transaction_service import set_transaction_status, match_transactions_to_invoice
from app.utils.toll_parsers import normalize_plate
from app.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()


def toll_http_error(exc: TollError) -> HTTPException:
    if isinstance(exc, (InvoiceNotFound, TransactionsNotFound)):
        code = 404
    elif isinstance(exc, UnparsableReference):
        code = 422
    else:
        code = 400
    logger.warning(f"[TOLL] {code}: {exc}")
    return HTTPException(status_code=code, detail=str(exc))


@router.get("/toll/concept-invoices", response_model=list[ConceptInvoiceOut],
            summary="Concept invoices awaiting toll")
def concept_invoices(
    needs_toll: bool = True,
    limit: int = Query(300, ge=1, le=500),
    db: Session = Depends(get_db),
):
    return list_concept_invoices(db, needs_toll=needs_toll, limit=limit)


@router.get("/toll/dashboard", response_model=TollDashboardOut, summary="Toll reconciliation dashboard")
def toll_dashboard(days_back: Optional[int] = Query(None, ge=1, le=3650), db: Session = Depends(get_db)):
    """Matched, unmatched and missing toll per plate/day, plus a week overview."""
    return build_toll_dashboard(db, days_back=days_back)


@router.post("/toll/reconcile", response_model=ReconcileResultOut, summary="Reconcile all new toll transactions")
def reconcile(db: Session = Depends(get_db)):
    return reconcile_new_toll_transactions(db)


@router.post("/toll/import", response_model=TollImportResultOut, summary="Import mapped toll export rows")
def import_rows(body: TollImportRequest, db: Session = Depends(get_db)):
    if not body.rows:
        raise HTTPException(status_code=400, detail="No rows provided")
    return import_toll_transactions(db, body.rows, include_time=body.include_time)


@router.get("/toll/transactions", response_model=list[TollTransactionOut], summary="List toll transactions")
def list_transactions(
    status: Optional[str] = None,
    license_plate: Optional[str] = None,
    limit: int = Query(200, ge=1, le=1000),
    db: Session = Depends(get_db),
):
    q = db.query(TollTransaction)
    if status:
        if status not in STATUSES:
            raise HTTPException(status_code=400, detail=f"Unknown status {status!r}")
        q = q.filter(TollTransaction.status == status)
    if license_plate:
        q = q.filter(TollTransaction.plate_key == normalize_plate(license_plate))
    return q.order_by(TollTransaction.transaction_date.desc(), TollTransaction.id.desc()).limit(limit).all()


@router.patch("/toll/transactions/status", summary="Ignore or reinstate toll transactions")
def update_status(body: TollStatusUpdate, db: Session = Depends(get_db)):
    try:
        updated = set_transaction_status(db, body.ids, body.status)
    except TollError as e:
        raise toll_http_error(e)
    return {"status": body.status, "updated": updated}


@router.post("/toll/transactions/match", response_model=ManualMatchResultOut,
             summary="Put selected toll transactions on a concept invoice")
def manual_match(body: TollManualMatch, db: Session = Depends(get_db)):
    try:
        return match_transactions_to_invoice(db, body.ids, body.invoice_id,
                                             create_if_missing=body.create_if_missing)
    except TollError as e:
        raise toll_http_error(e)
