# app/services/toll_import_service.py
"""
Stores rows from a toll operator export and runs the batch reconciler.
Rows arrive already mapped to TollTransaction fields (the spreadsheet side
lives in the ingestion UI); cell values are normalized here.
"""

import hashlib
from datetime import time
from typing import Optional

from pydantic import ValidationError
from sqlalchemy.orm import Session

from app.config import settings
from app.models.toll_transaction import TollTransaction, STATUS_NEW
from app.schemas.toll import TollTransactionIn
from app.services.toll_lookup import chunked
from app.services.toll_reconcile_service import reconcile_new_toll_transactions
from app.utils.logger import get_logger

logger = get_logger(__name__)

WARN_TIME_NOT_MAPPED = ("Transaction time is not mapped: duplicate detection uses plate, date and amount only. "
                        "Identical transactions on the same day are imported once.")
WARN_MIDNIGHT_ROWS = "{count} row(s) have time 00:00 (empty or unreadable); these may still collide as duplicates."


def compute_import_hash(license_plate: str, transaction_date, transaction_time: Optional[time],
                        amount: float, include_time: bool = True) -> str:
    plate = str(license_plate or "").strip().upper()
    day = transaction_date.isoformat()
    clock = transaction_time.strftime("%H:%M") if include_time and transaction_time else ""
    return hashlib.md5(f"{plate}{day}{clock}{float(amount or 0):.2f}".encode("utf-8")).hexdigest()


def _existing_hashes(db: Session, hashes) -> set:
    found = set()
    for chunk in chunked(hashes):
        rows = db.query(TollTransaction.import_hash).filter(TollTransaction.import_hash.in_(chunk)).all()
        found.update(h for (h,) in rows)
    return found


def _validation_reason(exc: ValidationError) -> str:
    return "; ".join(f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors())


def import_toll_transactions(db: Session, rows: list, include_time: bool = True) -> dict:
    parsed, skipped_rows = [], []
    for index, raw in enumerate(rows):
        try:
            parsed.append(TollTransactionIn.model_validate(raw))
        except ValidationError as e:
            skipped_rows.append({"row_index": index, "reason": _validation_reason(e)})

    warnings = []
    if not include_time:
        warnings.append(WARN_TIME_NOT_MAPPED)
    else:
        midnight = sum(1 for row in parsed if row.transaction_time == time(0, 0))
        if midnight:
            warnings.append(WARN_MIDNIGHT_ROWS.format(count=midnight))

    hashed = [
        (compute_import_hash(row.license_plate, row.transaction_date, row.transaction_time,
                             row.amount, include_time), row)
        for row in parsed
    ]
    seen = _existing_hashes(db, {h for h, _ in hashed})

    fresh = []
    for import_hash, row in hashed:
        if import_hash in seen:
            continue
        seen.add(import_hash)
        fresh.append(TollTransaction(import_hash=import_hash, status=STATUS_NEW, **row.model_dump()))

    for batch in chunked(fresh, settings.TOLL_IMPORT_CHUNK_SIZE):
        db.add_all(batch)
        db.commit()

    logger.info(f"[TOLL-IMPORT] rows={len(rows)} parsed={len(parsed)} inserted={len(fresh)} "
                f"duplicates={len(parsed) - len(fresh)} skipped={len(skipped_rows)}")
    if skipped_rows:
        logger.warning(f"[TOLL-IMPORT] {len(skipped_rows)} row(s) could not be read, first: {skipped_rows[0]}")

    reconcile = reconcile_new_toll_transactions(db)
    return {
        "parsed_rows": len(parsed),
        "inserted_rows": len(fresh),
        "skipped_duplicates": len(parsed) - len(fresh),
        "skipped_rows": skipped_rows,
        "reconcile": reconcile,
        "warnings": warnings,
    }
