# app/schemas/toll.py
from pydantic import BaseModel, Field, field_validator
from datetime import date, time, datetime
from typing import Any, Optional

from app.config import settings
from app.utils.toll_parsers import (
    normalize_plate, parse_date, parse_time, parse_money, parse_vat, normalize_country,
)


class TollTransactionIn(BaseModel):
    """One row of a toll operator export, as mapped by the ingestion UI. Cell values may be raw."""
    license_plate: str
    transaction_date: date
    transaction_time: time = time(0, 0)
    amount: float
    vat_rate: int = settings.TOLL_DEFAULT_VAT_RATE
    country: Optional[str] = None
    location: Optional[str] = None

    @field_validator("license_plate", mode="before")
    @classmethod
    def _plate(cls, v: Any):
        plate = normalize_plate(v)
        if not plate:
            raise ValueError("missing plate")
        return plate

    @field_validator("transaction_date", mode="before")
    @classmethod
    def _date(cls, v: Any):
        d = parse_date(v)
        if d is None:
            raise ValueError("missing/invalid date")
        return d

    @field_validator("transaction_time", mode="before")
    @classmethod
    def _time(cls, v: Any):
        return parse_time(v) or time(0, 0)

    @field_validator("amount", mode="before")
    @classmethod
    def _amount(cls, v: Any):
        amount = parse_money(v)
        if amount is None:
            raise ValueError("missing/invalid amount")
        return round(amount, 2)

    @field_validator("vat_rate", mode="before")
    @classmethod
    def _vat(cls, v: Any):
        rate = parse_vat(v)
        return settings.TOLL_DEFAULT_VAT_RATE if rate is None else rate

    @field_validator("country", mode="before")
    @classmethod
    def _country(cls, v: Any):
        return normalize_country(v)

    @field_validator("location", mode="before")
    @classmethod
    def _location(cls, v: Any):
        if v is None:
            return None
        return str(v).strip() or None


class TollImportRequest(BaseModel):
    rows: list[dict[str, Any]]
    include_time: bool = True   # False when the export has no usable time column


class TollTransactionOut(BaseModel):
    id: int
    license_plate: str
    transaction_date: date
    transaction_time: Optional[time]
    amount: float
    vat_rate: int
    country: Optional[str]
    location: Optional[str]
    invoice_line_id: Optional[int]
    status: str
    created_at: Optional[datetime]

    class Config:
        from_attributes = True


class TollStatusUpdate(BaseModel):
    ids: list[int] = Field(min_length=1)
    status: str


class TollManualMatch(BaseModel):
    ids: list[int] = Field(min_length=1)
    invoice_id: int
    create_if_missing: bool = True


class AddTollResultOut(BaseModel):
    matched_transactions: int
    updated_invoice_lines: int
    unlinked_transactions: int = 0
    message: str


class UnmatchedGroupOut(BaseModel):
    license_plate: str
    transaction_date: date
    country: Optional[str]
    vat_rate: int
    amount: float
    transaction_count: int
    reason: str


class ReconcileResultOut(BaseModel):
    processed_transactions: int
    matched_transactions: int
    unmatched_groups: list[UnmatchedGroupOut]
    updated_invoice_lines: int


class SkippedRowOut(BaseModel):
    row_index: int
    reason: str


class TollImportResultOut(BaseModel):
    parsed_rows: int
    inserted_rows: int
    skipped_duplicates: int
    skipped_rows: list[SkippedRowOut]
    reconcile: ReconcileResultOut
    warnings: list[str]


class ManualMatchResultOut(BaseModel):
    invoice_line_id: int
    total: float
    vat_rate: int
    invoice_reference: Optional[str]
    toll_status: str


class MatchedRowOut(BaseModel):
    license_plate: str
    transaction_date: date
    amount: float
    transaction_count: int
    invoice_line_id: int
    invoice_id: Optional[int]
    invoice_reference: Optional[str]


class UnmatchedRowOut(BaseModel):
    license_plate: str
    transaction_date: date
    amount: float
    count: int
    transaction_ids: list[int]
    week_id: str
    reason: str
    suggested_invoice_id: Optional[int]
    suggested_invoice_reference: Optional[str]


class MissingTollOut(BaseModel):
    invoice_id: int
    invoice_reference: Optional[str]
    invoice_line_id: int
    license_plate: str
    transaction_date: Optional[date]
    date_label: str
    week_id: str
    reason: str


class WeekOverviewOut(BaseModel):
    week_id: str            # YYYY-WW
    license_plate: str
    matched_amount: float
    unmatched_amount: float
    missing_toll_count: int
    ok: bool


class LineMismatchOut(BaseModel):
    invoice_id: int
    invoice_reference: Optional[str]
    invoice_line_id: int
    description: Optional[str]
    line_total: float
    linked_total: float
    transaction_count: int


class TollDashboardOut(BaseModel):
    matched: list[MatchedRowOut]
    unmatched: list[UnmatchedRowOut]
    missing_toll: list[MissingTollOut]
    week_overview: list[WeekOverviewOut]
    line_mismatches: list[LineMismatchOut] = []


class ConceptInvoiceOut(BaseModel):
    id: int
    reference: Optional[str]
    invoice_date: Optional[date]
    status: str
    license_plate: Optional[str]
    week_id: Optional[str]
    open_toll_lines: int
    toll_status: str
