# app/utils/reference_parser.py
"""
Helpers for the invoice reference convention "Week {W} - {Y} ({PLATE})".
The invoicing subsystem writes this reference; the toll engine uses it to find
the invoice for a plate/week when the structured key columns are empty.
"""

import re
from dataclasses import dataclass
from typing import Optional

from app.utils.toll_parsers import normalize_plate

REFERENCE_RE = re.compile(r"week\s+(\d{1,2})\s*-\s*(\d{4}).*\(([A-Za-z0-9-]+)\)", re.IGNORECASE)


@dataclass(frozen=True)
class InvoiceKey:
    plate: str      # as written on the invoice, uppercased
    week: int
    year: int

    @property
    def lookup_key(self) -> tuple[str, int, int]:
        """(plate_key, year, week): the key transactions are matched on."""
        return normalize_plate(self.plate) or self.plate, self.year, self.week


def parse_invoice_reference(reference: Optional[str]) -> Optional[InvoiceKey]:
    """Returns None when the reference carries no week/year/plate."""
    m = REFERENCE_RE.search(str(reference or ""))
    if not m:
        return None
    week, year = int(m.group(1)), int(m.group(2))
    if week < 1 or week > 53:
        return None
    return InvoiceKey(plate=m.group(3).upper(), week=week, year=year)


def format_invoice_reference(week: int, year: int, plate: str) -> str:
    return f"Week {week} - {year} ({plate.upper()})"


def invoice_key(invoice) -> Optional[InvoiceKey]:
    """Structured columns win; otherwise fall back to parsing the reference."""
    if invoice.license_plate and invoice.week_number and invoice.week_year:
        return InvoiceKey(plate=invoice.license_plate.upper(),
                          week=int(invoice.week_number), year=int(invoice.week_year))
    return parse_invoice_reference(invoice.reference)
