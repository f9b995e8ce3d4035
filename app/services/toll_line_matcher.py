# app/services/toll_line_matcher.py
"""
Decides which invoice line a charge group is billed on.

Priority:
  1. exact toll line: toll + same date + same VAT (+ country name when the
     country is known); a blank placeholder among them wins over a populated one
  2. fallback placeholder: blank toll line for the date/VAT, any country;
     one that already names the country wins
  3. create a new line "{Weekday} {dd-mm-yyyy}\nTol {Country}"

Placeholders are pre-seeded per date by the invoicing subsystem, so reusing
them is always preferred over adding lines.
"""

import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from app.models.invoice import LINE_KIND_TOLL
from app.services.toll_grouping import ChargeGroup

REUSE = "reuse"
REUSE_PLACEHOLDER = "reuse_placeholder"
CREATE = "create"

TOLL_MARKER = "tol"
DATE_LABEL_RE = re.compile(r"(\d{2})-(\d{2})-(\d{4})")

COUNTRY_DISPLAY_NAMES = {
    "BE": "België",
    "DE": "Duitsland",
    "FR": "Frankrijk",
    "NL": "Nederland",
    "LU": "Luxemburg",
    "AT": "Oostenrijk",
    "CH": "Zwitserland",
    "IT": "Italië",
    "ES": "Spanje",
    "DK": "Denemarken",
    "PL": "Polen",
}

WEEKDAY_NAMES = ["Maandag", "Dinsdag", "Woensdag", "Donderdag", "Vrijdag", "Zaterdag", "Zondag"]


def country_display_name(code: Optional[str]) -> Optional[str]:
    if not code:
        return None
    return COUNTRY_DISPLAY_NAMES.get(code.upper())


def format_date_label(d: date) -> str:
    return d.strftime("%d-%m-%Y")


def parse_date_label(text: Optional[str]) -> Optional[date]:
    """First dd-mm-yyyy label in a description, or None."""
    m = DATE_LABEL_RE.search(str(text or ""))
    if not m:
        return None
    try:
        return datetime.strptime(m.group(0), "%d-%m-%Y").date()
    except ValueError:
        return None


def build_toll_description(d: date, country: Optional[str]) -> str:
    name = country_display_name(country)
    head = f"{WEEKDAY_NAMES[d.weekday()]} {format_date_label(d)}"
    return f"{head}\nTol {name}" if name else f"{head}\nTol"


def is_toll_line(line) -> bool:
    return line.line_kind == LINE_KIND_TOLL or TOLL_MARKER in (line.description or "").lower()


def is_blank(line) -> bool:
    return float(line.quantity or 0) == 0 and float(line.unit_price or 0) == 0


def is_toll_placeholder(line) -> bool:
    return is_toll_line(line) and is_blank(line)


def line_toll_date(line) -> Optional[date]:
    return line.toll_date or parse_date_label(line.description)


def line_names_country(line, country: Optional[str]) -> bool:
    if not country:
        return False
    if line.toll_country and line.toll_country.upper() == country.upper():
        return True
    name = country_display_name(country)
    return bool(name) and name.lower() in (line.description or "").lower()


@dataclass
class LineDecision:
    action: str
    line: Optional[object]
    quantity: float
    unit_price: float
    total: float
    vat_rate: int
    toll_date: date
    toll_country: Optional[str]
    description: Optional[str] = None   # set when the line text must be (re)written

    @property
    def creates_line(self) -> bool:
        return self.action == CREATE


def _candidates_for_date(group: ChargeGroup, lines) -> list:
    vat_rate = group.vat_rate
    out = []
    for line in lines:
        if not is_toll_line(line):
            continue
        if line_toll_date(line) != group.transaction_date:
            continue
        if int(line.vat_rate if line.vat_rate is not None else vat_rate) != vat_rate:
            continue
        out.append(line)
    return out


def find_exact_lines(group: ChargeGroup, lines) -> list:
    candidates = _candidates_for_date(group, lines)
    # Country filter only applies when we can name the country
    if country_display_name(group.country):
        candidates = [l for l in candidates if line_names_country(l, group.country)]
    return candidates


def match_line(group: ChargeGroup, lines) -> LineDecision:
    """Pick the target line for `group` among `lines` (one invoice's lines)."""
    total = group.total
    payload = dict(quantity=1, unit_price=total, total=total, vat_rate=group.vat_rate,
                   toll_date=group.transaction_date, toll_country=group.country)

    exact = find_exact_lines(group, lines)
    if exact:
        blanks = [l for l in exact if is_blank(l)]
        return LineDecision(action=REUSE, line=(blanks or exact)[0], **payload)

    placeholders = [l for l in _candidates_for_date(group, lines) if is_blank(l)]
    if placeholders:
        named = [l for l in placeholders if line_names_country(l, group.country)]
        target = (named or placeholders)[0]
        description = None
        if country_display_name(group.country) and not named:
            # Placeholder is reassigned to this group's country
            description = build_toll_description(group.transaction_date, group.country)
        return LineDecision(action=REUSE_PLACEHOLDER, line=target, description=description, **payload)

    return LineDecision(action=CREATE, line=None,
                        description=build_toll_description(group.transaction_date, group.country),
                        **payload)
