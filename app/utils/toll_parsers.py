# app/utils/toll_parsers.py
"""
Tolerant value parsers for toll operator exports.
Each operator formats plates, dates, amounts and VAT differently; these helpers
turn a single cell value into the normalized form stored on TollTransaction.
All parsers return None for values they cannot read instead of raising.
"""

import re
from datetime import date, datetime, time, timedelta
from typing import Any, Optional

EXCEL_EPOCH = date(1899, 12, 30)

COUNTRY_NAME_TO_CODE = {
    "belgie": "BE", "belgië": "BE", "belgium": "BE", "belgien": "BE", "belgique": "BE",
    "duitsland": "DE", "germany": "DE", "deutschland": "DE", "allemagne": "DE",
    "frankrijk": "FR", "france": "FR", "frankreich": "FR",
    "nederland": "NL", "netherlands": "NL", "niederlande": "NL", "pays-bas": "NL", "holland": "NL",
    "luxemburg": "LU", "luxembourg": "LU",
    "oostenrijk": "AT", "austria": "AT", "österreich": "AT", "autriche": "AT",
    "zwitserland": "CH", "switzerland": "CH", "schweiz": "CH", "suisse": "CH",
    "italie": "IT", "italië": "IT", "italy": "IT", "italien": "IT",
    "spanje": "ES", "spain": "ES", "spanien": "ES", "espagne": "ES",
    "denemarken": "DK", "denmark": "DK", "dänemark": "DK", "danemark": "DK",
    "polen": "PL", "poland": "PL", "pologne": "PL",
}

_DMY = re.compile(r"^(\d{1,2})[-/.](\d{1,2})[-/.](\d{2,4})(?:[\sT].*)?$")
_YMD = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})(?:[\sT].*)?$")
_HHMM = re.compile(r"(\d{1,2}):(\d{2})(?::\d{2})?")


def normalize_plate(value: Any) -> Optional[str]:
    """Uppercase and strip everything that is not a letter or digit ("12-abc-3" -> "12ABC3")."""
    if value is None:
        return None
    plate = re.sub(r"[^A-Z0-9]", "", str(value).upper())
    return plate or None


def _excel_serial_to_date(serial: float) -> Optional[date]:
    if serial <= 0:
        return None
    return EXCEL_EPOCH + timedelta(days=int(serial))


def parse_date(value: Any) -> Optional[date]:
    """Native dates, Excel serials, dd-mm-yyyy (also / and .), yyyy-mm-dd. Two-digit years -> 20xx."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, (int, float)):
        return _excel_serial_to_date(float(value))

    s = str(value).strip()
    try:
        m = _DMY.match(s)
        if m:
            day, month, year = int(m.group(1)), int(m.group(2)), m.group(3)
            full_year = int(year) + 2000 if len(year) == 2 else int(year)
            return date(full_year, month, day)
        m = _YMD.match(s)
        if m:
            return date(int(m.group(1)), int(m.group(2)), int(m.group(3)))
    except ValueError:
        return None
    return None


def _minutes_to_time(total_minutes: int) -> time:
    return time((total_minutes // 60) % 24, total_minutes % 60)


def parse_time(value: Any) -> Optional[time]:
    """HH:mm strings, Excel day fractions / datetime serials, and decimal hours ("8.5" -> 08:30)."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.time().replace(second=0, microsecond=0)
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0)
    if isinstance(value, (int, float)):
        v = float(value)
        if v < 0:
            return None
        if v < 1:
            return _minutes_to_time(round(v * 24 * 60))
        if v <= 24:
            hours = int(v)
            return _minutes_to_time(hours * 60 + round((v - hours) * 60))
        # Excel datetime serial: fractional part is the time of day
        return _minutes_to_time(round((v - int(v)) * 24 * 60))

    s = str(value).strip()
    m = _HHMM.search(s)
    if m:
        hours, minutes = int(m.group(1)), int(m.group(2))
        if hours > 23 or minutes > 59:
            return None
        return time(hours, minutes)
    try:
        v = float(s.replace(",", "."))
    except ValueError:
        return None
    if 0 <= v <= 24:
        hours = int(v)
        return _minutes_to_time(hours * 60 + round((v - hours) * 60))
    return None


def parse_money(value: Any) -> Optional[float]:
    """'€ 1.234,56' -> 1234.56, '9,40' -> 9.4, 12 -> 12.0."""
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    cleaned = re.sub(r"[€\s]", "", str(value))
    if "." in cleaned and "," in cleaned:
        cleaned = cleaned.replace(".", "").replace(",", ".")
    elif "," in cleaned:
        cleaned = cleaned.replace(",", ".")
    try:
        return float(cleaned)
    except ValueError:
        return None


def parse_vat(value: Any) -> Optional[int]:
    """'21', '21%', '0,21' and 0.21 all mean 21 (percent)."""
    if value is None or value == "":
        return None
    if isinstance(value, (int, float)):
        num = float(value)
    else:
        s = str(value).replace("%", "").strip().replace(",", ".")
        if not s:
            return None
        try:
            num = float(s)
        except ValueError:
            return None
    if num <= 0:
        return 0
    if num <= 1:
        return round(num * 100)
    return round(num)


def normalize_country(value: Any) -> Optional[str]:
    """Two-letter codes pass through uppercased; known country names map to their code."""
    if value is None:
        return None
    s = str(value).strip()
    if not s:
        return None
    if re.fullmatch(r"[A-Za-z]{2}", s):
        return s.upper()
    code = COUNTRY_NAME_TO_CODE.get(s.lower())
    if code:
        return code
    # Unrecognized names are stored as unknown country
    return None
