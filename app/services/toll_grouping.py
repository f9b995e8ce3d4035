# app/services/toll_grouping.py
"""
Groups toll transactions into charge groups: one group per
(plate, date, country, VAT rate). Each group ends up on exactly one invoice line.
"""

from dataclasses import dataclass, field
from functools import cached_property
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional

from app.config import settings
from app.utils.toll_parsers import normalize_plate
from app.utils.week import week_of
from app.utils.logger import get_logger

logger = get_logger(__name__)

UNKNOWN_COUNTRY = "UNKNOWN"


def round_money(value) -> float:
    return float(Decimal(str(value or 0)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def tx_vat_rate(tx) -> int:
    return int(tx.vat_rate if tx.vat_rate is not None else settings.TOLL_DEFAULT_VAT_RATE)


def tx_plate_key(tx) -> str:
    return tx.plate_key or normalize_plate(tx.license_plate) or ""


def group_key(tx) -> tuple[str, date, str, int]:
    country = (tx.country or "").strip().upper() or UNKNOWN_COUNTRY
    return tx_plate_key(tx), tx.transaction_date, country, tx_vat_rate(tx)


@dataclass
class ChargeGroup:
    plate_key: str
    transaction_date: date
    country_key: str
    key_vat_rate: int
    transactions: list = field(default_factory=list)

    @property
    def key(self) -> tuple[str, date, str, int]:
        return self.plate_key, self.transaction_date, self.country_key, self.key_vat_rate

    @property
    def license_plate(self) -> str:
        return self.transactions[0].license_plate if self.transactions else self.plate_key

    @property
    def country(self) -> Optional[str]:
        return None if self.country_key == UNKNOWN_COUNTRY else self.country_key

    @cached_property
    def vat_rate(self) -> int:
        """First member's rate. Resolved once, after the members are in place."""
        rates = []
        for tx in self.transactions:
            rate = tx_vat_rate(tx)
            if rate not in rates:
                rates.append(rate)
        if len(rates) > 1:
            logger.warning(f"[TOLL] Group {self.plate_key} {self.transaction_date} has multiple VAT rates "
                           f"{rates}; using {rates[0]}%")
        return rates[0] if rates else self.key_vat_rate

    @property
    def total(self) -> float:
        return round_money(sum(Decimal(str(tx.amount or 0)) for tx in self.transactions))

    @property
    def year_week(self) -> tuple[int, int]:
        return week_of(self.transaction_date)

    @property
    def year(self) -> int:
        return self.year_week[0]

    @property
    def week(self) -> int:
        return self.year_week[1]

    @property
    def date_label(self) -> str:
        return self.transaction_date.strftime("%d-%m-%Y")

    @property
    def transaction_ids(self) -> list:
        return [tx.id for tx in self.transactions]

    def __len__(self):
        return len(self.transactions)


def group_transactions(transactions: Iterable) -> list[ChargeGroup]:
    """Partition transactions into charge groups, ordered by key."""
    groups: dict[tuple, ChargeGroup] = {}
    for tx in transactions:
        key = group_key(tx)
        group = groups.get(key)
        if group is None:
            group = groups[key] = ChargeGroup(*key)
        group.transactions.append(tx)
    return [groups[k] for k in sorted(groups, key=lambda k: (k[0], k[1], k[2], k[3]))]
