"""Per-resident annual summaries in fiscal-year order.

The fiscal year starts in April: 2025-01..2025-03 belong to FY2024 and sort
after 2024-04..2024-12. Fiscal years are listed most recent first.
"""

from __future__ import annotations

import functools
import locale
import logging
import os
import re
import unicodedata
from dataclasses import dataclass
from typing import Iterable

from src.backend.v1.use_cases.refund_records import RefundDetail

FISCAL_YEAR_START_MONTH = 4
DEFAULT_COLLATION_LOCALE = "ja_JP.UTF-8"

logger = logging.getLogger(__name__)

_MONTH = re.compile(r"^\s*(\d{4})\s*[-/]\s*(\d{1,2})")


@dataclass(frozen=True, slots=True)
class BatchTotals:
    deposit_total: float = 0
    expense_total: float = 0
    refund_total: float = 0


@dataclass(frozen=True, slots=True)
class ResidentSummary:
    resident_id: str
    resident_name: str
    annual_deposit_total: float
    annual_expense_total: float
    annual_refund_total: float
    months: tuple[RefundDetail, ...]


def _year_month(month: str) -> tuple[int, int] | None:
    m = _MONTH.match(month or "")
    if not m:
        return None
    mon = int(m.group(2))
    if not 1 <= mon <= 12:
        return None
    return int(m.group(1)), mon


def fiscal_year_of(month: str) -> int | None:
    """Return the fiscal year a "YYYY-MM" month belongs to."""

    ym = _year_month(month)
    if ym is None:
        return None
    year, mon = ym
    return year if mon >= FISCAL_YEAR_START_MONTH else year - 1


def fiscal_sort_key(month: str) -> tuple[int, int, int]:
    """Sort key: (unparseable?, newest fiscal year first, April..March).

    Unparseable months sort after every valid month; `sorted` keeps their
    input order.
    """

    ym = _year_month(month)
    if ym is None:
        return (1, 0, 0)
    year, mon = ym
    fiscal_year = year if mon >= FISCAL_YEAR_START_MONTH else year - 1
    position = (mon - FISCAL_YEAR_START_MONTH) % 12
    return (0, -fiscal_year, position)


@functools.lru_cache(maxsize=1)
def _collation_locale() -> str | None:
    """Switch LC_COLLATE to REFUND_COLLATION_LOCALE once; None if unavailable."""

    name = os.environ.get("REFUND_COLLATION_LOCALE", DEFAULT_COLLATION_LOCALE)
    try:
        return locale.setlocale(locale.LC_COLLATE, name)
    except locale.Error:
        logger.warning(f"Collation locale {name!r} not available; using code-point order")
        return None


def name_sort_key(name: str) -> tuple[str, str]:
    """Dictionary-style key for display names.

    Case is ignored, half-width forms are widened and katakana folds onto
    hiragana so the same reading sorts together. The folded text goes
    through `locale.strxfrm` when the collation locale could be set. The
    raw name breaks ties.
    """

    folded = unicodedata.normalize("NFKC", name or "").casefold()
    folded = "".join(
        chr(ord(ch) - 0x60) if "\u30a1" <= ch <= "\u30f6" else ch for ch in folded
    )
    if _collation_locale() is not None:
        folded = locale.strxfrm(folded)
    return folded, name or ""


def sort_months_fiscal(months: Iterable[str]) -> list[str]:
    return sorted(months, key=fiscal_sort_key)


def summarize_batch(details: Iterable[RefundDetail]) -> BatchTotals:
    deposit = 0.0
    expense = 0.0
    refund = 0.0
    for d in details:
        deposit += d.deposit_amount
        expense += d.expense_total
        refund += d.net_refund_total
    return BatchTotals(
        deposit_total=deposit, expense_total=expense, refund_total=refund
    )


def summarize_by_resident(details: Iterable[RefundDetail]) -> list[ResidentSummary]:
    grouped: dict[str, list[RefundDetail]] = {}
    for d in details:
        grouped.setdefault(d.resident_id, []).append(d)

    summaries: list[ResidentSummary] = []
    for rid, rows in grouped.items():
        totals = summarize_batch(rows)
        summaries.append(
            ResidentSummary(
                resident_id=rid,
                resident_name=rows[0].resident_name,
                annual_deposit_total=totals.deposit_total,
                annual_expense_total=totals.expense_total,
                annual_refund_total=totals.refund_total,
                months=tuple(sorted(rows, key=lambda r: fiscal_sort_key(r.month))),
            )
        )

    summaries.sort(key=lambda s: (name_sort_key(s.resident_name), s.resident_id))
    return summaries
