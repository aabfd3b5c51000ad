"""Completeness and data-quality checks over typed refund records.

All findings here are advisory: they are reported next to the calculation
and never block it or the write-back.
"""

from __future__ import annotations

import re
from collections import Counter, defaultdict
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Sequence

from src.backend.v1.use_cases.diagnostics import COLUMN_SWAP, ParseIssue
from src.backend.v1.use_cases.refund_records import (
    MealCount,
    UnitAssignment,
    UnitMaster,
    UtilityCost,
)

FISCAL_CYCLE_MONTHS = 12
COLUMN_SWAP_SAMPLE_ROWS = 5

MISSING_MONTH = "missing_month"
MISSING_UTILITY = "missing_utility"
MISSING_MEAL = "missing_meal"
DUPLICATE_KEY = "duplicate_key"

_ALNUM = re.compile(r"^[A-Za-z0-9]+$")


@dataclass(frozen=True, slots=True)
class ValidationWarning:
    type: str
    message: str
    details: str = ""
    resident_id: str | None = None
    month: str | None = None
    unit_name: str | None = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "message": self.message,
            "details": self.details,
            "resident_id": self.resident_id,
            "month": self.month,
            "unit_name": self.unit_name,
        }


def detect_column_swaps(
    records: Sequence[Any], *, sample_rows: int = COLUMN_SWAP_SAMPLE_ROWS
) -> list[ParseIssue]:
    """Flag rows where resident ID and name look swapped.

    Heuristic: an ID is usually short and alphanumeric. Only the first
    `sample_rows` records are inspected; nothing is corrected.
    """

    issues: list[ParseIssue] = []
    for i, rec in enumerate(records[: max(sample_rows, 0)]):
        rid = rec.resident_id
        name = rec.resident_name
        if len(rid) > len(name) and not _ALNUM.match(rid):
            table = getattr(rec, "TABLE", type(rec).__name__)
            issues.append(
                ParseIssue(
                    table=table,
                    row_number=i + 2,
                    field="resident_id",
                    raw_value=rid,
                    message=(
                        f"Potential column swap in {table} row {i + 2}: "
                        f"ID={rid!r}, Name={name!r}. "
                        "ID is usually shorter and alphanumeric."
                    ),
                    kind=COLUMN_SWAP,
                )
            )
    return issues


def validate_data(
    assignments: Iterable[UnitAssignment],
    utility_costs: Iterable[UtilityCost],
    meal_counts: Iterable[MealCount],
) -> list[ValidationWarning]:
    """Cross-check monthly coverage of one annual cycle.

    - missing_month: resident with fewer than 12 distinct months
    - missing_utility: assignment (month, unit) without a utility cost row
    - missing_meal: assignment (month, resident) without a meal count row
    """

    assignments = list(assignments)
    warnings: list[ValidationWarning] = []

    months_by_resident: dict[str, set[str]] = defaultdict(set)
    name_by_resident: dict[str, str] = {}
    for a in assignments:
        months_by_resident[a.resident_id].add(a.month)
        name_by_resident.setdefault(a.resident_id, a.resident_name)

    for rid, months in months_by_resident.items():
        if len(months) < FISCAL_CYCLE_MONTHS:
            missing = FISCAL_CYCLE_MONTHS - len(months)
            warnings.append(
                ValidationWarning(
                    type=MISSING_MONTH,
                    message=(
                        f"{name_by_resident[rid]} ({rid}): "
                        f"{missing} month(s) of data missing"
                    ),
                    details=f"Registered months: {len(months)}/{FISCAL_CYCLE_MONTHS}",
                    resident_id=rid,
                )
            )

    utility_keys = {(u.month, u.unit_name) for u in utility_costs}
    meal_keys = {(m.month, m.resident_id) for m in meal_counts}

    for a in assignments:
        if (a.month, a.unit_name) not in utility_keys:
            warnings.append(
                ValidationWarning(
                    type=MISSING_UTILITY,
                    message=f"{a.month} {a.unit_name}: utility cost not found",
                    details=f"Resident: {a.resident_name} ({a.resident_id})",
                    resident_id=a.resident_id,
                    month=a.month,
                    unit_name=a.unit_name,
                )
            )

    for a in assignments:
        if (a.month, a.resident_id) not in meal_keys:
            warnings.append(
                ValidationWarning(
                    type=MISSING_MEAL,
                    message=f"{a.month} {a.resident_name}: meal count not found",
                    details=f"Resident ID: {a.resident_id}",
                    resident_id=a.resident_id,
                    month=a.month,
                    unit_name=a.unit_name,
                )
            )

    return warnings


def _duplicates(
    records: Iterable[Any],
    key: Callable[[Any], tuple[str, ...]],
    table: str,
) -> list[ValidationWarning]:
    counts = Counter(key(r) for r in records)
    out: list[ValidationWarning] = []
    for k, n in counts.items():
        if n > 1:
            out.append(
                ValidationWarning(
                    type=DUPLICATE_KEY,
                    message=f"{table}: key {' / '.join(k)} appears {n} times; first row is used",
                    details=f"table={table}",
                )
            )
    return out


def find_duplicate_keys(
    *,
    assignments: Iterable[UnitAssignment] = (),
    unit_masters: Iterable[UnitMaster] = (),
    utility_costs: Iterable[UtilityCost] = (),
    meal_counts: Iterable[MealCount] = (),
) -> list[ValidationWarning]:
    """Report natural-key collisions; the calculator joins first-match-wins."""

    warnings: list[ValidationWarning] = []
    warnings += _duplicates(
        assignments, lambda a: (a.month, a.resident_id), UnitAssignment.TABLE
    )
    warnings += _duplicates(unit_masters, lambda u: (u.unit_name,), UnitMaster.TABLE)
    warnings += _duplicates(
        utility_costs, lambda u: (u.month, u.unit_name), UtilityCost.TABLE
    )
    warnings += _duplicates(
        meal_counts, lambda m: (m.month, m.resident_id), MealCount.TABLE
    )
    return warnings
