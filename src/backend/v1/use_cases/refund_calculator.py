"""Monthly refund calculation.

Joins unit assignments with the unit master, utility costs and meal counts
and produces one `RefundDetail` per assignment row.

No network calls here: functions accept already-parsed records.

Policy
- Effective rent = unit master rent + rent subsidy (subsidy is stored as a
  non-positive adjustment), floored at 0.
- Utility fee = unit utility total x allocation % / members of that unit in
  that month.
- Meal unit prices come from the assignment row, counts from the meal table.
- Missing unit master / utility / meal rows contribute 0 and mark the row
  as partial. They are never an error.
- Lookups are first-match-wins; duplicates are reported by
  `data_validator.find_duplicate_keys`.
- Rounding happens once, on the stored values.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from typing import Iterable, Sequence

from src.backend.v1.use_cases.refund_records import (
    MealCount,
    RefundDetail,
    UnitAssignment,
    UnitMaster,
    UtilityCost,
    round_amount,
)
from src.backend.v1.use_cases.refund_summary import BatchTotals, summarize_batch

logger = logging.getLogger(__name__)

LOOKUP_UNIT_MASTER = "unit_master"
LOOKUP_UTILITY_COST = "utility_cost"
LOOKUP_MEAL_COUNT = "meal_count"


@dataclass(frozen=True, slots=True)
class RefundBreakdown:
    """Per-row intermediate values, for display and troubleshooting."""

    month: str
    resident_id: str
    unit_name: str
    unit_rent: float
    rent_subsidy: float
    member_count: int
    utility_total: float
    utility_allocation_percent: float
    breakfast_cost: int
    lunch_cost: int
    dinner_cost: int
    event_meal_cost: int
    missing_lookups: tuple[str, ...] = ()

    @property
    def complete(self) -> bool:
        return not self.missing_lookups


@dataclass(frozen=True, slots=True)
class RefundCalculation:
    details: tuple[RefundDetail, ...]
    breakdowns: tuple[RefundBreakdown, ...]
    complete_count: int
    partial_count: int
    totals: BatchTotals


def count_unit_members(
    assignments: Iterable[UnitAssignment],
) -> Counter[tuple[str, str]]:
    """Count assignment rows per (month, unit_name)."""

    return Counter((a.month, a.unit_name) for a in assignments)


def effective_rent(unit_rent: float, rent_subsidy: float) -> float:
    return max(0.0, unit_rent + rent_subsidy)


def utility_share(
    utility_total: float, allocation_percent: float, member_count: int
) -> float:
    return (utility_total * (allocation_percent / 100)) / max(member_count, 1)


def _first_by(records: Iterable, key) -> dict:
    index: dict = {}
    for r in records:
        index.setdefault(key(r), r)
    return index


def calculate_refund(
    assignment: UnitAssignment,
    *,
    unit: UnitMaster | None,
    utility: UtilityCost | None,
    meal: MealCount | None,
    member_count: int,
) -> tuple[RefundDetail, RefundBreakdown]:
    """Compute one resident-month balance from already-resolved lookups."""

    a = assignment
    member_count = max(member_count, 1)

    unit_rent = unit.rent if unit else 0
    allocation = unit.utility_allocation_percent if unit else 0
    rent = effective_rent(unit_rent, a.rent_subsidy)

    breakfast = (meal.breakfast_count if meal else 0) * a.breakfast_unit_price
    lunch = (meal.lunch_count if meal else 0) * a.lunch_unit_price
    dinner = (meal.dinner_count if meal else 0) * a.dinner_unit_price
    event_meal = (meal.event_meal_count if meal else 0) * a.event_meal_unit_price
    food_total = breakfast + lunch + dinner + event_meal

    utility_total = utility.total if utility else 0
    utility_fee = utility_share(utility_total, allocation, member_count) if utility else 0

    net = (
        a.deposit_amount
        - rent
        - a.daily_goods_fee
        - a.maintenance_fee
        - food_total
        - utility_fee
        - a.management_fee
        - a.fire_insurance_fee
    )

    missing: list[str] = []
    if unit is None:
        missing.append(LOOKUP_UNIT_MASTER)
    if utility is None:
        missing.append(LOOKUP_UTILITY_COST)
    if meal is None:
        missing.append(LOOKUP_MEAL_COUNT)

    detail = RefundDetail(
        month=a.month,
        resident_id=a.resident_id,
        resident_name=a.resident_name,
        unit_name=a.unit_name,
        deposit_amount=round_amount(a.deposit_amount),
        rent=round_amount(rent),
        rent_subsidy=round_amount(a.rent_subsidy),
        daily_goods=round_amount(a.daily_goods_fee),
        maintenance_fee=round_amount(a.maintenance_fee),
        food_total=round_amount(food_total),
        utility_fee=round_amount(utility_fee),
        management_fee=round_amount(a.management_fee),
        fire_insurance=round_amount(a.fire_insurance_fee),
        carry_over=0,
        net_refund_total=round_amount(net),
    )
    breakdown = RefundBreakdown(
        month=a.month,
        resident_id=a.resident_id,
        unit_name=a.unit_name,
        unit_rent=unit_rent,
        rent_subsidy=a.rent_subsidy,
        member_count=member_count,
        utility_total=utility_total,
        utility_allocation_percent=allocation,
        breakfast_cost=round_amount(breakfast),
        lunch_cost=round_amount(lunch),
        dinner_cost=round_amount(dinner),
        event_meal_cost=round_amount(event_meal),
        missing_lookups=tuple(missing),
    )
    return detail, breakdown


def calculate_refunds(
    assignments: Sequence[UnitAssignment],
    unit_masters: Iterable[UnitMaster],
    utility_costs: Iterable[UtilityCost],
    meal_counts: Iterable[MealCount],
) -> RefundCalculation:
    """Produce one refund per assignment row, in assignment order."""

    members = count_unit_members(assignments)
    units = _first_by(unit_masters, lambda u: u.unit_name)
    utilities = _first_by(utility_costs, lambda u: (u.unit_name, u.month))
    meals = _first_by(meal_counts, lambda m: (m.resident_id, m.month))

    details: list[RefundDetail] = []
    breakdowns: list[RefundBreakdown] = []
    complete = 0
    partial = 0

    for i, a in enumerate(assignments):
        detail, breakdown = calculate_refund(
            a,
            unit=units.get(a.unit_name),
            utility=utilities.get((a.unit_name, a.month)),
            meal=meals.get((a.resident_id, a.month)),
            member_count=members.get((a.month, a.unit_name), 0),
        )
        details.append(detail)
        breakdowns.append(breakdown)

        if breakdown.complete:
            complete += 1
        else:
            partial += 1
            logger.warning(
                "[%d] %s (%s) %s: missing %s",
                i + 1,
                a.resident_name,
                a.resident_id,
                a.month,
                ", ".join(breakdown.missing_lookups),
            )
        logger.debug(
            "[%d/%d] %s (%s) members=%d net=%s",
            i + 1,
            len(assignments),
            a.resident_name,
            a.resident_id,
            breakdown.member_count,
            detail.net_refund_total,
        )

    totals = summarize_batch(details)
    logger.info(
        "Refund calculation finished: %d records (complete: %d, partial: %d), total refund %s",
        len(details),
        complete,
        partial,
        totals.refund_total,
    )

    return RefundCalculation(
        details=tuple(details),
        breakdowns=tuple(breakdowns),
        complete_count=complete,
        partial_count=partial,
        totals=totals,
    )
