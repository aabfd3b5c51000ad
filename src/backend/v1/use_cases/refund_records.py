"""Typed records for the refund workbook.

Each record mirrors one sheet row. `COLUMNS` is the positional layout used
both when parsing rows and when writing them back, so `to_row()` always
emits cells in the same order the parser reads them.
"""

from __future__ import annotations

from decimal import ROUND_FLOOR, Decimal
from dataclasses import dataclass
from typing import Any, ClassVar


def round_amount(value: float) -> int:
    """Round to the nearest integer currency unit; halves round up.

    The half is added in exact decimal arithmetic so values just below a
    half (0.49999999999999994) are not pulled up by float addition.
    """

    exact = Decimal(value) + Decimal("0.5")
    return int(exact.to_integral_value(rounding=ROUND_FLOOR))


@dataclass(frozen=True, slots=True)
class UnitAssignment:
    month: str = ""
    resident_id: str = ""
    resident_name: str = ""
    unit_name: str = ""
    deposit_amount: float = 0
    rent: float = 0
    rent_subsidy: float = 0
    daily_goods_fee: float = 0
    maintenance_fee: float = 0
    breakfast_unit_price: float = 0
    lunch_unit_price: float = 0
    dinner_unit_price: float = 0
    event_meal_unit_price: float = 0
    utility_shared_fee: float = 0
    management_fee: float = 0
    fire_insurance_fee: float = 0
    food_material_fee: float = 0
    notes: str = ""

    TABLE: ClassVar[str] = "unit_assignment"
    COLUMNS: ClassVar[tuple[str, ...]] = (
        "month",
        "resident_id",
        "resident_name",
        "unit_name",
        "deposit_amount",
        "rent_subsidy",
        "daily_goods_fee",
        "maintenance_fee",
        "breakfast_unit_price",
        "lunch_unit_price",
        "dinner_unit_price",
        "event_meal_unit_price",
        "management_fee",
        "fire_insurance_fee",
        "notes",
    )

    def to_row(self) -> list[Any]:
        return [getattr(self, c) for c in self.COLUMNS]


@dataclass(frozen=True, slots=True)
class UnitMaster:
    unit_name: str = ""
    rent: float = 0
    utility_allocation_percent: float = 0

    TABLE: ClassVar[str] = "unit_master"
    COLUMNS: ClassVar[tuple[str, ...]] = (
        "unit_name",
        "rent",
        "utility_allocation_percent",
    )

    def to_row(self) -> list[Any]:
        return [getattr(self, c) for c in self.COLUMNS]


@dataclass(frozen=True, slots=True)
class UtilityCost:
    month: str = ""
    unit_name: str = ""
    electricity: float = 0
    gas: float = 0
    water: float = 0
    sub: float = 0
    total: float = 0

    TABLE: ClassVar[str] = "utility_cost"
    COLUMNS: ClassVar[tuple[str, ...]] = (
        "month",
        "unit_name",
        "electricity",
        "gas",
        "water",
        "sub",
        "total",
    )

    def to_row(self) -> list[Any]:
        return [getattr(self, c) for c in self.COLUMNS]


@dataclass(frozen=True, slots=True)
class MealCount:
    month: str = ""
    resident_id: str = ""
    resident_name: str = ""
    unit_name: str = ""
    breakfast_count: float = 0
    lunch_count: float = 0
    dinner_count: float = 0
    event_meal_count: float = 0
    notes: str = ""

    TABLE: ClassVar[str] = "meal_count"
    COLUMNS: ClassVar[tuple[str, ...]] = (
        "month",
        "resident_id",
        "resident_name",
        "unit_name",
        "breakfast_count",
        "lunch_count",
        "dinner_count",
        "event_meal_count",
        "notes",
    )

    def to_row(self) -> list[Any]:
        return [getattr(self, c) for c in self.COLUMNS]


@dataclass(frozen=True, slots=True)
class RefundDetail:
    """One computed (resident, month) balance.

    Monetary fields hold whole currency units once produced by the
    calculator. `rent` is the effective rent after subsidy; `rent_subsidy`
    is kept for display but is not part of the sheet layout.
    """

    month: str = ""
    resident_id: str = ""
    resident_name: str = ""
    unit_name: str = ""
    deposit_amount: float = 0
    rent: float = 0
    rent_subsidy: float = 0
    daily_goods: float = 0
    maintenance_fee: float = 0
    food_total: float = 0
    utility_fee: float = 0
    management_fee: float = 0
    fire_insurance: float = 0
    carry_over: float = 0
    net_refund_total: float = 0

    TABLE: ClassVar[str] = "refund_detail"
    COLUMNS: ClassVar[tuple[str, ...]] = (
        "month",
        "resident_id",
        "resident_name",
        "unit_name",
        "deposit_amount",
        "rent",
        "daily_goods",
        "maintenance_fee",
        "food_total",
        "utility_fee",
        "management_fee",
        "fire_insurance",
        "carry_over",
        "net_refund_total",
    )

    @property
    def expense_total(self) -> float:
        return (
            self.rent
            + self.daily_goods
            + self.maintenance_fee
            + self.food_total
            + self.utility_fee
            + self.management_fee
            + self.fire_insurance
        )

    def to_row(self) -> list[Any]:
        return [getattr(self, c) for c in self.COLUMNS]


RECORD_TYPES: dict[str, type] = {
    t.TABLE: t
    for t in (UnitAssignment, UnitMaster, UtilityCost, MealCount, RefundDetail)
}
