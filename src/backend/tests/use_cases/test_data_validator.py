from __future__ import annotations

from src.backend.v1.use_cases.data_validator import (
    DUPLICATE_KEY,
    MISSING_MEAL,
    MISSING_MONTH,
    MISSING_UTILITY,
    detect_column_swaps,
    find_duplicate_keys,
    validate_data,
)
from src.backend.v1.use_cases.refund_records import (
    MealCount,
    UnitAssignment,
    UnitMaster,
    UtilityCost,
)

FISCAL_MONTHS = [f"2024-{m:02d}" for m in range(4, 13)] + [f"2025-{m:02d}" for m in range(1, 4)]


def _full_year(rid: str, unit: str = "A") -> list[UnitAssignment]:
    return [
        UnitAssignment(month=m, resident_id=rid, resident_name=f"name-{rid}", unit_name=unit)
        for m in FISCAL_MONTHS
    ]


def _utilities(unit: str = "A") -> list[UtilityCost]:
    return [UtilityCost(month=m, unit_name=unit, total=1000) for m in FISCAL_MONTHS]


def _meals(rid: str) -> list[MealCount]:
    return [MealCount(month=m, resident_id=rid) for m in FISCAL_MONTHS]


def test_complete_year_has_no_warnings() -> None:
    assert validate_data(_full_year("U1"), _utilities(), _meals("U1")) == []


def test_missing_month_counts_distinct_months() -> None:
    rows = _full_year("U1")[:10]
    # Same month twice does not count twice.
    rows.append(rows[0])
    warnings = validate_data(rows, _utilities(), _meals("U1"))
    [w] = [w for w in warnings if w.type == MISSING_MONTH]
    assert w.resident_id == "U1"
    assert "2 month(s)" in w.message
    assert w.details == "Registered months: 10/12"


def test_missing_utility_reported_per_assignment_row() -> None:
    utilities = [u for u in _utilities() if u.month != "2024-06"]
    warnings = validate_data(
        _full_year("U1") + _full_year("U2"), utilities, _meals("U1") + _meals("U2")
    )
    missing = [w for w in warnings if w.type == MISSING_UTILITY]
    assert [(w.month, w.resident_id) for w in missing] == [("2024-06", "U1"), ("2024-06", "U2")]
    assert missing[0].unit_name == "A"


def test_missing_meal_matches_on_resident_id() -> None:
    meals = [MealCount(month=m, resident_id="other", resident_name="name-U1") for m in FISCAL_MONTHS]
    warnings = validate_data(_full_year("U1"), _utilities(), meals)
    assert len([w for w in warnings if w.type == MISSING_MEAL]) == 12


def test_warnings_serialize() -> None:
    [w] = validate_data(_full_year("U1")[:11] + [], _utilities(), _meals("U1"))
    d = w.as_dict()
    assert d["type"] == MISSING_MONTH
    assert d["resident_id"] == "U1"


def test_find_duplicate_keys() -> None:
    warnings = find_duplicate_keys(
        unit_masters=[UnitMaster(unit_name="A"), UnitMaster(unit_name="A"), UnitMaster(unit_name="B")],
        utility_costs=_utilities() + _utilities()[:1],
        meal_counts=_meals("U1"),
    )
    assert [w.type for w in warnings] == [DUPLICATE_KEY, DUPLICATE_KEY]
    assert "unit_master" in warnings[0].message
    assert "appears 2 times" in warnings[0].message
    assert "2024-04 / A" in warnings[1].message


def test_detect_column_swaps() -> None:
    good = UnitAssignment(resident_id="U001", resident_name="Sato Hanako")
    swapped = UnitAssignment(resident_id="Sato Hanako", resident_name="U001")
    long_alnum = UnitAssignment(resident_id="ABCDEFGH12", resident_name="Li")

    issues = detect_column_swaps([good, swapped, long_alnum])
    assert [i.row_number for i in issues] == [3]
    assert issues[0].table == "unit_assignment"
    assert "Potential column swap" in issues[0].message
