from __future__ import annotations

import pytest

from src.backend.v1.use_cases import refund_summary
from src.backend.v1.use_cases.refund_records import RefundDetail
from src.backend.v1.use_cases.refund_summary import (
    fiscal_sort_key,
    fiscal_year_of,
    name_sort_key,
    sort_months_fiscal,
    summarize_batch,
    summarize_by_resident,
)


def _detail(rid: str, name: str, month: str, **kw) -> RefundDetail:
    return RefundDetail(month=month, resident_id=rid, resident_name=name, **kw)


def test_fiscal_year_of() -> None:
    assert fiscal_year_of("2024-04") == 2024
    assert fiscal_year_of("2025-03") == 2024
    assert fiscal_year_of("2024-01") == 2023
    assert fiscal_year_of("garbage") is None


def test_fiscal_sort_example() -> None:
    months = ["2024-04", "2025-03", "2024-12", "2024-01"]
    assert sort_months_fiscal(months) == ["2024-04", "2024-12", "2025-03", "2024-01"]


def test_fiscal_sort_full_year_starts_in_april() -> None:
    fiscal_2024 = [f"2024-{m:02d}" for m in range(4, 13)] + [f"2025-{m:02d}" for m in range(1, 4)]
    assert sort_months_fiscal(reversed(fiscal_2024)) == fiscal_2024

    ordered = sort_months_fiscal(["2024-02"] + fiscal_2024[::-1] + ["2024-03"])
    assert ordered[:12] == fiscal_2024
    assert ordered[12:] == ["2024-02", "2024-03"]


def test_unparseable_months_sort_last() -> None:
    assert sort_months_fiscal(["x", "2024-05", ""]) == ["2024-05", "x", ""]
    assert fiscal_sort_key("2024/7") == (0, -2024, 3)


def test_summarize_by_resident_totals_and_order() -> None:
    details = [
        _detail("U2", "Suzuki", "2025-01", deposit_amount=100, rent=10, food_total=5, net_refund_total=85),
        _detail("U1", "Abe", "2024-05", deposit_amount=100, utility_fee=20, net_refund_total=80),
        _detail("U2", "Suzuki", "2024-04", deposit_amount=100, daily_goods=1, maintenance_fee=2,
                management_fee=3, fire_insurance=4, net_refund_total=90),
    ]
    summaries = summarize_by_resident(details)
    assert [s.resident_id for s in summaries] == ["U1", "U2"]

    suzuki = summaries[1]
    assert suzuki.annual_deposit_total == 200
    assert suzuki.annual_expense_total == 10 + 5 + 1 + 2 + 3 + 4
    assert suzuki.annual_refund_total == 175
    assert [m.month for m in suzuki.months] == ["2024-04", "2025-01"]


def test_summarize_groups_by_id_even_with_same_name() -> None:
    details = [_detail("U1", "Sato", "2024-04"), _detail("U2", "Sato", "2024-04")]
    assert len(summarize_by_resident(details)) == 2


def test_summarize_batch() -> None:
    totals = summarize_batch(
        [
            _detail("U1", "A", "2024-04", deposit_amount=10, rent=3, net_refund_total=7),
            _detail("U2", "B", "2024-04", deposit_amount=5, utility_fee=6, net_refund_total=-1),
        ]
    )
    assert (totals.deposit_total, totals.expense_total, totals.refund_total) == (15, 9, 6)
    assert summarize_batch([]).refund_total == 0


@pytest.fixture
def code_point_collation(monkeypatch):
    monkeypatch.setattr(refund_summary, "_collation_locale", lambda: None)


def test_names_sort_ignoring_case_and_kana_script(code_point_collation) -> None:
    details = [
        _detail("U1", "Sato", "2024-04"),
        _detail("U2", "abe", "2024-04"),
        _detail("U3", "いとう", "2024-04"),
        _detail("U4", "アベ", "2024-04"),
    ]
    names = [s.resident_name for s in summarize_by_resident(details)]
    assert names == ["abe", "Sato", "アベ", "いとう"]


def test_half_width_katakana_sorts_with_full_width(code_point_collation) -> None:
    assert name_sort_key("ｱﾍﾞ")[0] == name_sort_key("あべ")[0]


def test_unavailable_collation_locale_falls_back(monkeypatch) -> None:
    monkeypatch.setenv("REFUND_COLLATION_LOCALE", "xx_NOWHERE.UTF-8")
    refund_summary._collation_locale.cache_clear()
    try:
        assert refund_summary._collation_locale() is None
        assert name_sort_key("a") < name_sort_key("B")
    finally:
        refund_summary._collation_locale.cache_clear()
