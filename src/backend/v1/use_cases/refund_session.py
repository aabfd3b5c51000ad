"""Load -> calculate -> write-back pipeline over an immutable session.

A `RefundSession` is a snapshot of the workbook tables read in one load plus
whatever was derived from them. Stages return new snapshots; nothing is
shared between requests.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Sequence

from src.backend.v1.config.settings import SheetTable
from src.backend.v1.integrations.google_sheets_gateway import SheetGateway
from src.backend.v1.use_cases.data_validator import (
    ValidationWarning,
    find_duplicate_keys,
    validate_data,
)
from src.backend.v1.use_cases.diagnostics import ParseDiagnostics
from src.backend.v1.use_cases.refund_calculator import (
    RefundCalculation,
    calculate_refunds,
)
from src.backend.v1.use_cases.refund_records import (
    MealCount,
    RefundDetail,
    UnitAssignment,
    UnitMaster,
    UtilityCost,
)
from src.backend.v1.use_cases.refund_summary import (
    ResidentSummary,
    summarize_by_resident,
)
from src.backend.v1.use_cases.row_parser import (
    parse_meal_counts,
    parse_refund_details,
    parse_unit_assignments,
    parse_unit_masters,
    parse_utility_costs,
)
from src.backend.v1.use_cases.unit_transfers import (
    UnitTransferHistory,
    detect_unit_transfers,
)

logger = logging.getLogger(__name__)

_PARSERS = {
    UnitAssignment.TABLE: parse_unit_assignments,
    UnitMaster.TABLE: parse_unit_masters,
    UtilityCost.TABLE: parse_utility_costs,
    MealCount.TABLE: parse_meal_counts,
    RefundDetail.TABLE: parse_refund_details,
}


@dataclass(frozen=True, slots=True)
class RefundSession:
    assignments: tuple[UnitAssignment, ...] = ()
    unit_masters: tuple[UnitMaster, ...] = ()
    utility_costs: tuple[UtilityCost, ...] = ()
    meal_counts: tuple[MealCount, ...] = ()
    stored_refunds: tuple[RefundDetail, ...] = ()
    diagnostics: ParseDiagnostics = field(default_factory=ParseDiagnostics)
    transfers: tuple[UnitTransferHistory, ...] = ()
    warnings: tuple[ValidationWarning, ...] = ()
    calculation: RefundCalculation | None = None

    @property
    def table_counts(self) -> dict[str, int]:
        return {
            UnitAssignment.TABLE: len(self.assignments),
            UnitMaster.TABLE: len(self.unit_masters),
            UtilityCost.TABLE: len(self.utility_costs),
            MealCount.TABLE: len(self.meal_counts),
            RefundDetail.TABLE: len(self.stored_refunds),
        }

    def with_calculation(self) -> "RefundSession":
        calc = calculate_refunds(
            self.assignments, self.unit_masters, self.utility_costs, self.meal_counts
        )
        return dataclasses.replace(self, calculation=calc)

    def summaries(self) -> list[ResidentSummary]:
        if self.calculation is not None:
            return summarize_by_resident(self.calculation.details)
        return summarize_by_resident(self.stored_refunds)


def build_session(
    rows_by_table: Mapping[str, Sequence[Sequence[Any]]],
    tables: Mapping[str, SheetTable] | None = None,
) -> RefundSession:
    """Parse raw rows and run the informational analyses."""

    diagnostics = ParseDiagnostics()
    parsed: dict[str, list] = {}
    for key, parser in _PARSERS.items():
        columns = tables[key].columns if tables and key in tables else None
        parsed[key] = parser(rows_by_table.get(key) or [], diagnostics, columns=columns)

    assignments = parsed[UnitAssignment.TABLE]
    unit_masters = parsed[UnitMaster.TABLE]
    utility_costs = parsed[UtilityCost.TABLE]
    meal_counts = parsed[MealCount.TABLE]

    warnings = find_duplicate_keys(
        assignments=assignments,
        unit_masters=unit_masters,
        utility_costs=utility_costs,
        meal_counts=meal_counts,
    )
    warnings += validate_data(assignments, utility_costs, meal_counts)
    transfers = detect_unit_transfers(assignments)

    logger.info(
        "Session loaded: %s; %d warning(s), %d resident(s) with unit transfers, %d parse issue(s)",
        {k: len(v) for k, v in parsed.items()},
        len(warnings),
        len(transfers),
        diagnostics.count,
    )

    return RefundSession(
        assignments=tuple(assignments),
        unit_masters=tuple(unit_masters),
        utility_costs=tuple(utility_costs),
        meal_counts=tuple(meal_counts),
        stored_refunds=tuple(parsed[RefundDetail.TABLE]),
        diagnostics=diagnostics,
        transfers=tuple(transfers),
        warnings=tuple(warnings),
    )


async def fetch_all_tables(
    gateway: SheetGateway, tables: Mapping[str, SheetTable]
) -> dict[str, list[list[str]]]:
    """Read every table concurrently; any failure aborts the whole load."""

    keys = list(_PARSERS)
    results = await asyncio.gather(
        *(
            asyncio.to_thread(gateway.fetch_rows, a1_range=tables[k].read_range)
            for k in keys
        )
    )
    return dict(zip(keys, results))


async def load_session(
    gateway: SheetGateway, tables: Mapping[str, SheetTable]
) -> RefundSession:
    rows_by_table = await fetch_all_tables(gateway, tables)
    return build_session(rows_by_table, tables)


def _write_records(
    gateway: SheetGateway, table: SheetTable, records: Iterable[Any]
) -> dict[str, Any]:
    rows = [r.to_row() for r in records]
    logger.info("Writing %d %s record(s) to %s", len(rows), table.key, table.sheet)
    return gateway.replace_rows(
        sheet_name=table.sheet, rows=rows, last_column=table.last_column
    )


def write_refund_details(
    gateway: SheetGateway,
    tables: Mapping[str, SheetTable],
    details: Sequence[RefundDetail],
) -> dict[str, Any]:
    if not details:
        raise ValueError("No calculation results to write; run the calculation first")
    return _write_records(gateway, tables[RefundDetail.TABLE], details)


def write_meal_counts(
    gateway: SheetGateway,
    tables: Mapping[str, SheetTable],
    meal_counts: Sequence[MealCount],
) -> dict[str, Any]:
    return _write_records(gateway, tables[MealCount.TABLE], meal_counts)


def write_unit_assignments(
    gateway: SheetGateway,
    tables: Mapping[str, SheetTable],
    assignments: Sequence[UnitAssignment],
) -> dict[str, Any]:
    return _write_records(gateway, tables[UnitAssignment.TABLE], assignments)
