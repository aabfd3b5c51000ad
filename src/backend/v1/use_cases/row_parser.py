"""Convert raw sheet rows into typed refund records.

Rows arrive as returned by the Sheets API: a list of string lists, header
first, trailing empty cells omitted. Parsing is positional and lenient:
missing or unparseable numbers become 0 (with a diagnostic), missing strings
become "".
"""

from __future__ import annotations

import logging
import re
from dataclasses import fields
from typing import Any, Sequence, TypeVar

from src.backend.v1.use_cases.data_validator import detect_column_swaps
from src.backend.v1.use_cases.diagnostics import (
    UNPARSEABLE_NUMBER,
    ParseDiagnostics,
    ParseIssue,
)
from src.backend.v1.use_cases.refund_records import (
    MealCount,
    RefundDetail,
    UnitAssignment,
    UnitMaster,
    UtilityCost,
)

logger = logging.getLogger(__name__)

R = TypeVar("R")

# Full-width digits, minus and period -> ASCII.
_FULL_WIDTH = str.maketrans(
    {**{chr(0xFF10 + i): str(i) for i in range(10)}, "－": "-", "．": "."}
)
_STRIP_CHARS = re.compile(r"[,，¥￥円$\s]")
_LEADING_FLOAT = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


def parse_string(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def parse_number(
    value: Any,
    field_name: str | None = None,
    diagnostics: ParseDiagnostics | None = None,
    *,
    table: str = "",
    row_number: int | None = None,
) -> float:
    """Parse a spreadsheet cell into a float.

    Handles:
    - thousands separators (half and full width)
    - currency symbols (¥, ￥, 円, $)
    - full-width digits
    - trailing junk after a numeric prefix ("12kg" -> 12)
    """

    if value is None:
        return 0
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)

    raw = str(value)
    s = _STRIP_CHARS.sub("", raw.translate(_FULL_WIDTH))
    if s == "":
        return 0

    m = _LEADING_FLOAT.match(s)
    if m:
        return float(m.group(0))

    message = f"Failed to parse number for {field_name or 'value'}: {raw!r} -> 0"
    logger.warning(message)
    if diagnostics is not None:
        diagnostics.add(
            ParseIssue(
                table=table,
                row_number=row_number,
                field=field_name,
                raw_value=raw,
                message=message,
                kind=UNPARSEABLE_NUMBER,
            )
        )
    return 0


def _numeric_fields(record_type: type) -> set[str]:
    return {f.name for f in fields(record_type) if f.type in ("float", float)}


def parse_records(
    rows: Sequence[Sequence[Any]],
    record_type: type[R],
    *,
    columns: Sequence[str] | None = None,
    diagnostics: ParseDiagnostics | None = None,
) -> list[R]:
    """Parse positional rows into `record_type`, skipping the header row.

    `columns` defaults to the record's own layout; pass the configured layout
    to read a sheet whose column order was declared elsewhere.
    """

    if len(rows) <= 1:
        return []

    table = getattr(record_type, "TABLE", record_type.__name__)
    layout = tuple(columns or getattr(record_type, "COLUMNS"))
    numeric = _numeric_fields(record_type)

    out: list[R] = []
    for i, row in enumerate(rows[1:]):
        row_number = i + 2
        values: dict[str, Any] = {}
        for j, name in enumerate(layout):
            cell = row[j] if j < len(row) else None
            if name in numeric:
                values[name] = parse_number(
                    cell,
                    name,
                    diagnostics,
                    table=table,
                    row_number=row_number,
                )
            else:
                values[name] = parse_string(cell)
        out.append(record_type(**values))

    logger.info("Parsed %s: %d records", table, len(out))
    return out


def _with_swap_check(
    records: list[R], diagnostics: ParseDiagnostics | None
) -> list[R]:
    issues = detect_column_swaps(records)
    for issue in issues:
        logger.warning(issue.message)
    if diagnostics is not None:
        diagnostics.extend(issues)
    return records


def parse_unit_assignments(
    rows: Sequence[Sequence[Any]],
    diagnostics: ParseDiagnostics | None = None,
    *,
    columns: Sequence[str] | None = None,
) -> list[UnitAssignment]:
    records = parse_records(
        rows, UnitAssignment, columns=columns, diagnostics=diagnostics
    )
    return _with_swap_check(records, diagnostics)


def parse_unit_masters(
    rows: Sequence[Sequence[Any]],
    diagnostics: ParseDiagnostics | None = None,
    *,
    columns: Sequence[str] | None = None,
) -> list[UnitMaster]:
    return parse_records(rows, UnitMaster, columns=columns, diagnostics=diagnostics)


def parse_utility_costs(
    rows: Sequence[Sequence[Any]],
    diagnostics: ParseDiagnostics | None = None,
    *,
    columns: Sequence[str] | None = None,
) -> list[UtilityCost]:
    return parse_records(rows, UtilityCost, columns=columns, diagnostics=diagnostics)


def parse_meal_counts(
    rows: Sequence[Sequence[Any]],
    diagnostics: ParseDiagnostics | None = None,
    *,
    columns: Sequence[str] | None = None,
) -> list[MealCount]:
    records = parse_records(rows, MealCount, columns=columns, diagnostics=diagnostics)
    return _with_swap_check(records, diagnostics)


def parse_refund_details(
    rows: Sequence[Sequence[Any]],
    diagnostics: ParseDiagnostics | None = None,
    *,
    columns: Sequence[str] | None = None,
) -> list[RefundDetail]:
    return parse_records(
        rows, RefundDetail, columns=columns, diagnostics=diagnostics
    )
