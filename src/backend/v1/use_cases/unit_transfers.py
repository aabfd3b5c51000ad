"""Detect month-over-month unit changes per resident."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from src.backend.v1.use_cases.refund_records import UnitAssignment


@dataclass(frozen=True, slots=True)
class UnitTransfer:
    month: str
    from_unit: str
    to_unit: str


@dataclass(frozen=True, slots=True)
class UnitTransferHistory:
    resident_id: str
    resident_name: str
    transfers: tuple[UnitTransfer, ...]


def detect_unit_transfers(
    assignments: Iterable[UnitAssignment],
) -> list[UnitTransferHistory]:
    """Return residents whose unit changed between consecutive months.

    "YYYY-MM" strings sort correctly lexicographically. Residents appear in
    the order they are first seen; those without transfers are omitted.
    """

    by_resident: dict[str, list[UnitAssignment]] = {}
    for a in assignments:
        by_resident.setdefault(a.resident_id, []).append(a)

    out: list[UnitTransferHistory] = []
    for rid, rows in by_resident.items():
        history = sorted(rows, key=lambda r: r.month)
        transfers = tuple(
            UnitTransfer(month=cur.month, from_unit=prev.unit_name, to_unit=cur.unit_name)
            for prev, cur in zip(history, history[1:])
            if cur.unit_name != prev.unit_name
        )
        if transfers:
            out.append(
                UnitTransferHistory(
                    resident_id=rid,
                    resident_name=history[0].resident_name,
                    transfers=transfers,
                )
            )
    return out
