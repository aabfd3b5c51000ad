"""Non-fatal parse anomalies collected while reading sheet rows."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

UNPARSEABLE_NUMBER = "unparseable_number"
COLUMN_SWAP = "column_swap"


@dataclass(frozen=True, slots=True)
class ParseIssue:
    table: str
    row_number: int | None
    field: str | None
    raw_value: str | None
    message: str
    kind: str = UNPARSEABLE_NUMBER


@dataclass(slots=True)
class ParseDiagnostics:
    issues: list[ParseIssue] = field(default_factory=list)

    def add(self, issue: ParseIssue) -> None:
        self.issues.append(issue)

    def extend(self, issues: list[ParseIssue]) -> None:
        self.issues.extend(issues)

    @property
    def count(self) -> int:
        return len(self.issues)

    def samples(self, limit: int = 5) -> list[str]:
        return [i.message for i in self.issues[: max(limit, 0)]]

    def summary(self, *, limit: int = 5) -> dict[str, Any]:
        by_kind: dict[str, int] = {}
        for i in self.issues:
            by_kind[i.kind] = by_kind.get(i.kind, 0) + 1
        return {
            "count": self.count,
            "by_kind": by_kind,
            "samples": self.samples(limit),
        }
