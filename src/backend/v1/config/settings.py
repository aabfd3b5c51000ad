"""
Configuration for the refund backend.
Environment (via .env) plus the positional sheet layout declared in YAML.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from src.backend.v1.use_cases.refund_records import RECORD_TYPES

load_dotenv(override=False)

# Convenience: allow local runs with only `.env.example` filled.
if not os.environ.get("SPREADSHEET_ID"):
    load_dotenv(dotenv_path=os.path.abspath(".env.example"), override=False)

logger = logging.getLogger(__name__)


def _repo_root_from_this_file() -> Path:
    """settings.py is at src/backend/v1/config/settings.py."""
    return Path(__file__).resolve().parents[4]


DEFAULT_SHEET_TABLES_PATH = _repo_root_from_this_file() / "data" / "sheet_tables.yaml"


def col_to_a1(col_index_zero_based: int) -> str:
    """Convert 0-based column index to A1 column letters (0->A, 25->Z, 26->AA)."""

    if col_index_zero_based < 0:
        raise ValueError("col_index_zero_based must be >= 0")

    result = ""
    n = col_index_zero_based
    while True:
        n, rem = divmod(n, 26)
        result = chr(ord("A") + rem) + result
        if n == 0:
            break
        n -= 1

    return result


@dataclass(frozen=True, slots=True)
class SheetTable:
    key: str
    sheet: str
    columns: tuple[str, ...]

    @property
    def last_column(self) -> str:
        return col_to_a1(len(self.columns) - 1)

    @property
    def read_range(self) -> str:
        return f"'{self.sheet}'!A:{self.last_column}"


def parse_sheet_tables(doc: dict[str, Any]) -> dict[str, SheetTable]:
    """Validate a layout document against the record types.

    Every table must name a sheet and list exactly the record's columns, in
    order; a mismatch would silently shift every parsed value.
    """

    tables = doc.get("tables")
    if not isinstance(tables, dict):
        raise ValueError("Sheet layout is missing a 'tables' mapping")

    out: dict[str, SheetTable] = {}
    for key, record_type in RECORD_TYPES.items():
        cfg = tables.get(key)
        if not isinstance(cfg, dict):
            raise ValueError(f"Sheet layout is missing table '{key}'")
        sheet = str(cfg.get("sheet") or "").strip()
        if not sheet:
            raise ValueError(f"Table '{key}' has no sheet name")
        columns = tuple(str(c) for c in (cfg.get("columns") or []))
        if columns != record_type.COLUMNS:
            raise ValueError(
                f"Table '{key}' columns {list(columns)} do not match "
                f"{list(record_type.COLUMNS)}"
            )
        out[key] = SheetTable(key=key, sheet=sheet, columns=columns)

    unknown = sorted(set(tables) - set(RECORD_TYPES))
    if unknown:
        logger.warning("Ignoring unknown tables in sheet layout: %s", unknown)
    return out


def load_sheet_tables(path: str | Path | None = None) -> dict[str, SheetTable]:
    p = Path(path) if path else DEFAULT_SHEET_TABLES_PATH
    if not p.is_absolute():
        p = (_repo_root_from_this_file() / p).resolve()
    if not p.exists():
        raise FileNotFoundError(f"Sheet layout file not found: {p}")
    with open(p, "r", encoding="utf-8") as f:
        return parse_sheet_tables(yaml.safe_load(f) or {})


@dataclass(frozen=True, slots=True)
class Settings:
    spreadsheet_id: str
    service_account_path: str
    allow_write: bool
    sheet_tables_path: str | None

    @classmethod
    def from_env(cls) -> "Settings":
        spreadsheet_id = os.environ.get("SPREADSHEET_ID")
        if not spreadsheet_id:
            raise ValueError("Missing SPREADSHEET_ID")

        return cls(
            spreadsheet_id=spreadsheet_id,
            service_account_path=os.path.expanduser(
                os.environ.get("GOOGLE_SA_FILE") or "~/Desktop/service-account.json"
            ),
            allow_write=os.environ.get("GOOGLE_SHEETS_ALLOW_WRITE", "").strip() == "1",
            sheet_tables_path=os.environ.get("REFUND_SHEET_TABLES_PATH") or None,
        )
