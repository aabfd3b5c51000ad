"""Smoke test: validate the refund workbook layout YAML.

This is intentionally lightweight and does NOT call external systems.
It catches layout drift (missing tables, reordered or renamed columns) before
a load silently shifts every parsed value.

Run:
  python scripts/sheet_tables_smoke.py

Optional env vars:
  REFUND_SHEET_TABLES_PATH  (default: data/sheet_tables.yaml)
"""

from __future__ import annotations

import os
import sys

from dotenv import load_dotenv

# Allow running as: `python scripts/sheet_tables_smoke.py`
_REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if _REPO_ROOT not in sys.path:
    sys.path.insert(0, _REPO_ROOT)

load_dotenv(override=False)

from src.backend.v1.config.settings import load_sheet_tables


def _fail(msg: str) -> int:
    print(f"ERROR: {msg}", file=sys.stderr)
    return 1


def main() -> int:
    path = os.environ.get("REFUND_SHEET_TABLES_PATH")

    try:
        tables = load_sheet_tables(path)
    except (ValueError, FileNotFoundError) as e:
        return _fail(str(e))

    print("✅ Sheet layout parsed")
    print(f"- Path: {path or 'data/sheet_tables.yaml'}")
    for t in tables.values():
        print(f"- {t.key}: sheet={t.sheet!r} columns={len(t.columns)} range={t.read_range}")

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
