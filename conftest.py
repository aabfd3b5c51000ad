"""Pytest configuration.

Ensures local packages can be imported consistently during test collection.
"""

import sys
from pathlib import Path

import pytest


def _prepend_sys_path(path: Path) -> None:
    resolved = str(path.resolve())
    if resolved not in sys.path:
        sys.path.insert(0, resolved)


REPO_ROOT = Path(__file__).resolve().parent

# Allow importing `src.*` package explicitly.
_prepend_sys_path(REPO_ROOT)


@pytest.fixture
def refund_env_vars(monkeypatch, tmp_path):
    """Environment for code paths that build settings from env."""
    sa_file = tmp_path / "service-account.json"
    sa_file.write_text("{}", encoding="utf-8")
    values = {
        "SPREADSHEET_ID": "test-spreadsheet",
        "GOOGLE_SA_FILE": str(sa_file),
        "GOOGLE_SHEETS_ALLOW_WRITE": "",
    }
    for k, v in values.items():
        monkeypatch.setenv(k, v)
    monkeypatch.delenv("REFUND_SHEET_TABLES_PATH", raising=False)
    return values
