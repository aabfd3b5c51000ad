from __future__ import annotations

import pytest
from fastapi.testclient import TestClient
from google.auth.exceptions import RefreshError

from src.backend.app import app
from src.backend.v1.api.refund_router import get_gateway, get_sheet_tables
from src.backend.v1.config.settings import load_sheet_tables
from src.backend.v1.integrations.google_sheets_gateway import GoogleSheetsGateway, SheetGatewayError

TABLES = load_sheet_tables()

WORKBOOK = {
    "unit_assignment": [
        ["header"],
        ["2024-04", "U1", "Sato", "A", "100000", "-10000", "0", "0", "300", "500", "600", "1000", "0", "0"],
        ["2024-04", "U2", "Abe", "A", "100000", "-10000", "0", "0", "300", "500", "600", "1000", "0", "0"],
        ["2024-04", "U3", "Ito", "A", "100000", "-10000", "0", "0", "300", "500", "600", "1000", "0", "0"],
        ["2024-04", "U4", "Ueda", "A", "100000", "-10000", "0", "0", "300", "500", "600", "1000", "0", "0"],
    ],
    "unit_master": [["header"], ["A", "50000", "50"]],
    "utility_cost": [["header"], ["2024-04", "A", "30000", "20000", "10000", "0", "60000"]],
    "meal_count": [["header"]]
    + [["2024-04", f"U{i}", "", "A", "10", "20", "30", "1"] for i in range(1, 5)],
    "refund_detail": [["header"]],
}


class _StubGateway:
    def __init__(self, *, read_error: Exception | None = None, write_error: Exception | None = None) -> None:
        self._by_range = {TABLES[k].read_range: v for k, v in WORKBOOK.items()}
        self._read_error = read_error
        self._write_error = write_error
        self.writes: list[dict] = []

    def fetch_rows(self, *, a1_range: str):
        if self._read_error is not None:
            raise self._read_error
        return self._by_range[a1_range]

    def replace_rows(self, *, sheet_name, rows, last_column):
        if self._write_error is not None:
            raise self._write_error
        self.writes.append({"sheet_name": sheet_name, "rows": rows})
        return {"updated_rows": len(rows)}


@pytest.fixture
def client_with():
    def _make(gateway: _StubGateway) -> TestClient:
        app.dependency_overrides[get_gateway] = lambda: gateway
        app.dependency_overrides[get_sheet_tables] = lambda: TABLES
        return TestClient(app)

    yield _make
    app.dependency_overrides.clear()


def test_health() -> None:
    assert TestClient(app).get("/health").json() == {"status": "ok"}


def test_load_reports_tables_and_warnings(client_with) -> None:
    resp = client_with(_StubGateway()).post("/api/v1/refunds/load")
    assert resp.status_code == 200
    body = resp.json()
    assert body["tables"]["unit_assignment"] == 4
    assert body["transfers"] == []
    assert {w["type"] for w in body["warnings"]} == {"missing_month"}
    assert body["parse_issues"]["count"] == 0


def test_calculate_returns_details_and_totals(client_with) -> None:
    resp = client_with(_StubGateway()).post(
        "/api/v1/refunds/calculate", json={"include_breakdowns": True}
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["records"] == 4
    assert body["complete_count"] == 4
    assert body["partial_count"] == 0
    assert {d["net_refund_total"] for d in body["details"]} == {20500}
    assert body["totals"]["refund_total"] == 82000
    assert body["breakdowns"][0]["member_count"] == 4
    assert [s["resident_name"] for s in body["summaries"]] == ["Abe", "Ito", "Sato", "Ueda"]


def test_calculate_without_body(client_with) -> None:
    resp = client_with(_StubGateway()).post("/api/v1/refunds/calculate")
    assert resp.status_code == 200
    assert "breakdowns" not in resp.json()


def test_write_replaces_refund_sheet(client_with) -> None:
    gw = _StubGateway()
    resp = client_with(gw).post("/api/v1/refunds/write")
    assert resp.status_code == 200
    assert resp.json() == {"success": True, "updated_rows": 4, "records": 4, "partial_count": 0}
    [write] = gw.writes
    assert write["sheet_name"] == TABLES["refund_detail"].sheet
    assert write["rows"][0][-1] == 20500


def test_write_disabled_is_forbidden(client_with) -> None:
    gw = _StubGateway(write_error=PermissionError("Google Sheets write disabled."))
    resp = client_with(gw).post("/api/v1/refunds/write")
    assert resp.status_code == 403
    assert "write disabled" in resp.json()["detail"]


def test_gateway_failure_aborts_with_provider_message(client_with) -> None:
    gw = _StubGateway(read_error=SheetGatewayError("Sheets read failed: The caller does not have permission"))
    resp = client_with(gw).post("/api/v1/refunds/calculate")
    assert resp.status_code == 502
    assert "does not have permission" in resp.json()["detail"]


def test_summary_sources(client_with) -> None:
    client = client_with(_StubGateway())
    calculated = client.get("/api/v1/refunds/summary").json()
    assert calculated["source"] == "calculated"
    assert len(calculated["summaries"]) == 4

    stored = client.get("/api/v1/refunds/summary", params={"source": "stored"}).json()
    assert stored["summaries"] == []

    assert client.get("/api/v1/refunds/summary", params={"source": "bogus"}).status_code == 400


def test_missing_configuration_is_a_client_error(monkeypatch) -> None:
    monkeypatch.delenv("SPREADSHEET_ID", raising=False)
    app.dependency_overrides.clear()
    resp = TestClient(app).post("/api/v1/refunds/load")
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Missing SPREADSHEET_ID"


class _RefreshFailingService:
    """Sheets service whose requests fail while refreshing credentials."""

    def spreadsheets(self):
        return self

    def values(self):
        return self

    def get(self, **kwargs):
        return self

    def execute(self, num_retries: int = 0):
        raise RefreshError("invalid_grant: Invalid JWT Signature.")


def test_auth_failure_is_a_gateway_error(client_with, monkeypatch) -> None:
    gw = GoogleSheetsGateway(spreadsheet_id="s", service_account_path="/nonexistent.json")
    monkeypatch.setattr(gw, "_build_sheets_service", lambda readonly=True: _RefreshFailingService())

    resp = client_with(gw).post("/api/v1/refunds/load")

    assert resp.status_code == 502
    assert "Invalid JWT Signature" in resp.json()["detail"]


def test_unexpected_load_error_is_a_server_error(client_with) -> None:
    gw = _StubGateway(read_error=RuntimeError("boom"))
    resp = client_with(gw).post("/api/v1/refunds/load")
    assert resp.status_code == 500
    assert resp.json()["detail"] == "Unexpected error: boom"


def test_app_module_is_not_aliased() -> None:
    import sys

    assert "src.backend.app" in sys.modules
    assert sys.modules.get("app") is not sys.modules["src.backend.app"]
