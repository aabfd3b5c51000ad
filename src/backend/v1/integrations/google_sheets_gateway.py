"""Google Sheets gateway (service-account based).

Goals
- Provide a small, testable integration wrapper around the Sheets API.
- Keep all network calls here; parsing and calculation live in use_cases.

Reads return raw rows (header first). Writes are a full replace of a table's
data region: clear from row 2 down, then write from A2. There is no merge
with concurrent edits; the last writer wins.
"""

from __future__ import annotations

import json
import logging
import os
from typing import Any, Protocol, Sequence

from src.backend.v1.config.settings import Settings

logger = logging.getLogger(__name__)


class SheetGatewayError(RuntimeError):
    """A Sheets API read or write failed (transport, auth or quota)."""

    def __init__(self, message: str, *, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class SheetGateway(Protocol):
    def fetch_rows(self, *, a1_range: str) -> list[list[str]]: ...

    def replace_rows(
        self,
        *,
        sheet_name: str,
        rows: Sequence[Sequence[Any]],
        last_column: str,
    ) -> dict[str, Any]: ...


def _http_error_message(err: Exception) -> tuple[str, int | None]:
    """Pull the provider's message and HTTP status out of an HttpError."""

    status = getattr(getattr(err, "resp", None), "status", None)
    content = getattr(err, "content", b"") or b""
    try:
        payload = json.loads(content.decode("utf-8") if isinstance(content, bytes) else content)
        message = (payload.get("error") or {}).get("message") or str(err)
    except (ValueError, AttributeError):
        message = str(err)
    return message, int(status) if status is not None else None


class GoogleSheetsGateway:
    def __init__(
        self,
        *,
        spreadsheet_id: str,
        service_account_path: str,
        allow_write: bool = False,
    ) -> None:
        self._spreadsheet_id = spreadsheet_id
        self._service_account_path = os.path.expanduser(service_account_path)
        self._allow_write = allow_write

    @classmethod
    def from_settings(cls, settings: Settings) -> "GoogleSheetsGateway":
        return cls(
            spreadsheet_id=settings.spreadsheet_id,
            service_account_path=settings.service_account_path,
            allow_write=settings.allow_write,
        )

    @classmethod
    def from_env(cls) -> "GoogleSheetsGateway":
        return cls.from_settings(Settings.from_env())

    def _build_sheets_service(self, *, readonly: bool = True) -> Any:
        # Lazy import so unit tests that only use the deterministic helpers
        # do not require Google client libs.
        from google.oauth2 import service_account
        from googleapiclient.discovery import build

        if not os.path.exists(self._service_account_path):
            raise FileNotFoundError(
                f"Service account file not found: {self._service_account_path}"
            )

        with open(self._service_account_path, "r", encoding="utf-8") as f:
            sa = json.load(f)
        scopes = [
            "https://www.googleapis.com/auth/spreadsheets.readonly"
            if readonly
            else "https://www.googleapis.com/auth/spreadsheets"
        ]
        creds = service_account.Credentials.from_service_account_info(
            sa,
            scopes=scopes,
        )

        return build(
            "sheets",
            "v4",
            credentials=creds,
            cache_discovery=False,
        )

    def _execute(self, request: Any, *, action: str) -> dict[str, Any]:
        import httplib2
        from google.auth.exceptions import GoogleAuthError
        from googleapiclient.errors import HttpError

        try:
            return request.execute(num_retries=2) or {}
        except HttpError as e:
            message, status = _http_error_message(e)
            logger.error("Sheets %s failed (HTTP %s): %s", action, status, message)
            raise SheetGatewayError(
                f"Sheets {action} failed: {message}", status=status
            ) from e
        except (GoogleAuthError, httplib2.HttpLib2Error, OSError) as e:
            # Credential refresh and connection failures never reach HTTP.
            logger.error("Sheets %s failed (%s): %s", action, type(e).__name__, e)
            raise SheetGatewayError(f"Sheets {action} failed: {e}") from e

    @property
    def spreadsheet_id(self) -> str:
        return self._spreadsheet_id

    def list_sheet_titles(self) -> list[str]:
        sheets = self._build_sheets_service(readonly=True)
        meta = self._execute(
            sheets.spreadsheets().get(
                spreadsheetId=self._spreadsheet_id, fields="sheets(properties(title))"
            ),
            action="metadata read",
        )
        return [s["properties"]["title"] for s in meta.get("sheets", [])]

    def fetch_rows(self, *, a1_range: str) -> list[list[str]]:
        sheets = self._build_sheets_service(readonly=True)
        resp = self._execute(
            sheets.spreadsheets()
            .values()
            .get(spreadsheetId=self._spreadsheet_id, range=a1_range),
            action=f"read of {a1_range}",
        )
        rows = resp.get("values", [])
        logger.info("Fetched %d rows from %s", len(rows) if isinstance(rows, list) else 0, a1_range)
        return rows if isinstance(rows, list) else []

    def replace_rows(
        self,
        *,
        sheet_name: str,
        rows: Sequence[Sequence[Any]],
        last_column: str,
    ) -> dict[str, Any]:
        """Replace everything below the header row of `sheet_name` with `rows`.

        Safety: writing is disabled unless GOOGLE_SHEETS_ALLOW_WRITE=1.
        """

        if not self._allow_write:
            raise PermissionError(
                "Google Sheets write disabled. Set GOOGLE_SHEETS_ALLOW_WRITE=1 to enable updates."
            )

        sheets = self._build_sheets_service(readonly=False)
        values = sheets.spreadsheets().values()

        self._execute(
            values.clear(
                spreadsheetId=self._spreadsheet_id,
                range=f"'{sheet_name}'!A2:{last_column}",
                body={},
            ),
            action=f"clear of {sheet_name}",
        )

        if not rows:
            return {"updated_rows": 0}

        resp = self._execute(
            values.update(
                spreadsheetId=self._spreadsheet_id,
                range=f"'{sheet_name}'!A2",
                valueInputOption="RAW",
                body={"values": [list(r) for r in rows]},
            ),
            action=f"write of {sheet_name}",
        )
        updated = int(resp.get("updatedRows") or 0)
        logger.info("Wrote %d rows to %s", updated, sheet_name)
        return {"updated_rows": updated}
