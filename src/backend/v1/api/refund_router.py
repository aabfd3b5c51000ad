"""Refund API Router.

Thin HTTP surface over the refund pipeline: every request loads the workbook
fresh, runs the deterministic use cases and returns JSON. Calculation logic
lives in `use_cases`, never here.
"""

import dataclasses
import logging
from typing import Any, Mapping

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from src.backend.v1.config.settings import Settings, SheetTable, load_sheet_tables
from src.backend.v1.integrations.google_sheets_gateway import (
    GoogleSheetsGateway,
    SheetGateway,
    SheetGatewayError,
)
from src.backend.v1.use_cases.refund_session import (
    RefundSession,
    load_session,
    write_refund_details,
)

logger = logging.getLogger(__name__)

refund_router = APIRouter(tags=["Refunds"])


# ---------------------------------------------------------------------------
# Request/Response Models
# ---------------------------------------------------------------------------


class RefundCalculateRequest(BaseModel):
    include_breakdowns: bool = False
    include_summaries: bool = True


class RefundWriteResponse(BaseModel):
    success: bool
    updated_rows: int
    records: int
    partial_count: int


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


def _fail(err: Exception) -> HTTPException:
    """Map pipeline errors onto HTTP status codes."""

    if isinstance(err, SheetGatewayError):
        return HTTPException(status_code=502, detail=str(err))
    if isinstance(err, PermissionError):
        return HTTPException(status_code=403, detail=str(err))
    if isinstance(err, (ValueError, FileNotFoundError)):
        return HTTPException(status_code=400, detail=str(err))
    return HTTPException(status_code=500, detail=f"Unexpected error: {err}")


def get_settings() -> Settings:
    try:
        return Settings.from_env()
    except ValueError as e:
        raise _fail(e)


def get_sheet_tables(settings: Settings = Depends(get_settings)) -> dict[str, SheetTable]:
    try:
        return load_sheet_tables(settings.sheet_tables_path)
    except (ValueError, FileNotFoundError) as e:
        raise _fail(e)


def get_gateway(settings: Settings = Depends(get_settings)) -> SheetGateway:
    return GoogleSheetsGateway.from_settings(settings)


async def _load(gateway: SheetGateway, tables: Mapping[str, SheetTable]) -> RefundSession:
    try:
        return await load_session(gateway, tables)
    except (SheetGatewayError, PermissionError, ValueError, FileNotFoundError) as e:
        logger.error(f"Failed to load refund workbook: {e}")
        raise _fail(e)
    except Exception as e:
        logger.exception(f"Unexpected error loading refund workbook: {e}")
        raise _fail(e)


# ---------------------------------------------------------------------------
# Serialization helpers
# ---------------------------------------------------------------------------


def _session_overview(session: RefundSession) -> dict[str, Any]:
    return {
        "tables": session.table_counts,
        "transfers": [dataclasses.asdict(t) for t in session.transfers],
        "warnings": [w.as_dict() for w in session.warnings],
        "parse_issues": session.diagnostics.summary(),
    }


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@refund_router.post("/refunds/load")
async def refunds_load(
    gateway: SheetGateway = Depends(get_gateway),
    tables: dict[str, SheetTable] = Depends(get_sheet_tables),
):
    """Load every table and report transfers, warnings and parse issues."""

    session = await _load(gateway, tables)
    return _session_overview(session)


@refund_router.post("/refunds/calculate")
async def refunds_calculate(
    body: RefundCalculateRequest | None = None,
    gateway: SheetGateway = Depends(get_gateway),
    tables: dict[str, SheetTable] = Depends(get_sheet_tables),
):
    """Load and calculate refunds. Read-only: nothing is written back."""

    body = body or RefundCalculateRequest()
    session = (await _load(gateway, tables)).with_calculation()
    calc = session.calculation

    payload = _session_overview(session)
    payload.update(
        {
            "records": len(calc.details),
            "complete_count": calc.complete_count,
            "partial_count": calc.partial_count,
            "totals": dataclasses.asdict(calc.totals),
            "details": [dataclasses.asdict(d) for d in calc.details],
        }
    )
    if body.include_breakdowns:
        payload["breakdowns"] = [dataclasses.asdict(b) for b in calc.breakdowns]
    if body.include_summaries:
        payload["summaries"] = [dataclasses.asdict(s) for s in session.summaries()]
    return payload


@refund_router.post("/refunds/write", response_model=RefundWriteResponse)
async def refunds_write(
    gateway: SheetGateway = Depends(get_gateway),
    tables: dict[str, SheetTable] = Depends(get_sheet_tables),
):
    """Load, calculate and replace the refund detail sheet with the result."""

    session = (await _load(gateway, tables)).with_calculation()
    calc = session.calculation
    try:
        result = write_refund_details(gateway, tables, calc.details)
    except (SheetGatewayError, PermissionError, ValueError, FileNotFoundError) as e:
        logger.error(f"Failed to write refund details: {e}")
        raise _fail(e)

    logger.info(f"Refund write completed: {result.get('updated_rows', 0)} rows")
    return RefundWriteResponse(
        success=True,
        updated_rows=int(result.get("updated_rows") or 0),
        records=len(calc.details),
        partial_count=calc.partial_count,
    )


@refund_router.get("/refunds/summary")
async def refunds_summary(
    source: str = "calculated",
    gateway: SheetGateway = Depends(get_gateway),
    tables: dict[str, SheetTable] = Depends(get_sheet_tables),
):
    """Per-resident fiscal-year summaries.

    `source=calculated` recalculates from inputs; `source=stored` summarizes
    the refund detail rows already in the sheet.
    """

    if source not in {"calculated", "stored"}:
        raise HTTPException(status_code=400, detail="source must be 'calculated' or 'stored'")

    session = await _load(gateway, tables)
    if source == "calculated":
        session = session.with_calculation()
    return {
        "source": source,
        "summaries": [dataclasses.asdict(s) for s in session.summaries()],
    }
