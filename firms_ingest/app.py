"""FastAPI surface for triggering FIRMS ingestion (e.g. from a cron scheduler)."""

from __future__ import annotations

from datetime import date
from typing import Any, Optional

from fastapi import APIRouter, FastAPI, HTTPException, Query, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from firms_ingest import repository
from firms_ingest.config import split_sources
from firms_ingest.errors import FirmsConfigError
from firms_ingest.orchestrator import IngestRequest, run_ingest


class ErrorResponse(BaseModel):
    """Standard error response model."""

    code: str
    message: str
    details: Optional[Any] = None


internal_router = APIRouter(tags=["internal"])
ingest_router = APIRouter(prefix="/ingest", tags=["ingest"])


@internal_router.get("/health")
async def healthcheck() -> dict:
    """Simple health endpoint used for readiness checks."""
    return {"status": "ok"}


@ingest_router.post("/firms", responses={500: {"model": ErrorResponse}})
def ingest_firms(
    source: Optional[str] = Query(None, description="Comma-separated sources; defaults to FIRMS_SOURCES."),
    area: Optional[str] = Query(None, description='Bounding box "w,s,e,n" or "world".'),
    days: Optional[int] = Query(None, ge=1, description="Total days to ingest, ending at end_date."),
    end_date: Optional[date] = Query(None, description="Last day of the range (defaults to today UTC)."),
):
    """Run one ingestion pass and return the per-source and total counters."""
    request = IngestRequest(
        sources=split_sources(source),
        area=area,
        total_days=days,
        end_date=end_date,
    )
    try:
        report = run_ingest(request, store=repository.SqlDetectionStore())
    except FirmsConfigError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    if not report.ok:
        error = ErrorResponse(
            code="ingest_failed",
            message=report.error or "One or more sources failed",
            details=report.as_dict(),
        )
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=error.model_dump())
    return report.as_dict()


app = FastAPI(title="FIRMS Ingest")
app.include_router(internal_router)
app.include_router(ingest_router)
