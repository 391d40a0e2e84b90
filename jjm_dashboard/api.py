"""
REST API over the JJM tables.

Run with `python main.py serve` or `uvicorn jjm_dashboard.api:app`.
Every route sits under /api. Handlers are synchronous; FastAPI runs them in
its threadpool, one database connection per request.
"""

import logging
import shutil
import tempfile
from pathlib import Path
from typing import Any, Iterator

import psycopg
from fastapi import APIRouter, Depends, FastAPI, File, HTTPException, Query, Request, UploadFile
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .db.connection import connect
from .ingest import IMPORTERS, ImportResult, IngestError
from .storage import PostgresStorage

logger = logging.getLogger(__name__)

app = FastAPI(
    title="JJM Maharashtra Water Dashboard API",
    description="Scheme status, village LPCD and ESR connectivity for Maharashtra's Jal Jeevan Mission",
    version="1.0.0",
)

api_router = APIRouter(prefix="/api")


# ============= MODELS =============

class RegionSummary(BaseModel):
    total_esr_integrated: int = 0
    fully_completed_esr: int = 0
    partial_esr: int = 0
    total_villages_integrated: int = 0
    fully_completed_villages: int = 0
    total_schemes_integrated: int = 0
    fully_completed_schemes: int = 0
    flow_meter_integrated: int = 0
    rca_integrated: int = 0
    pressure_transmitter_integrated: int = 0


class PopulationStats(BaseModel):
    total_villages: int = 0
    total_population: int = 0
    villages_with_water: int = 0
    population_with_water: int = 0
    percent_villages_with_water: float = 0.0
    percent_population_with_water: float = 0.0
    villages_no_water: int = 0
    population_no_water: int = 0
    percent_villages_no_water: float = 0.0
    percent_population_no_water: float = 0.0
    villages_lpcd_above_55: int = 0
    villages_lpcd_below_55: int = 0


class ImportResponse(BaseModel):
    kind: str
    source: str
    status: str
    inserted: int = 0
    updated: int = 0
    removed: int = 0
    skipped: int = 0
    invariant_violations: int = 0
    regions: list[str] = []


# ============= DEPENDENCIES =============

def get_storage() -> Iterator[PostgresStorage]:
    with connect() as conn:
        yield PostgresStorage(conn)


def _run_import(kind: str, upload: UploadFile, storage: PostgresStorage, allowed: tuple[str, ...]) -> ImportResult:
    """Spool an upload to a temp file with its original suffix and import it."""
    suffix = Path(upload.filename or "").suffix.lower()
    if suffix not in allowed:
        raise HTTPException(
            status_code=400,
            detail=f"Unsupported file type '{suffix or upload.filename}'; expected one of {', '.join(allowed)}",
        )
    with tempfile.TemporaryDirectory() as tmp:
        target = Path(tmp) / f"upload{suffix}"
        with target.open("wb") as fh:
            shutil.copyfileobj(upload.file, fh)
        try:
            return IMPORTERS[kind](storage, target)
        except IngestError as exc:
            logger.warning("Rejected %s upload %s: %s", kind, upload.filename, exc)
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except Exception as exc:
            logger.exception("Import of %s failed", upload.filename)
            raise HTTPException(status_code=500, detail=str(exc)) from exc


@app.exception_handler(psycopg.Error)
def database_error(request: Request, exc: psycopg.Error):
    logger.exception("Database error on %s", request.url.path)
    return JSONResponse(status_code=500, content={"detail": str(exc)})


# ============= ROUTES =============

@api_router.get("/health")
def health():
    return {"status": "ok"}


@api_router.get("/regions")
def list_regions(storage: PostgresStorage = Depends(get_storage)) -> list[dict[str, Any]]:
    return storage.list_regions()


@api_router.get("/regions/summary", response_model=RegionSummary)
def region_summary(
    region: str | None = Query(None, description="Region name, or 'all'"),
    storage: PostgresStorage = Depends(get_storage),
):
    summary = storage.region_summary(region)
    if summary is None:
        raise HTTPException(status_code=404, detail=f"Region '{region}' not found")
    return summary


@api_router.get("/regions/{name}")
def get_region(name: str, storage: PostgresStorage = Depends(get_storage)) -> dict[str, Any]:
    region = storage.get_region(name)
    if region is None:
        raise HTTPException(status_code=404, detail=f"Region '{name}' not found")
    return region


@api_router.get("/scheme-status")
def list_schemes(
    region: str | None = None,
    status: str | None = Query(None, description="'Fully Completed', 'In Progress', 'Not Connected' or 'all'"),
    scheme_id: str | None = None,
    storage: PostgresStorage = Depends(get_storage),
) -> list[dict[str, Any]]:
    return storage.list_schemes(region=region, status=status, scheme_id=scheme_id)


@api_router.post("/scheme-status/import", response_model=ImportResponse)
def import_scheme_status(
    file: UploadFile = File(...),
    storage: PostgresStorage = Depends(get_storage),
):
    result = _run_import("schemes", file, storage, (".xlsx", ".xls", ".csv"))
    return result.to_dict()


@api_router.get("/scheme-status/{scheme_id}")
def get_scheme(scheme_id: str, storage: PostgresStorage = Depends(get_storage)) -> list[dict[str, Any]]:
    rows = storage.get_scheme(scheme_id)
    if not rows:
        raise HTTPException(status_code=404, detail=f"Scheme '{scheme_id}' not found")
    return rows


@api_router.get("/water-scheme-data")
def list_water_scheme_data(
    region: str | None = None,
    min_lpcd: float | None = Query(None, alias="minLpcd"),
    max_lpcd: float | None = Query(None, alias="maxLpcd"),
    zero_supply_for_week: bool = Query(False, alias="zeroSupplyForWeek"),
    storage: PostgresStorage = Depends(get_storage),
) -> list[dict[str, Any]]:
    return storage.list_villages(
        region=region,
        min_lpcd=min_lpcd,
        max_lpcd=max_lpcd,
        zero_supply_for_week=zero_supply_for_week,
    )


@api_router.get("/water-scheme-data/population-stats", response_model=PopulationStats)
def population_stats(region: str | None = None, storage: PostgresStorage = Depends(get_storage)):
    return storage.population_stats(region)


@api_router.post("/water-scheme-data/import/excel", response_model=ImportResponse)
def import_water_excel(file: UploadFile = File(...), storage: PostgresStorage = Depends(get_storage)):
    return _run_import("lpcd", file, storage, (".xlsx", ".xls")).to_dict()


@api_router.post("/water-scheme-data/import/csv", response_model=ImportResponse)
def import_water_csv(file: UploadFile = File(...), storage: PostgresStorage = Depends(get_storage)):
    return _run_import("lpcd", file, storage, (".csv",)).to_dict()


@api_router.get("/esr")
def list_esrs(region: str | None = None, storage: PostgresStorage = Depends(get_storage)) -> list[dict[str, Any]]:
    return storage.list_esrs(region)


@api_router.get("/esr/stats")
def esr_stats(region: str | None = None, storage: PostgresStorage = Depends(get_storage)) -> dict[str, int]:
    return storage.esr_stats(region)


@api_router.get("/updates/today")
def today_updates(storage: PostgresStorage = Depends(get_storage)) -> list[dict[str, Any]]:
    return storage.get_today_updates()


app.include_router(api_router)
