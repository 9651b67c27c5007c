"""
FastAPI server for the Service Finder.

Loads the organization CSV and coordinate tables on startup, then serves
searches from memory. A failed load leaves the service up but not ready;
POST /reload retries the whole load.

Run with ``uvicorn api:app`` or ``python api.py``.
"""

import logging
import os
import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from service_finder.config import Config
from service_finder.engine import FinderEngine
from service_finder.errors import (
    DataNotReady, GeolocationError, LoadFailure, ResolutionNotFound, ValidationError,
)
from service_finder.query import result_count_label

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("api")

# ---------------------------------------------------------------------------
# Global engine (loaded once at startup)
# ---------------------------------------------------------------------------
engine: Optional[FinderEngine] = None


def _load_env_file(env_path: Path):
    if env_path.exists():
        for line in env_path.read_text().splitlines():
            line = line.strip()
            if line and not line.startswith("#") and "=" in line:
                key, val = line.split("=", 1)
                os.environ.setdefault(key.strip(), val.strip())


def create_engine() -> FinderEngine:
    _load_env_file(Path(__file__).parent / ".env")
    return FinderEngine(Config.from_env())


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Load the engine on startup, clean up on shutdown."""
    global engine
    if engine is None:
        engine = create_engine()
        engine.on_ready(lambda event: logger.info(f"{event.message} ({event.data_count} organizations)"))
    t0 = time.time()
    try:
        engine.load()
        logger.info(f"Engine ready in {time.time() - t0:.1f}s")
    except LoadFailure as e:
        logger.error(f"Initial load failed, serving 503 until /reload succeeds: {e}")

    yield

    if engine:
        engine.close()
    logger.info("Shutdown complete.")


# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Service Finder API",
    description="Find service organizations by zip code, state, service type, or distance.",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------
class ResultResponse(BaseModel):
    name: str
    service_type: str
    zip: str
    city: str
    state: str
    county: str = ""
    phone: str = ""
    email: str = ""
    address: str = ""
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    coordinate_source: str = "none"
    distance: Optional[float] = None


class SearchResponseModel(BaseModel):
    search_type: str
    filters: dict
    count: int
    count_label: str
    message: str
    results: list[ResultResponse] = Field(default_factory=list)
    lookup_time_ms: int


class HealthResponse(BaseModel):
    status: str
    engine_loaded: bool
    data_count: int
    last_error: Optional[str] = None
    uptime_seconds: float


class FacetsResponse(BaseModel):
    states: list[str]
    service_types: list[str]


_start_time = time.time()


def _require_engine() -> FinderEngine:
    if not engine or not engine.is_ready:
        raise HTTPException(status_code=503, detail="Data unavailable. Try again shortly or POST /reload.")
    return engine


def _render(response) -> JSONResponse:
    content = response.to_dict()
    content["count_label"] = result_count_label(response.count)
    return JSONResponse(content=content)


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------
@app.get("/health", response_model=HealthResponse)
async def health():
    """Health check — reports readiness and the loaded record count."""
    ready = bool(engine and engine.is_ready)
    return HealthResponse(
        status="ok" if ready else "loading",
        engine_loaded=ready,
        data_count=engine.snapshot.record_count if ready else 0,
        last_error=str(engine.last_error) if engine and engine.last_error else None,
        uptime_seconds=round(time.time() - _start_time, 1),
    )


@app.get("/search", response_model=SearchResponseModel)
async def search(
    zip: str = Query("", description="5-digit zip code (12345 or 12345-6789)"),
    state: str = Query("", description="2-letter state code, exact match"),
    service_type: str = Query("", description="Service type, exact match"),
):
    """Exact-match search on zip code, state, and/or service type."""
    eng = _require_engine()
    try:
        response = eng.search(zip_code=zip, state=state, service_type=service_type)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except DataNotReady as e:
        raise HTTPException(status_code=503, detail=str(e))
    return _render(response)


@app.get("/nearby", response_model=SearchResponseModel)
async def nearby(
    lat: Optional[float] = Query(None, ge=-90, le=90, description="Latitude of the search center"),
    lon: Optional[float] = Query(None, ge=-180, le=180, description="Longitude of the search center"),
    radius: float = Query(10, description="Search radius in miles"),
    service_type: str = Query("", description="Service type, exact match"),
):
    """
    Proximity search around a point, nearest first.

    Without lat/lon the server's own location provider is used.
    """
    eng = _require_engine()
    try:
        if lat is None or lon is None:
            response = await eng.search_near_me(radius, service_type=service_type)
        else:
            response = eng.search_nearby(lat, lon, radius, service_type=service_type)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except GeolocationError as e:
        raise HTTPException(status_code=422, detail={"reason": e.reason.value, "message": e.user_message})
    except DataNotReady as e:
        raise HTTPException(status_code=503, detail=str(e))
    return _render(response)


@app.get("/nearby/zip", response_model=SearchResponseModel)
async def nearby_zip(
    zip: str = Query(..., description="Center zip code"),
    radius: float = Query(10, description="Search radius in miles"),
    service_type: str = Query("", description="Service type, exact match"),
):
    """Proximity search centered on a zip code."""
    eng = _require_engine()
    try:
        response = eng.search_near_zip(zip, radius, service_type=service_type)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ResolutionNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except DataNotReady as e:
        raise HTTPException(status_code=503, detail=str(e))
    return _render(response)


@app.get("/facets", response_model=FacetsResponse)
async def facets():
    """State and service-type choices present in the loaded data."""
    return _require_engine().facets()


@app.post("/reload", response_model=HealthResponse)
async def reload():
    """Re-run the full load sequence."""
    if not engine:
        raise HTTPException(status_code=503, detail="Engine not initialized.")
    try:
        engine.reload()
    except LoadFailure as e:
        raise HTTPException(status_code=502, detail=f"Data unavailable: {e}")
    return await health()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("api:app", host=os.environ.get("HOST", "0.0.0.0"), port=int(os.environ.get("PORT", "8000")))
