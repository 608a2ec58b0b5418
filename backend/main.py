from __future__ import annotations

import dataclasses
import logging
import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Literal

import aiohttp
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel, Field

from canvas.build_map import build_map_plot
from interaction.router import (
    ClearSelection,
    DomainReference,
    HoverEvent,
    PickEvent,
    RouterRegistry,
    StationRef,
)
from layers.compose import compose
from layers.types import FeatureRef, ViewState
from sources.cache import get_cache
from sources.datasets import DATASETS
from sources.errors import DatasetError, NetworkError
from sources.hooks import DatasetHooks
from sources.source import DataSource
from telemetry.singleton import get_store

_logger = logging.getLogger(__name__)

_PUBLIC_DATA = Path(__file__).resolve().parents[1] / "public" / "data"


def _build_hooks(http: aiohttp.ClientSession) -> DatasetHooks:
    return DatasetHooks(DataSource(http), cache=get_cache())


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Open telemetry up front; the fetch path only ever reuses the open store.
    store = get_store()
    async with aiohttp.ClientSession() as http:
        app.state.hooks = _build_hooks(http)
        app.state.routers = RouterRegistry()
        yield
    if store is not None:
        store.flush()


app = FastAPI(lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://localhost:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

if _PUBLIC_DATA.is_dir():
    # Development asset transport: dataset documents served next to the API.
    app.mount("/data", StaticFiles(directory=str(_PUBLIC_DATA)), name="data")


class ApiCenter(BaseModel):
    lat: float = Field(ge=-90.0, le=90.0)
    lon: float = Field(ge=-180.0, le=180.0)


class ApiView(BaseModel):
    center: ApiCenter
    zoom: float = Field(ge=0.0, le=24.0)
    pitch: float = Field(default=0.0, ge=0.0, le=85.0)
    bearing: float = 0.0


class ApiFeatureRef(BaseModel):
    layerId: str
    index: int


class PlotRequest(BaseModel):
    session: str = Field(default="default", min_length=1, max_length=64)
    view: ApiView | None = None
    selection: ApiFeatureRef | None = None
    year: int | None = None


class PickRequest(BaseModel):
    session: str = Field(default="default", min_length=1, max_length=64)
    layerId: str | None = None
    index: int | None = None
    kind: Literal["hover", "click"] = "click"
    lon: float | None = None
    lat: float | None = None


@app.exception_handler(DatasetError)
async def dataset_error_boundary(request: Request, exc: DatasetError) -> JSONResponse:
    # Every dataset failure is recoverable: the client may reload and retry.
    _logger.warning("Dataset error on %s: %s", request.url.path, exc)
    return JSONResponse(
        status_code=502,
        content={
            "error": type(exc).__name__,
            "message": str(exc),
            "identifier": exc.identifier,
            "status": exc.status if isinstance(exc, NetworkError) else None,
            "retry": "/datasets/reload",
        },
    )


def _view_state(body: PlotRequest) -> ViewState:
    view = ViewState(year=body.year)
    if body.view is not None:
        view = dataclasses.replace(
            view,
            longitude=body.view.center.lon,
            latitude=body.view.center.lat,
            zoom=body.view.zoom,
            pitch=body.view.pitch,
            bearing=body.view.bearing,
        )
    if body.selection is not None:
        view = view.with_selection(
            FeatureRef(layer_id=body.selection.layerId, index=body.selection.index)
        )
    return view


def _reference_payload(ref: DomainReference | None) -> dict[str, Any] | None:
    if ref is None:
        return None
    if isinstance(ref, StationRef):
        return {
            "type": "station",
            "layerId": ref.layer_id,
            "index": ref.index,
            "record": dataclasses.asdict(ref.record),
        }
    return {
        "type": "region",
        "layerId": ref.layer_id,
        "index": ref.index,
        "record": {"name": ref.record.name},
    }


@app.get("/health")
def health():
    return {"status": "ok"}


@app.get("/datasets")
async def datasets(request: Request):
    hooks: DatasetHooks = request.app.state.hooks
    out = []
    for identifier, spec in DATASETS.items():
        state = hooks.peek(identifier)
        out.append(
            {
                "name": spec.name,
                "identifier": identifier,
                "status": state.status,
                "error": str(state.error) if state.error is not None else None,
            }
        )
    return {"epoch": hooks.cache.epoch, "datasets": out}


@app.post("/datasets/reload")
async def reload_datasets(request: Request):
    hooks: DatasetHooks = request.app.state.hooks
    hooks.cache.invalidate()
    return {"epoch": hooks.cache.epoch}


@app.post("/plot")
async def plot(body: PlotRequest, request: Request):
    hooks: DatasetHooks = request.app.state.hooks
    routers: RouterRegistry = request.app.state.routers

    t0 = time.perf_counter()
    data = await hooks.load_view("map")
    t_load_ms = (time.perf_counter() - t0) * 1000.0

    view = _view_state(body)
    t1 = time.perf_counter()
    layers = compose(data, view)
    routers.for_session(body.session).bind(layers)
    payload = build_map_plot(layers, view)
    t_compose_ms = (time.perf_counter() - t1) * 1000.0

    timings = {"load": round(t_load_ms, 2), "compose": round(t_compose_ms, 2)}
    payload["layout"]["meta"]["stats"]["timingsMs"] = timings
    _record("compose", "map", t_load_ms + t_compose_ms, timings)
    return payload


@app.post("/pick")
async def pick(body: PickRequest, request: Request):
    routers: RouterRegistry = request.app.state.routers
    router = routers.for_session(body.session)
    coordinate = (
        (body.lon, body.lat) if body.lon is not None and body.lat is not None else None
    )
    routed = router.dispatch(
        PickEvent(
            layer_id=body.layerId,
            index=body.index,
            kind=body.kind,
            coordinate=coordinate,
        )
    )
    if isinstance(routed, HoverEvent):
        return {"event": "hover", "reference": _reference_payload(routed.reference)}
    if isinstance(routed, ClearSelection):
        return {"event": "clear", "reference": None, "selection": None}
    sel = routed.selection
    return {
        "event": "select",
        "reference": _reference_payload(routed.reference),
        "selection": {"layerId": sel.layer_id, "index": sel.index},
    }


@app.get("/dashboard")
async def dashboard(request: Request):
    hooks: DatasetHooks = request.app.state.hooks
    data = await hooks.load_view("dashboard")
    totals = data.totals
    return {
        "year": totals.year,
        "tiles": [
            {"label": "Total Stations", "value": f"{totals.total_stations:,}"},
            {"label": "DC Fast", "value": f"{totals.fast_stations:,}"},
            {"label": "States Covered", "value": str(totals.regions_covered)},
        ],
    }


@app.get("/telemetry/summary")
def telemetry_summary(kind: str | None = None):
    store = get_store()
    if store is None:
        return {"enabled": False, "rows": []}
    return {"enabled": True, "rows": store.summary(kind=kind)}


def _record(kind: str, identifier: str, duration_ms: float, stats: dict[str, Any]) -> None:
    try:
        store = get_store()
        if store is not None:
            store.record(
                kind=kind,
                identifier=identifier,
                status=200,
                duration_ms=duration_ms,
                stats=stats,
            )
    except Exception:
        _logger.debug("Telemetry record failed for %s", identifier, exc_info=True)
