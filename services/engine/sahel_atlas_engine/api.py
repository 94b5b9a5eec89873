from __future__ import annotations

from typing import Any

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response

from .dashboard_service import DashboardService
from .frame_store import FrameStore, RasterLoader
from .loaders import TiffRasterLoader
from .logging_config import configure_logging
from .models import (
    BaseDatasetRequest,
    CompositeStateSummary,
    DatasetKind,
    DatasetSummary,
    Notice,
    PreloadResponse,
    TemporalQuery,
    ViewRequest,
    ViewSnapshot,
)
from .modules.temporal import available_years, resolve_temporal_query
from .notices import NoticeBoard
from .settings import Settings, load_settings
from .timeseries import TimeSeriesRepository
from .transition import AsyncioFrameScheduler


def _parse_kind(raw: str) -> DatasetKind:
    try:
        return DatasetKind(raw)
    except ValueError:
        raise HTTPException(status_code=404, detail=f"unknown dataset {raw!r}") from None


def create_app(settings: Settings | None = None, loader: RasterLoader | None = None) -> FastAPI:
    settings = settings or load_settings()
    configure_logging(level=settings.log_level, json_logs=settings.json_logs, log_file=settings.log_file)

    notices = NoticeBoard()
    frame_store = FrameStore(loader or TiffRasterLoader(settings.data_root), notices)
    dashboard = DashboardService(frame_store, notices, scheduler=AsyncioFrameScheduler())
    timeseries = TimeSeriesRepository(settings.data_root)

    app = FastAPI(title="Sahel Atlas Engine", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.settings = settings
    app.state.notices = notices
    app.state.frame_store = frame_store
    app.state.dashboard = dashboard
    app.state.timeseries = timeseries

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/v1/datasets", response_model=list[DatasetSummary])
    async def list_datasets() -> list[DatasetSummary]:
        return [
            DatasetSummary(
                kind=kind,
                role="overlay" if kind.is_overlay else "base",
                availableYears=available_years(kind),
                cachedYears=frame_store.cached_years(kind),
            )
            for kind in DatasetKind
        ]

    @app.post("/v1/datasets/{kind}/preload", response_model=PreloadResponse)
    async def preload_dataset(kind: str) -> PreloadResponse:
        dataset = _parse_kind(kind)
        statuses = await frame_store.preload(dataset)
        return PreloadResponse(kind=dataset, statuses={str(year): status for year, status in statuses.items()})

    @app.get("/v1/temporal", response_model=TemporalQuery)
    async def temporal_query(kind: str, year: int) -> TemporalQuery:
        return resolve_temporal_query(year, available_years(_parse_kind(kind)))

    @app.get("/v1/composite", response_model=CompositeStateSummary)
    async def get_composite() -> CompositeStateSummary:
        return CompositeStateSummary(
            baseDataset=dashboard.composite.base,
            overlays=dashboard.composite.ordered_overlays(),
        )

    @app.put("/v1/composite/base", response_model=ViewSnapshot)
    async def set_base_dataset(request: BaseDatasetRequest) -> ViewSnapshot:
        dashboard.set_base_dataset(request.kind)
        return await dashboard.refresh()

    @app.post("/v1/composite/overlays/{kind}/toggle", response_model=ViewSnapshot)
    async def toggle_overlay(kind: str) -> ViewSnapshot:
        dataset = _parse_kind(kind)
        try:
            dashboard.toggle_overlay(dataset)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return await dashboard.refresh()

    @app.post("/v1/view", response_model=ViewSnapshot)
    async def update_view(request: ViewRequest) -> ViewSnapshot:
        return await dashboard.update_view(request.year, request.dataset)

    @app.get("/v1/view", response_model=ViewSnapshot)
    async def get_view() -> ViewSnapshot:
        return dashboard.snapshot()

    @app.get("/v1/view/image.png")
    async def get_view_image() -> Response:
        payload = dashboard.render_png()
        if payload is None:
            raise HTTPException(status_code=404, detail="no frame rendered")
        return Response(content=payload, media_type="image/png")

    @app.get("/v1/notices", response_model=list[Notice])
    async def list_notices() -> list[Notice]:
        return notices.entries()

    @app.get("/v1/timeseries/{series}")
    async def get_timeseries(series: str) -> list[dict[str, Any]]:
        try:
            return timeseries.series(series)
        except KeyError:
            raise HTTPException(status_code=404, detail=f"unknown series {series!r}") from None

    return app
