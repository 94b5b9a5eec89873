from __future__ import annotations

import asyncio

import numpy as np

from conftest import FakeLoader

from sahel_atlas_engine.dashboard_service import DashboardService
from sahel_atlas_engine.frame_store import FrameStore
from sahel_atlas_engine.models import DatasetKind
from sahel_atlas_engine.modules.color_mapping import LAND_COVER_COLORS, OVERLAY_COLORS
from sahel_atlas_engine.modules.temporal import OVERLAY_YEAR
from sahel_atlas_engine.notices import NoticeBoard
from sahel_atlas_engine.transition import ManualFrameScheduler


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def _build_service(loader: FakeLoader):
    scheduler = ManualFrameScheduler()
    clock = FakeClock()
    notices = NoticeBoard()
    service = DashboardService(
        FrameStore(loader, notices),
        notices,
        scheduler=scheduler,
        clock=clock,
        rng=np.random.default_rng(7),
    )
    return service, scheduler, clock


def _seed_land_cover(loader: FakeLoader) -> None:
    size = 20 * 10
    loader.add(DatasetKind.land_cover, 2010, [7] * size, width=20, height=10)
    loader.add(DatasetKind.land_cover, 2015, [16] * size, width=20, height=10)
    loader.add(DatasetKind.precipitation, 2012, [120.0] * size, width=20, height=10, value_min=0.0, value_max=400.0)


def test_first_view_draws_without_animation(fake_loader: FakeLoader):
    _seed_land_cover(fake_loader)
    service, scheduler, _ = _build_service(fake_loader)

    snapshot = asyncio.run(service.update_view(2010))

    assert snapshot.animating is False
    assert snapshot.dataset == DatasetKind.land_cover
    assert (snapshot.width, snapshot.height) == (20, 10)
    assert snapshot.stats["7"] == 200
    assert scheduler.pending == 0
    # Every land cover year was requested up front.
    assert {year for kind, year in fake_loader.calls if kind == DatasetKind.land_cover} == set(range(2010, 2024))


def test_year_change_animates_and_settles(fake_loader: FakeLoader):
    _seed_land_cover(fake_loader)
    service, scheduler, clock = _build_service(fake_loader)

    async def scenario():
        await service.update_view(2010)
        return await service.update_view(2012)

    started = asyncio.run(scenario())

    assert started.animating is True
    assert started.year == 2012
    assert started.stats["7"] == 200

    scheduler.run_pending(clock.now + 0.2)
    assert service.snapshot().animating is True
    mid_pixels = service.displayed.pixels
    colors = {tuple(int(channel) for channel in pixel) for pixel in mid_pixels.reshape(-1, 4)}
    assert colors <= {LAND_COVER_COLORS[7], LAND_COVER_COLORS[16]}

    scheduler.run_pending(clock.now + 0.5)
    settled = service.snapshot()
    assert settled.animating is False
    assert settled.stats["7"] + settled.stats["16"] == 200
    assert settled.query is not None and settled.query.before == 2010


def test_dataset_change_redraws_without_animation(fake_loader: FakeLoader):
    _seed_land_cover(fake_loader)
    service, scheduler, _ = _build_service(fake_loader)

    async def scenario():
        await service.update_view(2010)
        return await service.update_view(2012, DatasetKind.precipitation)

    snapshot = asyncio.run(scenario())

    assert snapshot.animating is False
    assert snapshot.dataset == DatasetKind.precipitation
    assert scheduler.pending == 0
    assert snapshot.stats["average"] == 120.0


def test_overlay_toggle_refreshes_current_year(fake_loader: FakeLoader):
    _seed_land_cover(fake_loader)
    cells = [0.0] * 200
    cells[0] = 1.0
    fake_loader.add(DatasetKind.river_network, OVERLAY_YEAR, cells, width=20, height=10)
    service, _, _ = _build_service(fake_loader)

    async def scenario():
        await service.update_view(2010)
        service.toggle_overlay(DatasetKind.river_network)
        return await service.refresh()

    snapshot = asyncio.run(scenario())

    assert snapshot.overlays == [DatasetKind.river_network]
    assert snapshot.year == 2010
    assert tuple(service.displayed.pixels[0, 0]) == OVERLAY_COLORS[DatasetKind.river_network]
    assert snapshot.stats["7"] == 200


def test_missing_base_is_reported(fake_loader: FakeLoader):
    service, _, _ = _build_service(fake_loader)

    snapshot = asyncio.run(service.update_view(2011, DatasetKind.vegetation))

    assert snapshot.missingLayers == [DatasetKind.vegetation.value]
    assert snapshot.stats == {}
    assert service.render_png() is None
    titles = {notice.title for notice in service.notices.entries()}
    assert titles == {"Error loading vegetation data"}


def test_render_png_encodes_current_frame(fake_loader: FakeLoader):
    _seed_land_cover(fake_loader)
    service, _, _ = _build_service(fake_loader)

    asyncio.run(service.update_view(2015))
    payload = service.render_png()

    assert payload is not None
    assert payload.startswith(b"\x89PNG")


def test_dataset_change_cancels_running_transition(fake_loader: FakeLoader):
    _seed_land_cover(fake_loader)
    service, scheduler, clock = _build_service(fake_loader)

    async def scenario():
        await service.update_view(2010)
        animating = await service.update_view(2012)
        switched = await service.update_view(2012, DatasetKind.precipitation)
        return animating, switched

    animating, switched = asyncio.run(scenario())

    assert animating.animating is True
    assert switched.animating is False
    assert scheduler.pending == 0

    settled_pixels = service.displayed.pixels.copy()
    assert scheduler.run_pending(clock.now + 1.0) == 0
    assert np.array_equal(service.displayed.pixels, settled_pixels)
    assert service.snapshot().dataset == DatasetKind.precipitation
    assert service.snapshot().stats["average"] == 120.0


def test_overlay_toggle_during_transition_redraws_immediately(fake_loader: FakeLoader):
    _seed_land_cover(fake_loader)
    fake_loader.add(DatasetKind.region_boundaries, OVERLAY_YEAR, [1.0] + [0.0] * 199, width=20, height=10)
    service, scheduler, _ = _build_service(fake_loader)

    async def scenario():
        await service.update_view(2010)
        await service.update_view(2012)
        service.toggle_overlay(DatasetKind.region_boundaries)
        return await service.refresh()

    snapshot = asyncio.run(scenario())

    assert snapshot.animating is False
    assert scheduler.pending == 0
    assert tuple(service.displayed.pixels[0, 0]) == OVERLAY_COLORS[DatasetKind.region_boundaries]
