from __future__ import annotations

import asyncio
import io
import time
from dataclasses import dataclass, field
from typing import Any, Callable

import numpy as np
from PIL import Image

from .compositor import CompositeState, Compositor, ResolvedCells
from .frame_store import FrameStore
from .logging_config import get_logger
from .models import CompositeResult, DatasetKind, RasterFrame, TemporalQuery, ViewSnapshot
from .modules.statistics import statistics_for
from .notices import NoticeBoard
from .transition import FrameScheduler, TransitionAnimator, TransitionState

LOGGER = get_logger(__name__)


@dataclass
class DisplayedFrame:
    year: int | None = None
    dataset: DatasetKind | None = None
    pixels: np.ndarray | None = None
    width: int = 0
    height: int = 0
    stats: dict[str, Any] = field(default_factory=dict)
    query: TemporalQuery | None = None
    missing_layers: list[str] = field(default_factory=list)


@dataclass
class AnimationContext:
    base: ResolvedCells
    overlay_frames: list[tuple[DatasetKind, RasterFrame]]


class DashboardService:
    def __init__(
        self,
        frame_store: FrameStore,
        notices: NoticeBoard | None = None,
        scheduler: FrameScheduler | None = None,
        clock: Callable[[], float] = time.monotonic,
        rng: np.random.Generator | None = None,
    ):
        self.frame_store = frame_store
        self.notices = notices or NoticeBoard()
        self.composite = CompositeState()
        self.compositor = Compositor(frame_store, rng=rng)
        self.animator = TransitionAnimator(self._draw_transition, scheduler=scheduler, clock=clock, rng=rng)
        self._displayed = DisplayedFrame()
        self._animation: AnimationContext | None = None
        self._preloaded: set[DatasetKind] = set()
        self._lock = asyncio.Lock()

    @property
    def displayed(self) -> DisplayedFrame:
        return self._displayed

    def toggle_overlay(self, kind: DatasetKind) -> bool:
        enabled = self.composite.toggle_overlay(kind)
        LOGGER.info("overlay toggled", extra={"dataset": kind.value, "enabled": enabled})
        return enabled

    def set_base_dataset(self, kind: DatasetKind) -> bool:
        changed = self.composite.set_base_dataset(kind)
        if changed:
            LOGGER.info("base dataset selected", extra={"dataset": kind.value})
        return changed

    async def ensure_preloaded(self, kind: DatasetKind) -> None:
        if kind in self._preloaded:
            return
        await self.frame_store.preload(kind)
        self._preloaded.add(kind)

    async def update_view(self, year: int, dataset: DatasetKind | None = None) -> ViewSnapshot:
        async with self._lock:
            if dataset is not None:
                self.set_base_dataset(dataset)
            kind = self.composite.base
            await self.ensure_preloaded(kind)

            previous = self._displayed
            dataset_changed = previous.dataset is not None and previous.dataset != kind
            year_changed = previous.year is not None and previous.year != year
            can_animate = (
                year_changed
                and not dataset_changed
                and previous.pixels is not None
                and self.animator.last_drawn is not None
            )

            if can_animate:
                await self._animate_to(year, kind)
            else:
                await self._full_redraw(year)
            return self.snapshot()

    async def refresh(self) -> ViewSnapshot:
        async with self._lock:
            if self._displayed.year is None:
                return self.snapshot()
            await self.ensure_preloaded(self.composite.base)
            await self._full_redraw(self._displayed.year)
            return self.snapshot()

    async def _full_redraw(self, year: int) -> None:
        self.animator.cancel()
        self._animation = None
        result = await self.compositor.render_frame(year, self.composite)
        self._publish(year, result)
        self.animator.mark_drawn(result.cells)

    async def _animate_to(self, year: int, kind: DatasetKind) -> None:
        base = await self.compositor.resolve_base_cells(kind, year)
        if base is None:
            await self._full_redraw(year)
            return

        overlay_frames = await self.compositor.load_overlays(self.composite.ordered_overlays())
        self._animation = AnimationContext(base=base, overlay_frames=overlay_frames)
        self._displayed.year = year
        self._displayed.dataset = kind
        self._displayed.query = base.query

        LOGGER.debug(
            "year transition started",
            extra={"dataset": kind.value, "year": year, "before": base.query.before, "after": base.query.after},
        )
        self.animator.start(base.cells, base.width, base.height, kind)

    def _draw_transition(self, cells: np.ndarray, transition: TransitionState, finished: bool) -> None:
        context = self._animation
        if context is None:
            return
        missing: list[str] = []
        pixels, width, height = self.compositor.paint(context.base, context.overlay_frames, cells=cells, missing_layers=missing)
        self._displayed.pixels = pixels
        self._displayed.width = width
        self._displayed.height = height
        self._displayed.missing_layers = missing
        if finished:
            self._displayed.stats = statistics_for(transition.dataset_kind, cells)
            self._animation = None

    def _publish(self, year: int, result: CompositeResult) -> None:
        self._displayed = DisplayedFrame(
            year=year,
            dataset=result.base_kind,
            pixels=result.pixels,
            width=result.width,
            height=result.height,
            stats=result.stats,
            query=result.query,
            missing_layers=list(result.missing_layers),
        )
        if result.missing_layers:
            LOGGER.warning("layers omitted from render", extra={"year": year, "layers": result.missing_layers})

    def snapshot(self) -> ViewSnapshot:
        displayed = self._displayed
        return ViewSnapshot(
            year=displayed.year,
            dataset=displayed.dataset or self.composite.base,
            overlays=self.composite.ordered_overlays(),
            query=displayed.query,
            stats=displayed.stats,
            animating=self.animator.is_animating,
            width=displayed.width,
            height=displayed.height,
            missingLayers=displayed.missing_layers,
        )

    def render_png(self) -> bytes | None:
        pixels = self._displayed.pixels
        if pixels is None:
            return None
        buffer = io.BytesIO()
        Image.fromarray(np.ascontiguousarray(pixels, dtype=np.uint8)).save(buffer, format="PNG")
        return buffer.getvalue()
