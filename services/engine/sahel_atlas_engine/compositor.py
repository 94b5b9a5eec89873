from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Iterable

import numpy as np

from .frame_store import FrameStore
from .logging_config import get_logger
from .models import OVERLAY_Z_ORDER, CompositeResult, DatasetKind, RasterFrame, TemporalQuery
from .modules.color_mapping import OVERLAY_COLORS, blank_pixels, colorize, paint_overlay
from .modules.statistics import statistics_for
from .modules.temporal import OVERLAY_YEAR, available_years, interpolate, resolve_temporal_query

LOGGER = get_logger(__name__)


@dataclass
class CompositeState:
    base: DatasetKind = DatasetKind.land_cover
    overlays: set[DatasetKind] = field(default_factory=set)

    def toggle_overlay(self, kind: DatasetKind) -> bool:
        if not kind.is_overlay:
            raise ValueError(f"{kind.value} is not an overlay layer")
        if kind in self.overlays:
            self.overlays.discard(kind)
            return False
        self.overlays.add(kind)
        return True

    def set_base_dataset(self, kind: DatasetKind) -> bool:
        if kind.is_overlay:
            raise ValueError(f"{kind.value} is an overlay and cannot be the base dataset")
        changed = kind != self.base
        self.base = kind
        return changed

    def ordered_overlays(self) -> list[DatasetKind]:
        return [kind for kind in OVERLAY_Z_ORDER if kind in self.overlays]


@dataclass
class ResolvedCells:
    kind: DatasetKind
    query: TemporalQuery
    cells: np.ndarray
    width: int
    height: int
    value_min: float | None = None
    value_max: float | None = None


class Compositor:
    def __init__(self, frame_store: FrameStore, rng: np.random.Generator | None = None):
        self.frame_store = frame_store
        self._rng = rng

    async def resolve_base_cells(self, kind: DatasetKind, requested_year: int) -> ResolvedCells | None:
        query = resolve_temporal_query(requested_year, available_years(kind))
        if query.is_exact:
            before = await self.frame_store.get_or_load(kind, query.before)
            after = before
        else:
            before, after = await asyncio.gather(
                self.frame_store.get_or_load(kind, query.before),
                self.frame_store.get_or_load(kind, query.after),
            )

        if before.is_empty:
            LOGGER.error(
                "no data for base frame",
                extra={"dataset": kind.value, "year": query.before, "requested": requested_year},
            )
            return None

        source = before
        if query.is_exact or after.is_empty:
            cells = before.cells
        elif after.shape != before.shape:
            # Mismatched frames cannot be mixed; the target year wins.
            LOGGER.warning(
                "frame shape mismatch",
                extra={"dataset": kind.value, "before": before.shape, "after": after.shape},
            )
            source = after
            cells = after.cells
        else:
            cells = interpolate(before.cells, after.cells, query.progress, self._rng)

        return ResolvedCells(
            kind=kind,
            query=query,
            cells=cells,
            width=source.width,
            height=source.height,
            value_min=source.value_min,
            value_max=source.value_max,
        )

    async def load_overlays(self, overlays: Iterable[DatasetKind]) -> list[tuple[DatasetKind, RasterFrame]]:
        wanted = set(overlays)
        ordered = [kind for kind in OVERLAY_Z_ORDER if kind in wanted]
        frames = await asyncio.gather(*(self.frame_store.get_or_load(kind, OVERLAY_YEAR) for kind in ordered))
        return list(zip(ordered, frames))

    def paint(
        self,
        base: ResolvedCells | None,
        overlay_frames: list[tuple[DatasetKind, RasterFrame]],
        cells: np.ndarray | None = None,
        missing_layers: list[str] | None = None,
    ) -> tuple[np.ndarray | None, int, int]:
        missing = missing_layers if missing_layers is not None else []
        pixels: np.ndarray | None = None
        width = height = 0

        if base is not None:
            width, height = base.width, base.height
            pixels = colorize(
                base.kind,
                base.cells if cells is None else cells,
                width,
                height,
                base.value_min,
                base.value_max,
            )

        for kind, frame in overlay_frames:
            if frame.is_empty:
                LOGGER.error("no data for overlay", extra={"dataset": kind.value})
                missing.append(kind.value)
                continue
            if pixels is None:
                width, height = frame.width, frame.height
                pixels = blank_pixels(width, height)
            if frame.shape != (height, width):
                LOGGER.warning(
                    "overlay shape mismatch",
                    extra={"dataset": kind.value, "overlay": frame.shape, "base": (height, width)},
                )
                missing.append(kind.value)
                continue
            paint_overlay(pixels, frame.cells, OVERLAY_COLORS[kind])

        return pixels, width, height

    async def render_frame(self, requested_year: int, state: CompositeState) -> CompositeResult:
        missing: list[str] = []
        base = await self.resolve_base_cells(state.base, requested_year)
        if base is None:
            missing.append(state.base.value)

        overlay_frames = await self.load_overlays(state.ordered_overlays())
        pixels, width, height = self.paint(base, overlay_frames, missing_layers=missing)

        if base is None:
            return CompositeResult(
                pixels=pixels,
                width=width,
                height=height,
                base_kind=state.base,
                missing_layers=missing,
            )

        return CompositeResult(
            pixels=pixels,
            width=width,
            height=height,
            stats=statistics_for(base.kind, base.cells),
            query=base.query,
            cells=base.cells,
            base_kind=base.kind,
            value_range=(base.value_min, base.value_max),
            missing_layers=missing,
        )
