from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable

from .logging_config import get_logger
from .models import DatasetKind, FrameStatus, RasterFrame
from .modules.temporal import available_years
from .notices import NoticeBoard

LOGGER = get_logger(__name__)

RasterLoader = Callable[[int, DatasetKind], Awaitable[RasterFrame]]
FrameKey = tuple[DatasetKind, int]


def frame_key_label(key: FrameKey) -> str:
    kind, year = key
    return f"{kind.value}:{year}"


@dataclass
class LoadFailure:
    kind: DatasetKind
    year: int
    reason: str


class FrameStore:
    def __init__(self, loader: RasterLoader, notices: NoticeBoard | None = None):
        self._loader = loader
        self._notices = notices
        self._frames: dict[FrameKey, RasterFrame] = {}
        self._pending: dict[FrameKey, asyncio.Task[RasterFrame]] = {}
        self._failures: dict[FrameKey, LoadFailure] = {}

    def peek(self, kind: DatasetKind, year: int) -> RasterFrame | None:
        return self._frames.get((kind, year))

    def status(self, kind: DatasetKind, year: int) -> FrameStatus:
        key = (kind, year)
        if key in self._frames:
            return FrameStatus.cached
        if key in self._pending:
            return FrameStatus.pending
        if key in self._failures:
            return FrameStatus.failed
        return FrameStatus.absent

    def cached_years(self, kind: DatasetKind) -> list[int]:
        return sorted(year for cached_kind, year in self._frames if cached_kind == kind)

    def failures(self) -> list[LoadFailure]:
        return list(self._failures.values())

    async def get_or_load(self, kind: DatasetKind, year: int) -> RasterFrame:
        key = (kind, year)
        cached = self._frames.get(key)
        if cached is not None:
            return cached

        task = self._pending.get(key)
        if task is None:
            task = asyncio.create_task(self._load(key), name=f"load-{frame_key_label(key)}")
            self._pending[key] = task
            task.add_done_callback(lambda done, key=key: self._forget_pending(key, done))
        # Shielded so one caller's cancellation does not abort the shared load.
        return await asyncio.shield(task)

    async def preload(self, kind: DatasetKind) -> dict[int, FrameStatus]:
        years = available_years(kind)
        LOGGER.info("preloading frames", extra={"dataset": kind.value, "years": len(years)})
        await asyncio.gather(*(self.get_or_load(kind, year) for year in years))
        return {year: self.status(kind, year) for year in years}

    def _forget_pending(self, key: FrameKey, task: asyncio.Task[RasterFrame]) -> None:
        if self._pending.get(key) is task:
            del self._pending[key]

    async def _load(self, key: FrameKey) -> RasterFrame:
        kind, year = key
        try:
            frame = await self._loader(year, kind)
        except Exception as exc:
            LOGGER.exception("raster loader raised", extra={"frame": frame_key_label(key)})
            self._record_failure(key, f"{type(exc).__name__}: {exc}")
            return RasterFrame.empty()

        if frame.is_empty:
            self._record_failure(key, "loader returned an empty frame")
            return frame

        if frame.cells.size != frame.width * frame.height:
            self._record_failure(
                key,
                f"cell count {frame.cells.size} does not match {frame.width}x{frame.height}",
            )
            return RasterFrame.empty()

        self._frames[key] = frame
        if self._failures.pop(key, None) is not None and self._notices is not None:
            self._notices.clear(frame_key_label(key))
        LOGGER.debug(
            "frame cached",
            extra={"frame": frame_key_label(key), "width": frame.width, "height": frame.height},
        )
        return frame

    def _record_failure(self, key: FrameKey, reason: str) -> None:
        kind, year = key
        self._failures[key] = LoadFailure(kind=kind, year=year, reason=reason)
        LOGGER.warning("frame load failed", extra={"frame": frame_key_label(key), "reason": reason})
        if self._notices is None:
            return
        label = "overlay" if kind.is_overlay else f"{year}"
        self._notices.report(
            frame_key_label(key),
            code="frame_load_failed",
            title=f"Error loading {kind.value} data",
            description=f"Could not load the {kind.value} layer ({label}).",
            details={"dataset": kind.value, "year": year, "reason": reason},
        )
