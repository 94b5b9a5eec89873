from __future__ import annotations

import asyncio

import numpy as np
import pytest

from sahel_atlas_engine.models import DatasetKind, RasterFrame


class FakeLoader:
    def __init__(self, delay_s: float = 0.0):
        self.delay_s = delay_s
        self.frames: dict[tuple[DatasetKind, int], RasterFrame | Exception] = {}
        self.calls: list[tuple[DatasetKind, int]] = []

    def add(
        self,
        kind: DatasetKind,
        year: int,
        values: list[float],
        width: int,
        height: int,
        value_min: float | None = None,
        value_max: float | None = None,
    ) -> RasterFrame:
        frame = RasterFrame(
            cells=np.asarray(values, dtype=np.float64),
            width=width,
            height=height,
            value_min=value_min,
            value_max=value_max,
        )
        self.frames[(kind, year)] = frame
        return frame

    def fail(self, kind: DatasetKind, year: int, exc: Exception) -> None:
        self.frames[(kind, year)] = exc

    async def __call__(self, year: int, kind: DatasetKind) -> RasterFrame:
        self.calls.append((kind, year))
        if self.delay_s:
            await asyncio.sleep(self.delay_s)
        frame = self.frames.get((kind, year))
        if isinstance(frame, Exception):
            raise frame
        if frame is None:
            return RasterFrame.empty()
        return frame


@pytest.fixture()
def fake_loader() -> FakeLoader:
    return FakeLoader()
