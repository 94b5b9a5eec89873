from __future__ import annotations

from typing import Sequence

import numpy as np

from ..models import DatasetKind, TemporalQuery

STANDARD_YEARS: tuple[int, ...] = tuple(range(2010, 2024))
POPULATION_YEARS: tuple[int, ...] = (2010, 2015, 2020)
# Overlays are not time-varying; they live under a single year key.
OVERLAY_YEAR = 0


def available_years(kind: DatasetKind) -> list[int]:
    if kind.is_overlay:
        return [OVERLAY_YEAR]
    if kind == DatasetKind.population:
        return list(POPULATION_YEARS)
    return list(STANDARD_YEARS)


def nearest_available_year(year: int, years: Sequence[int]) -> int:
    if not years:
        raise ValueError("no available years to choose from")
    # Leftmost scan with a strict comparison: ties resolve to the earlier entry.
    best = years[0]
    for candidate in years[1:]:
        if abs(candidate - year) < abs(best - year):
            best = candidate
    return best


def resolve_temporal_query(requested: int, years: Sequence[int]) -> TemporalQuery:
    ordered = sorted(set(years))
    if not ordered:
        raise ValueError("no available years to resolve against")

    if requested <= ordered[0]:
        return TemporalQuery(before=ordered[0], after=ordered[0], progress=0.0)
    if requested >= ordered[-1]:
        return TemporalQuery(before=ordered[-1], after=ordered[-1], progress=0.0)

    before = max(year for year in ordered if year <= requested)
    after = min(year for year in ordered if year >= requested)
    if before == after:
        return TemporalQuery(before=before, after=after, progress=0.0)
    return TemporalQuery(before=before, after=after, progress=(requested - before) / (after - before))


def stochastic_mix(
    start: np.ndarray,
    end: np.ndarray,
    progress: float,
    rng: np.random.Generator | None = None,
) -> np.ndarray:
    generator = rng if rng is not None else np.random.default_rng()
    take_end = generator.random(start.shape[0]) < progress
    return np.where((start == end) | ~take_end, start, end)


def interpolate(
    start_cells: Sequence[float] | np.ndarray,
    end_cells: Sequence[float] | np.ndarray,
    progress: float,
    rng: np.random.Generator | None = None,
) -> np.ndarray:
    start = np.asarray(start_cells).reshape(-1)
    end = np.asarray(end_cells).reshape(-1)
    if start.shape[0] != end.shape[0] or start.shape[0] == 0:
        return end
    return stochastic_mix(start, end, progress, rng)
