from __future__ import annotations

from typing import Any, Callable, Iterable, Sequence

import numpy as np

from ..models import ContinuousSummary, DatasetKind, PopulationStats, VegetationStats
from ..utils import round_half_up
from .color_mapping import LAND_COVER_CLASSES, VEGETATION_NO_DATA

ExcludePredicate = Callable[[np.ndarray], np.ndarray]

PRECIPITATION_NO_DATA = 0.0
PRECIPITATION_MIN_VALID = 0.1
VEGETATION_MAX_VALID = 3000.0

# Fixed-ratio projections; these are presentation constants, not derived from data.
VEGETATION_FOREST_GPP_RATIO = 0.9
VEGETATION_GRASSLAND_GPP_RATIO = 0.6
VEGETATION_CROPLAND_GPP_RATIO = 0.7
VEGETATION_BARREN_GPP_RATIO = 1.5

POPULATION_CELL_SCALE = 0.1
POPULATION_URBAN_DENSITY_RATIO = 0.3
POPULATION_UNDER_15_SHARE = 0.44
POPULATION_OVER_65_SHARE = 0.03
POPULATION_FEMALE_SHARE = 0.51
POPULATION_GROWTH_RATE = 3.1


def exclude_nothing(values: np.ndarray) -> np.ndarray:
    return np.zeros(values.shape, dtype=bool)


def exclude_precipitation(values: np.ndarray) -> np.ndarray:
    return (values == PRECIPITATION_NO_DATA) | (values <= PRECIPITATION_MIN_VALID)


def exclude_vegetation(values: np.ndarray) -> np.ndarray:
    return (values == VEGETATION_NO_DATA) | (values <= 0) | (values >= VEGETATION_MAX_VALID)


def exclude_population(values: np.ndarray) -> np.ndarray:
    return values < 0


EXCLUDE_RULES: dict[DatasetKind, ExcludePredicate] = {
    DatasetKind.precipitation: exclude_precipitation,
    DatasetKind.vegetation: exclude_vegetation,
    DatasetKind.population: exclude_population,
}


def _as_values(cells: Sequence[float] | np.ndarray) -> np.ndarray:
    return np.asarray(cells, dtype=np.float64).reshape(-1)


def valid_values(cells: Sequence[float] | np.ndarray, exclude: ExcludePredicate = exclude_nothing) -> np.ndarray:
    values = _as_values(cells)
    values = values[np.isfinite(values)]
    if values.size == 0:
        return values
    return values[~np.asarray(exclude(values), dtype=bool)]


def categorical_histogram(
    cells: Sequence[float] | np.ndarray,
    known_categories: Iterable[int] = LAND_COVER_CLASSES.keys(),
) -> dict[int, int]:
    values = _as_values(cells)
    histogram: dict[int, int] = {}
    for category in known_categories:
        histogram[int(category)] = int(np.count_nonzero(values == category))
    return histogram


def continuous_summary(
    cells: Sequence[float] | np.ndarray,
    exclude: ExcludePredicate = exclude_nothing,
) -> ContinuousSummary:
    values = valid_values(cells, exclude)
    if values.size == 0:
        return ContinuousSummary()
    total = float(values.sum())
    return ContinuousSummary(
        average=total / values.size,
        min=float(values.min()),
        max=float(values.max()),
        total=total,
    )


def vegetation_stats(cells: Sequence[float] | np.ndarray) -> VegetationStats:
    values = valid_values(cells, exclude_vegetation)
    if values.size == 0:
        return VegetationStats()
    summary = continuous_summary(values)
    return VegetationStats(
        **summary.model_dump(),
        forestGPP=summary.max * VEGETATION_FOREST_GPP_RATIO,
        grasslandGPP=summary.max * VEGETATION_GRASSLAND_GPP_RATIO,
        croplandGPP=summary.max * VEGETATION_CROPLAND_GPP_RATIO,
        barrenGPP=summary.min * VEGETATION_BARREN_GPP_RATIO,
    )


def population_stats(cells: Sequence[float] | np.ndarray) -> PopulationStats:
    values = valid_values(cells, exclude_population)
    if values.size == 0:
        return PopulationStats()

    density_sum = float(values.sum())
    max_density = float(values.max())
    total = round_half_up(density_sum * POPULATION_CELL_SCALE)

    urban_threshold = max_density * POPULATION_URBAN_DENSITY_RATIO
    urban = round_half_up(float(values[values >= urban_threshold].sum()) * POPULATION_CELL_SCALE)
    female = round_half_up(total * POPULATION_FEMALE_SHARE)

    return PopulationStats(
        totalPopulation=total,
        averageDensity=density_sum / values.size,
        maxDensity=max_density,
        urbanPopulation=urban,
        ruralPopulation=total - urban,
        populationGrowthRate=POPULATION_GROWTH_RATE,
        populationUnder15=round_half_up(total * POPULATION_UNDER_15_SHARE),
        populationOver65=round_half_up(total * POPULATION_OVER_65_SHARE),
        malePopulation=total - female,
        femalePopulation=female,
    )


def statistics_for(kind: DatasetKind, cells: Sequence[float] | np.ndarray) -> dict[str, Any]:
    if kind == DatasetKind.land_cover:
        return {str(code): count for code, count in categorical_histogram(cells).items()}
    if kind == DatasetKind.precipitation:
        return continuous_summary(cells, exclude_precipitation).model_dump()
    if kind == DatasetKind.vegetation:
        return vegetation_stats(cells).model_dump()
    if kind == DatasetKind.population:
        return population_stats(cells).model_dump()
    return {}
