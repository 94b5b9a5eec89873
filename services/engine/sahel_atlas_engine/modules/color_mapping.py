from __future__ import annotations

import math
from typing import Any, Callable, Mapping, Sequence

import numpy as np

from ..models import DatasetKind
from ..utils import hex_to_rgba

RGBA = tuple[int, int, int, int]
SentinelRule = Callable[[Any], Any]

TRANSPARENT: RGBA = (255, 255, 255, 0)
NO_DATA_CATEGORY = 0
VEGETATION_NO_DATA = 65533

LAND_COVER_CLASSES: dict[int, str] = {
    7: "Forests",
    8: "Shrublands",
    9: "Savannas",
    10: "Grasslands",
    11: "Wetlands",
    12: "Croplands",
    13: "Urban",
    14: "Cropland/Natural Mosaic",
    15: "Snow and Ice",
    16: "Barren",
    0: "No Data",
}

LAND_COVER_HEX: dict[int, str] = {
    7: "#1a9850",
    8: "#91cf60",
    9: "#d9ef8b",
    10: "#fee08b",
    11: "#66c2a5",
    12: "#fc8d59",
    13: "#d73027",
    14: "#fdae61",
    15: "#f7f7f7",
    16: "#bababa",
    0: "#4d4d4d",
}

REGIONAL_PRECIPITATION_HEX: dict[str, str] = {
    "Overall": "#4575b4",
    "South": "#d73027",
    "Center": "#fdae61",
    "North": "#66bd63",
}

PRECIPITATION_SCALE_HEX = (
    "#f7fbff", "#deebf7", "#c6dbef", "#9ecae1", "#6baed6",
    "#4292c6", "#2171b5", "#08519c", "#08306b",
)
VEGETATION_SCALE_HEX = (
    "#f7fcf5", "#e5f5e0", "#c7e9c0", "#a1d99b", "#74c476",
    "#41ab5d", "#238b45", "#006d2c", "#00441b",
)
POPULATION_SCALE_HEX = (
    "#ffffcc", "#ffeda0", "#fed976", "#feb24c", "#fd8d3c",
    "#fc4e2a", "#e31a1c", "#bd0026", "#800026",
)

OVERLAY_HEX: dict[DatasetKind, str] = {
    DatasetKind.region_boundaries: "#3f007d",
    DatasetKind.district_boundaries: "#807dba",
    DatasetKind.road_network: "#7f2704",
    DatasetKind.river_network: "#2b8cbe",
}

LAND_COVER_COLORS: dict[int, RGBA] = {code: hex_to_rgba(value) for code, value in LAND_COVER_HEX.items()}
OVERLAY_COLORS: dict[DatasetKind, RGBA] = {kind: hex_to_rgba(value) for kind, value in OVERLAY_HEX.items()}

CONTINUOUS_SCALES: dict[DatasetKind, tuple[RGBA, ...]] = {
    DatasetKind.precipitation: tuple(hex_to_rgba(value) for value in PRECIPITATION_SCALE_HEX),
    DatasetKind.vegetation: tuple(hex_to_rgba(value) for value in VEGETATION_SCALE_HEX),
    DatasetKind.population: tuple(hex_to_rgba(value) for value in POPULATION_SCALE_HEX),
}

# Fallback (min, max) when a frame carries no valid-data range.
DEFAULT_VALUE_RANGES: dict[DatasetKind, tuple[float, float]] = {
    DatasetKind.precipitation: (0.0, 500.0),
    DatasetKind.vegetation: (0.0, 3000.0),
    DatasetKind.population: (0.0, 500.0),
}


# Rules are written with element-wise operators so they apply to scalars and arrays alike.
def _vegetation_no_data(value: Any) -> Any:
    return (value == VEGETATION_NO_DATA) | (value <= 0)


def _population_no_data(value: Any) -> Any:
    return value < 0


SENTINEL_RULES: dict[DatasetKind, SentinelRule | None] = {
    DatasetKind.precipitation: None,
    DatasetKind.vegetation: _vegetation_no_data,
    DatasetKind.population: _population_no_data,
}


def color_for_category(value: float, table: Mapping[int, RGBA] = LAND_COVER_COLORS) -> RGBA:
    color = table.get(value)  # type: ignore[call-overload]
    if color is None:
        return table[NO_DATA_CATEGORY]
    return color


def continuous_index(value: float, vmin: float, vmax: float, scale_length: int) -> int:
    denominator = (vmax - vmin) or 1.0
    normalized = max(0.0, min(1.0, (value - vmin) / denominator))
    return int(math.floor(normalized * (scale_length - 1)))


def color_for_continuous(
    value: float,
    vmin: float,
    vmax: float,
    scale: Sequence[RGBA],
    is_sentinel: SentinelRule | None = None,
) -> RGBA:
    if not math.isfinite(value):
        return TRANSPARENT
    if is_sentinel is not None and bool(is_sentinel(value)):
        return TRANSPARENT
    return scale[continuous_index(value, vmin, vmax, len(scale))]


def resolve_value_range(kind: DatasetKind, vmin: float | None, vmax: float | None) -> tuple[float, float]:
    default_min, default_max = DEFAULT_VALUE_RANGES.get(kind, (0.0, 500.0))
    return (
        default_min if vmin is None else float(vmin),
        default_max if vmax is None else float(vmax),
    )


def color_for_value(kind: DatasetKind, value: float, vmin: float | None = None, vmax: float | None = None) -> RGBA:
    if kind.is_categorical:
        return color_for_category(value)
    if kind.is_overlay:
        return OVERLAY_COLORS[kind] if _is_feature(value) else TRANSPARENT
    low, high = resolve_value_range(kind, vmin, vmax)
    return color_for_continuous(value, low, high, CONTINUOUS_SCALES[kind], SENTINEL_RULES[kind])


def _is_feature(value: float) -> bool:
    return math.isfinite(value) and value > 0


def _palette(colors: Sequence[RGBA]) -> np.ndarray:
    return np.asarray(colors, dtype=np.uint8).reshape(-1, 4)


def _as_cells(cells: Sequence[float] | np.ndarray) -> np.ndarray:
    return np.asarray(cells, dtype=np.float64).reshape(-1)


def colorize_categorical(
    cells: Sequence[float] | np.ndarray,
    width: int,
    height: int,
    table: Mapping[int, RGBA] = LAND_COVER_COLORS,
) -> np.ndarray:
    values = _as_cells(cells)
    out = np.empty((values.size, 4), dtype=np.uint8)
    out[:] = table[NO_DATA_CATEGORY]
    for code, color in table.items():
        out[values == code] = color
    return out.reshape(height, width, 4)


def colorize_continuous(
    cells: Sequence[float] | np.ndarray,
    width: int,
    height: int,
    vmin: float,
    vmax: float,
    scale: Sequence[RGBA],
    is_sentinel: SentinelRule | None = None,
) -> np.ndarray:
    values = _as_cells(cells)
    finite = np.isfinite(values)
    safe = np.where(finite, values, vmin)

    denominator = (vmax - vmin) or 1.0
    normalized = np.clip((safe - vmin) / denominator, 0.0, 1.0)
    indices = np.floor(normalized * (len(scale) - 1)).astype(np.int64)

    out = _palette(scale)[indices]
    hidden = ~finite
    if is_sentinel is not None:
        hidden |= np.asarray(is_sentinel(safe), dtype=bool) & finite
    out[hidden] = TRANSPARENT
    return out.reshape(height, width, 4)


def feature_mask(cells: Sequence[float] | np.ndarray) -> np.ndarray:
    values = _as_cells(cells)
    return np.isfinite(values) & (np.nan_to_num(values, nan=0.0) > 0)


def paint_overlay(pixels: np.ndarray, cells: Sequence[float] | np.ndarray, color: RGBA) -> np.ndarray:
    height, width = pixels.shape[:2]
    mask = feature_mask(cells).reshape(height, width)
    pixels[mask] = color
    return pixels


def blank_pixels(width: int, height: int) -> np.ndarray:
    return np.zeros((height, width, 4), dtype=np.uint8)


def colorize(
    kind: DatasetKind,
    cells: Sequence[float] | np.ndarray,
    width: int,
    height: int,
    vmin: float | None = None,
    vmax: float | None = None,
) -> np.ndarray:
    if kind.is_categorical:
        return colorize_categorical(cells, width, height)
    if kind.is_overlay:
        return paint_overlay(blank_pixels(width, height), cells, OVERLAY_COLORS[kind])
    low, high = resolve_value_range(kind, vmin, vmax)
    return colorize_continuous(cells, width, height, low, high, CONTINUOUS_SCALES[kind], SENTINEL_RULES[kind])
