from __future__ import annotations

import asyncio
from pathlib import Path

import numpy as np
from PIL import Image, UnidentifiedImageError

from .logging_config import get_logger
from .models import DatasetKind, RasterFrame
from .modules.color_mapping import DEFAULT_VALUE_RANGES, VEGETATION_NO_DATA
from .modules.statistics import VEGETATION_MAX_VALID
from .modules.temporal import POPULATION_YEARS, nearest_available_year

LOGGER = get_logger(__name__)

_PATH_TEMPLATES: dict[DatasetKind, str] = {
    DatasetKind.land_cover: "Modis_Land_Cover_Data/{year}LCT.tif",
    DatasetKind.precipitation: "Climate_Precipitation_Data/{year}R.tif",
    DatasetKind.vegetation: "MODIS_Gross_Primary_Production_GPP/{year}_GP.tif",
    DatasetKind.population: "Gridded_Population_Density_Data/Assaba_Pop_{year}.tif",
}
_OVERLAY_TEMPLATE = "Vector_Layers/{kind}.tif"


def valid_range_mask(kind: DatasetKind, cells: np.ndarray) -> np.ndarray:
    finite = np.isfinite(cells)
    if kind == DatasetKind.vegetation:
        return finite & (cells > 0) & (cells < VEGETATION_MAX_VALID) & (cells != VEGETATION_NO_DATA)
    if kind == DatasetKind.population:
        return finite & (cells >= 0)
    return finite & (cells > 0)


def compute_value_range(kind: DatasetKind, cells: np.ndarray) -> tuple[float | None, float | None]:
    if not kind.is_continuous:
        return None, None
    valid = cells[valid_range_mask(kind, cells)]
    if valid.size == 0:
        return DEFAULT_VALUE_RANGES[kind]
    return float(valid.min()), float(valid.max())


def raster_path(data_root: Path, kind: DatasetKind, year: int) -> Path:
    if kind.is_overlay:
        return data_root / _OVERLAY_TEMPLATE.format(kind=kind.value)
    if kind == DatasetKind.population:
        year = nearest_available_year(year, POPULATION_YEARS)
    return data_root / _PATH_TEMPLATES[kind].format(year=year)


def decode_single_band(path: Path) -> tuple[np.ndarray, int, int]:
    with Image.open(path) as image:
        band = image.getchannel(0) if len(image.getbands()) > 1 else image
        arr = np.asarray(band)
    if arr.ndim != 2:
        arr = np.squeeze(arr)
    if arr.ndim != 2:
        raise ValueError(f"expected a single-band raster, got shape {arr.shape}")
    height, width = arr.shape
    return arr.reshape(-1).astype(np.float64), width, height


class TiffRasterLoader:
    """Decode dataset TIFFs into flat frames; any read or decode error yields an empty frame."""

    def __init__(self, data_root: Path):
        self.data_root = data_root

    async def __call__(self, year: int, kind: DatasetKind) -> RasterFrame:
        return await asyncio.to_thread(self.load_sync, year, kind)

    def load_sync(self, year: int, kind: DatasetKind) -> RasterFrame:
        path = raster_path(self.data_root, kind, year)
        try:
            cells, width, height = decode_single_band(path)
        except (OSError, UnidentifiedImageError, ValueError) as exc:
            LOGGER.error(
                "raster decode failed",
                extra={"dataset": kind.value, "year": year, "path": str(path), "error": str(exc)},
            )
            return RasterFrame.empty()

        value_min, value_max = compute_value_range(kind, cells)
        LOGGER.debug(
            "raster decoded",
            extra={"dataset": kind.value, "year": year, "width": width, "height": height},
        )
        return RasterFrame(cells=cells, width=width, height=height, value_min=value_min, value_max=value_max)
