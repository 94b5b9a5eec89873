from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal

import numpy as np
from pydantic import BaseModel, Field, model_validator


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class DatasetKind(str, Enum):
    land_cover = "landCover"
    precipitation = "precipitation"
    vegetation = "vegetation"
    population = "population"
    region_boundaries = "regionBoundaries"
    district_boundaries = "districtBoundaries"
    road_network = "roadNetwork"
    river_network = "riverNetwork"

    @property
    def is_overlay(self) -> bool:
        return self in OVERLAY_Z_ORDER

    @property
    def is_base(self) -> bool:
        return not self.is_overlay

    @property
    def is_categorical(self) -> bool:
        return self == DatasetKind.land_cover

    @property
    def is_continuous(self) -> bool:
        return self in {DatasetKind.precipitation, DatasetKind.vegetation, DatasetKind.population}


# Later entries draw on top of earlier ones.
OVERLAY_Z_ORDER: tuple[DatasetKind, ...] = (
    DatasetKind.region_boundaries,
    DatasetKind.district_boundaries,
    DatasetKind.road_network,
    DatasetKind.river_network,
)

BASE_KINDS: tuple[DatasetKind, ...] = (
    DatasetKind.land_cover,
    DatasetKind.precipitation,
    DatasetKind.vegetation,
    DatasetKind.population,
)


@dataclass
class RasterFrame:
    cells: np.ndarray
    width: int
    height: int
    value_min: float | None = None
    value_max: float | None = None

    @classmethod
    def empty(cls) -> "RasterFrame":
        return cls(cells=np.zeros(0, dtype=np.float32), width=0, height=0)

    @property
    def is_empty(self) -> bool:
        return self.cells.size == 0 or self.width <= 0 or self.height <= 0

    @property
    def shape(self) -> tuple[int, int]:
        return self.height, self.width

    @property
    def value_range(self) -> tuple[float | None, float | None]:
        return self.value_min, self.value_max


class TemporalQuery(BaseModel):
    before: int
    after: int
    progress: float = Field(ge=0.0, le=1.0)

    @property
    def is_exact(self) -> bool:
        return self.before == self.after


class FrameStatus(str, Enum):
    absent = "absent"
    pending = "pending"
    cached = "cached"
    failed = "failed"


class Notice(BaseModel):
    key: str
    code: str
    severity: Literal["error", "warning", "info"] = "error"
    title: str
    description: str = ""
    details: dict[str, Any] = Field(default_factory=dict)
    createdAt: str = Field(default_factory=utc_now_iso)


class ContinuousSummary(BaseModel):
    average: float = 0.0
    min: float = 0.0
    max: float = 0.0
    total: float = 0.0


class VegetationStats(ContinuousSummary):
    forestGPP: float = 0.0
    grasslandGPP: float = 0.0
    croplandGPP: float = 0.0
    barrenGPP: float = 0.0


class PopulationStats(BaseModel):
    totalPopulation: int = 0
    averageDensity: float = 0.0
    maxDensity: float = 0.0
    urbanPopulation: int = 0
    ruralPopulation: int = 0
    populationGrowthRate: float = 0.0
    populationUnder15: int = 0
    populationOver65: int = 0
    malePopulation: int = 0
    femalePopulation: int = 0


@dataclass
class CompositeResult:
    pixels: np.ndarray | None
    width: int
    height: int
    stats: dict[str, float] = field(default_factory=dict)
    query: TemporalQuery | None = None
    cells: np.ndarray | None = None
    base_kind: DatasetKind | None = None
    value_range: tuple[float | None, float | None] = (None, None)
    missing_layers: list[str] = field(default_factory=list)

    @property
    def has_base(self) -> bool:
        return self.cells is not None


class DatasetSummary(BaseModel):
    kind: DatasetKind
    role: Literal["base", "overlay"]
    availableYears: list[int]
    cachedYears: list[int] = Field(default_factory=list)


class PreloadResponse(BaseModel):
    kind: DatasetKind
    statuses: dict[str, FrameStatus]


class CompositeStateSummary(BaseModel):
    baseDataset: DatasetKind
    overlays: list[DatasetKind] = Field(default_factory=list)


class BaseDatasetRequest(BaseModel):
    kind: DatasetKind

    @model_validator(mode="after")
    def validate_base_kind(self) -> "BaseDatasetRequest":
        if self.kind.is_overlay:
            raise ValueError(f"{self.kind.value} is an overlay and cannot be the base dataset")
        return self


class ViewRequest(BaseModel):
    year: int
    dataset: DatasetKind | None = None

    @model_validator(mode="after")
    def validate_dataset(self) -> "ViewRequest":
        if self.dataset is not None and self.dataset.is_overlay:
            raise ValueError(f"{self.dataset.value} is an overlay and cannot be viewed as a base dataset")
        return self


class ViewSnapshot(BaseModel):
    year: int | None = None
    dataset: DatasetKind
    overlays: list[DatasetKind] = Field(default_factory=list)
    query: TemporalQuery | None = None
    stats: dict[str, float] = Field(default_factory=dict)
    animating: bool = False
    width: int = 0
    height: int = 0
    missingLayers: list[str] = Field(default_factory=list)
