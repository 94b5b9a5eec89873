from __future__ import annotations

import csv
import math
from pathlib import Path
from typing import Any

from .logging_config import get_logger
from .modules.color_mapping import LAND_COVER_CLASSES
from .modules.temporal import POPULATION_YEARS, STANDARD_YEARS, nearest_available_year
from .utils import round_half_up

LOGGER = get_logger(__name__)

PRECIPITATION_REGIONS = ("Overall", "South", "Center", "North")
# CSV values are normalized 0..1 and presented in millimetres.
PRECIPITATION_CSV_SCALE = 1000.0

FALLBACK_PRECIPITATION_BY_REGION: tuple[dict[str, float], ...] = (
    {"year": 2010, "Overall": 497, "South": 496, "Center": 496, "North": 501},
    {"year": 2011, "Overall": 504, "South": 512, "Center": 505, "North": 496},
    {"year": 2012, "Overall": 496, "South": 497, "Center": 497, "North": 494},
    {"year": 2013, "Overall": 498, "South": 503, "Center": 499, "North": 494},
    {"year": 2014, "Overall": 506, "South": 501, "Center": 505, "North": 512},
    {"year": 2015, "Overall": 499, "South": 497, "Center": 499, "North": 501},
    {"year": 2016, "Overall": 503, "South": 504, "Center": 507, "North": 499},
    {"year": 2017, "Overall": 499, "South": 498, "Center": 500, "North": 500},
    {"year": 2018, "Overall": 502, "South": 496, "Center": 505, "North": 504},
    {"year": 2019, "Overall": 499, "South": 500, "Center": 496, "North": 502},
    {"year": 2020, "Overall": 498, "South": 503, "Center": 498, "North": 494},
    {"year": 2021, "Overall": 503, "South": 506, "Center": 497, "North": 505},
    {"year": 2022, "Overall": 497, "South": 498, "Center": 492, "North": 500},
    {"year": 2023, "Overall": 495, "South": 498, "Center": 496, "North": 493},
)

FALLBACK_LAND_COVER_SERIES: tuple[dict[str, float], ...] = (
    {"year": 2010, "Forests": 2561, "Grasslands": 124304, "Barren": 41332},
    {"year": 2023, "Forests": 522, "Grasslands": 123142, "Barren": 44540},
)

# (annual, dry season, wet season) rainfall in millimetres.
RAINFALL_BY_YEAR: dict[int, tuple[float, float, float]] = {
    2010: (242.3, 33.1, 209.2),
    2011: (235.6, 31.8, 203.8),
    2012: (231.4, 30.2, 201.2),
    2013: (228.7, 29.8, 198.9),
    2014: (226.5, 28.7, 197.8),
    2015: (223.1, 27.9, 195.2),
    2016: (220.3, 26.4, 193.9),
    2017: (216.8, 25.1, 191.7),
    2018: (212.5, 24.3, 188.2),
    2019: (208.6, 23.7, 184.9),
    2020: (204.7, 22.4, 182.3),
    2021: (199.2, 20.8, 178.4),
    2022: (195.8, 19.7, 176.1),
    2023: (193.1, 18.2, 174.9),
}
RAINFALL_REFERENCE_YEAR = 2023

POPULATION_ANCHORS: dict[int, dict[str, float]] = {
    2010: {
        "Total Population": 321500,
        "Urban Population": 89000,
        "Rural Population": 232500,
        "Population Density": 18.4,
        "Population Under 15": 141460,
        "Population Over 65": 9645,
        "Growth Rate": 3.3,
    },
    2015: {
        "Total Population": 378200,
        "Urban Population": 114000,
        "Rural Population": 264200,
        "Population Density": 21.6,
        "Population Under 15": 166408,
        "Population Over 65": 11346,
        "Growth Rate": 3.1,
    },
    2020: {
        "Total Population": 442800,
        "Urban Population": 146000,
        "Rural Population": 296800,
        "Population Density": 25.3,
        "Population Under 15": 194832,
        "Population Over 65": 13284,
        "Growth Rate": 2.9,
    },
}

# Relative growth multipliers applied to the anchor growth adjustment.
POPULATION_COHORT_GROWTH = {
    "Total Population": 1.0,
    "Urban Population": 1.2,
    "Rural Population": 0.9,
    "Population Under 15": 1.05,
    "Population Over 65": 0.8,
}
POPULATION_GROWTH_RATE_DECLINE_PER_YEAR = 0.03


def rainfall_profile(year: int) -> dict[str, float]:
    annual, dry, wet = RAINFALL_BY_YEAR.get(year, RAINFALL_BY_YEAR[RAINFALL_REFERENCE_YEAR])
    years_back = RAINFALL_REFERENCE_YEAR - year
    recent_weight = (14 - years_back) if years_back < 14 else 0
    return {
        "annual": annual,
        "dryseason": dry,
        "wetseason": wet,
        "extremeEvents": round_half_up(3 + recent_weight * 0.5),
        "waterStressIndex": round_half_up(38 + recent_weight * 2.5),
    }


def precipitation_series() -> list[dict[str, float]]:
    rows: list[dict[str, float]] = []
    for year in STANDARD_YEARS:
        profile = rainfall_profile(year)
        rows.append(
            {
                "year": year,
                "Annual": profile["annual"],
                "Dry Season": profile["dryseason"],
                "Wet Season": profile["wetseason"],
                "Extreme Events": profile["extremeEvents"],
                "Water Stress Index": profile["waterStressIndex"],
            }
        )
    return rows


def vegetation_series() -> list[dict[str, float]]:
    rows: list[dict[str, float]] = []
    for year in STANDARD_YEARS:
        base_gpp = 980 + (year - 2010) * 15
        variation = math.sin((year - 2010) * 0.7) * 50
        rows.append(
            {
                "year": year,
                "Forest": base_gpp + variation + 300,
                "Grassland": base_gpp + variation * 0.8 + 50,
                "Cropland": base_gpp + variation * 1.2 + 100,
                "Shrubland": base_gpp + variation * 0.6 - 50,
                "Total": base_gpp + variation + 100,
                "AnnualChange": 1.5 + math.sin((year - 2010) * 0.5) * 1.2,
            }
        )
    return rows


def population_series() -> list[dict[str, float]]:
    rows: list[dict[str, float]] = []
    for year in STANDARD_YEARS:
        if year in POPULATION_ANCHORS:
            rows.append({"year": year, **POPULATION_ANCHORS[year]})
            continue

        anchor_year = nearest_available_year(year, POPULATION_YEARS)
        anchor = POPULATION_ANCHORS[anchor_year]
        year_diff = year - anchor_year
        adjustment = year_diff * (anchor["Growth Rate"] / 100)

        row: dict[str, float] = {"year": year}
        for column, multiplier in POPULATION_COHORT_GROWTH.items():
            row[column] = round_half_up(anchor[column] * (1 + adjustment * multiplier))
        row["Population Density"] = round(anchor["Population Density"] * (1 + adjustment), 1)
        row["Growth Rate"] = round(anchor["Growth Rate"] - year_diff * POPULATION_GROWTH_RATE_DECLINE_PER_YEAR, 1)
        rows.append(row)
    return rows


class TimeSeriesRepository:
    """Pre-aggregated chart series; a missing or unreadable CSV falls back to a fixed table."""

    def __init__(self, data_root: Path):
        self.graph_dir = data_root / "Graph_data"

    def precipitation_by_region(self) -> list[dict[str, float]]:
        path = self.graph_dir / "precipitation_averages.csv"
        try:
            rows = self._read_rows(path)
            parsed = [
                {
                    "year": int(row[0]),
                    **{
                        region: float(value) * PRECIPITATION_CSV_SCALE
                        for region, value in zip(PRECIPITATION_REGIONS, row[1:5])
                    },
                }
                for row in rows[1:]
            ]
        except (OSError, ValueError, IndexError) as exc:
            LOGGER.warning("precipitation csv unavailable, using fallback table", extra={"path": str(path), "error": str(exc)})
            return [dict(row) for row in FALLBACK_PRECIPITATION_BY_REGION]
        return sorted(parsed, key=lambda item: item["year"])

    def land_cover_series(self) -> list[dict[str, float]]:
        path = self.graph_dir / "land_cover_values.csv"
        try:
            rows = self._read_rows(path)
            header = rows[0]
            class_names = [self._class_name(column) for column in header[1:]]
            parsed: list[dict[str, float]] = []
            for row in rows[1:]:
                entry: dict[str, float] = {"year": int(row[0])}
                for name, value in zip(class_names, row[1:]):
                    entry[name] = int(float(value))
                parsed.append(entry)
        except (OSError, ValueError, IndexError) as exc:
            LOGGER.warning("land cover csv unavailable, using fallback table", extra={"path": str(path), "error": str(exc)})
            return [dict(row) for row in FALLBACK_LAND_COVER_SERIES]
        if not parsed:
            return [dict(row) for row in FALLBACK_LAND_COVER_SERIES]
        return sorted(parsed, key=lambda item: item["year"])

    def series(self, name: str) -> list[dict[str, Any]]:
        builders = {
            "precipitation-regions": self.precipitation_by_region,
            "precipitation": precipitation_series,
            "land-cover": self.land_cover_series,
            "vegetation": vegetation_series,
            "population": population_series,
        }
        builder = builders.get(name)
        if builder is None:
            raise KeyError(name)
        return builder()

    @staticmethod
    def _class_name(column: str) -> str:
        code = int(column.strip().split("_")[1])
        return LAND_COVER_CLASSES.get(code, f"Class {code}")

    @staticmethod
    def _read_rows(path: Path) -> list[list[str]]:
        with path.open("r", encoding="utf-8", newline="") as handle:
            rows = [row for row in csv.reader(handle) if any(cell.strip() for cell in row)]
        if not rows:
            raise ValueError(f"{path.name} is empty")
        return rows
