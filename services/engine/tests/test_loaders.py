from __future__ import annotations

import asyncio
from pathlib import Path

import numpy as np
from PIL import Image

from sahel_atlas_engine.loaders import TiffRasterLoader, compute_value_range, raster_path
from sahel_atlas_engine.models import DatasetKind
from sahel_atlas_engine.modules.color_mapping import DEFAULT_VALUE_RANGES


def _write_tiff(path: Path, array: np.ndarray) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.fromarray(array).save(path, format="TIFF")


def test_raster_paths_follow_dataset_layout(tmp_path: Path):
    assert raster_path(tmp_path, DatasetKind.land_cover, 2012) == tmp_path / "Modis_Land_Cover_Data" / "2012LCT.tif"
    assert raster_path(tmp_path, DatasetKind.precipitation, 2019) == tmp_path / "Climate_Precipitation_Data" / "2019R.tif"
    assert raster_path(tmp_path, DatasetKind.vegetation, 2020) == (
        tmp_path / "MODIS_Gross_Primary_Production_GPP" / "2020_GP.tif"
    )
    assert raster_path(tmp_path, DatasetKind.population, 2012) == (
        tmp_path / "Gridded_Population_Density_Data" / "Assaba_Pop_2010.tif"
    )
    assert raster_path(tmp_path, DatasetKind.road_network, 0) == tmp_path / "Vector_Layers" / "roadNetwork.tif"


def test_value_range_skips_no_data_cells():
    cells = np.array([65533.0, 0.0, 250.0, 1200.0, 3100.0])

    assert compute_value_range(DatasetKind.vegetation, cells) == (250.0, 1200.0)
    assert compute_value_range(DatasetKind.land_cover, cells) == (None, None)
    assert compute_value_range(DatasetKind.precipitation, np.zeros(3)) == DEFAULT_VALUE_RANGES[DatasetKind.precipitation]


def test_loader_decodes_first_band(tmp_path: Path):
    array = np.array([[7, 8, 9], [10, 16, 0]], dtype=np.uint8)
    _write_tiff(tmp_path / "Modis_Land_Cover_Data" / "2010LCT.tif", array)

    frame = asyncio.run(TiffRasterLoader(tmp_path)(2010, DatasetKind.land_cover))

    assert (frame.width, frame.height) == (3, 2)
    assert frame.cells.tolist() == [7.0, 8.0, 9.0, 10.0, 16.0, 0.0]
    assert frame.value_range == (None, None)


def test_loader_records_continuous_range(tmp_path: Path):
    array = np.array([[0.0, 12.5], [300.0, 80.0]], dtype=np.float32)
    _write_tiff(tmp_path / "Climate_Precipitation_Data" / "2014R.tif", array)

    frame = TiffRasterLoader(tmp_path).load_sync(2014, DatasetKind.precipitation)

    assert frame.value_range == (12.5, 300.0)


def test_unreadable_file_yields_empty_frame(tmp_path: Path):
    broken = tmp_path / "Modis_Land_Cover_Data" / "2011LCT.tif"
    broken.parent.mkdir(parents=True)
    broken.write_bytes(b"not a tiff")
    loader = TiffRasterLoader(tmp_path)

    assert loader.load_sync(2011, DatasetKind.land_cover).is_empty
    assert loader.load_sync(2013, DatasetKind.land_cover).is_empty
