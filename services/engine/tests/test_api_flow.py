from __future__ import annotations

import time

from fastapi.testclient import TestClient

from conftest import FakeLoader

from sahel_atlas_engine.api import create_app
from sahel_atlas_engine.models import DatasetKind
from sahel_atlas_engine.modules.temporal import OVERLAY_YEAR
from sahel_atlas_engine.settings import Settings


def _wait_for_settled(client: TestClient, timeout_s: float = 10.0):
    deadline = time.time() + timeout_s
    while time.time() < deadline:
        response = client.get("/v1/view")
        response.raise_for_status()
        payload = response.json()
        if not payload["animating"]:
            return payload
        time.sleep(0.05)
    raise TimeoutError("transition did not settle in time")


def _seeded_loader() -> FakeLoader:
    loader = FakeLoader()
    size = 16 * 8
    loader.add(DatasetKind.land_cover, 2010, [7] * size, width=16, height=8)
    loader.add(DatasetKind.land_cover, 2015, [12] * size, width=16, height=8)
    loader.add(DatasetKind.road_network, OVERLAY_YEAR, [1] + [0] * (size - 1), width=16, height=8)
    return loader


def test_end_to_end_view_flow(tmp_path):
    app = create_app(Settings(data_root=tmp_path), loader=_seeded_loader())

    with TestClient(app) as client:
        assert client.get("/health").json() == {"status": "ok"}

        datasets = client.get("/v1/datasets")
        datasets.raise_for_status()
        by_kind = {item["kind"]: item for item in datasets.json()}
        assert by_kind["population"]["availableYears"] == [2010, 2015, 2020]
        assert by_kind["roadNetwork"]["role"] == "overlay"

        first = client.post("/v1/view", json={"year": 2010})
        first.raise_for_status()
        assert first.json()["animating"] is False
        assert first.json()["stats"]["7"] == 128

        second = client.post("/v1/view", json={"year": 2013})
        second.raise_for_status()
        assert second.json()["query"] == {"before": 2010, "after": 2015, "progress": 0.6}

        settled = _wait_for_settled(client)
        assert settled["year"] == 2013
        assert settled["stats"]["7"] + settled["stats"]["12"] == 128

        toggled = client.post("/v1/composite/overlays/roadNetwork/toggle")
        toggled.raise_for_status()
        assert toggled.json()["overlays"] == ["roadNetwork"]

        composite = client.get("/v1/composite").json()
        assert composite == {"baseDataset": "landCover", "overlays": ["roadNetwork"]}

        image = client.get("/v1/view/image.png")
        assert image.status_code == 200
        assert image.headers["content-type"] == "image/png"
        assert image.content.startswith(b"\x89PNG")

        notices = client.get("/v1/notices").json()
        assert any(notice["title"] == "Error loading landCover data" for notice in notices)

        cached = {item["kind"]: item for item in client.get("/v1/datasets").json()}
        assert cached["landCover"]["cachedYears"] == [2010, 2015]


def test_rejects_invalid_layer_requests(tmp_path):
    app = create_app(Settings(data_root=tmp_path), loader=_seeded_loader())

    with TestClient(app) as client:
        assert client.get("/v1/view/image.png").status_code == 404
        assert client.post("/v1/composite/overlays/landCover/toggle").status_code == 400
        assert client.post("/v1/composite/overlays/glaciers/toggle").status_code == 404
        assert client.put("/v1/composite/base", json={"kind": "riverNetwork"}).status_code == 422
        assert client.post("/v1/view", json={"year": 2012, "dataset": "roadNetwork"}).status_code == 422
        assert client.get("/v1/timeseries/soil-moisture").status_code == 404


def test_base_switch_and_supporting_endpoints(tmp_path):
    loader = _seeded_loader()
    loader.add(DatasetKind.population, 2015, [0.0, 40.0, 100.0, -1.0], width=2, height=2)
    app = create_app(Settings(data_root=tmp_path), loader=loader)

    with TestClient(app) as client:
        client.post("/v1/view", json={"year": 2015}).raise_for_status()

        switched = client.put("/v1/composite/base", json={"kind": "population"})
        switched.raise_for_status()
        payload = switched.json()
        assert payload["dataset"] == "population"
        assert payload["animating"] is False
        assert payload["stats"]["totalPopulation"] == 14

        temporal = client.get("/v1/temporal", params={"kind": "population", "year": 2016})
        assert temporal.json() == {"before": 2015, "after": 2020, "progress": 0.2}

        preload = client.post("/v1/datasets/population/preload").json()
        assert preload["statuses"] == {"2010": "failed", "2015": "cached", "2020": "failed"}

        series = client.get("/v1/timeseries/precipitation-regions")
        series.raise_for_status()
        assert len(series.json()) == 14
