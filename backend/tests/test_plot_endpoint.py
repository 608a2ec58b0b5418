from __future__ import annotations

import asyncio

from fastapi.testclient import TestClient

import main
from fakes import CA, CA_2024, NV, STATION_A, STATION_B, CountingSource, not_found
from interaction.router import InteractionRouter
from layers.types import TotalsRecord
from sources.cache import DatasetCache
from sources.datasets import BOUNDARIES, COVERAGE, STATIONS, TOTALS
from sources.hooks import DatasetHooks
from telemetry.singleton import reset_store

RECORDS = {
    BOUNDARIES.identifier: (CA, NV),
    STATIONS.identifier: (STATION_A, STATION_B),
    COVERAGE.identifier: (CA_2024,),
    TOTALS.identifier: TotalsRecord(
        year=2024, total_stations=61234, fast_stations=9876, regions_covered=51
    ),
}


def _client(monkeypatch, source: CountingSource) -> TestClient:
    hooks = DatasetHooks(source, cache=DatasetCache())
    monkeypatch.setattr(main, "_build_hooks", lambda http: hooks)
    return TestClient(main.app)


def test_health():
    client = TestClient(main.app)
    assert client.get("/health").json() == {"status": "ok"}


def test_plot_endpoint_returns_plot_payload(monkeypatch):
    source = CountingSource(RECORDS)
    with _client(monkeypatch, source) as client:
        resp = client.post(
            "/plot",
            json={"view": {"center": {"lat": 38.0, "lon": -120.0}, "zoom": 5.0}},
        )

    assert resp.status_code == 200
    data = resp.json()
    assert set(data.keys()) == {"data", "layout"}
    assert data["layout"]["mapbox"]["center"] == {"lat": 38.0, "lon": -120.0}

    meta = data["layout"]["meta"]
    assert meta["layers"] == ["boundaries", "coverage", "stations"]
    assert meta["year"] == 2024
    assert meta["selection"] is None
    assert meta["stats"]["renderedRegions"] == 2
    assert meta["stats"]["renderedStations"] == 2
    assert set(meta["stats"]["timingsMs"]) == {"load", "compose"}

    traces = data["data"]
    assert [t["meta"]["layerId"] for t in traces] == [
        "boundaries",
        "coverage",
        "coverage",
        "stations",
    ]
    ca_fill = traces[1]
    assert ca_fill["fillcolor"] == "rgba(64, 173, 119, 0.667)"
    assert set(c for c in ca_fill["customdata"] if c is not None) == {0}
    assert traces[3]["customdata"] == [0, 1]
    assert source.calls == {
        BOUNDARIES.identifier: 1,
        STATIONS.identifier: 1,
        COVERAGE.identifier: 1,
    }


def test_plot_with_selection_draws_highlight_last(monkeypatch):
    with _client(monkeypatch, CountingSource(RECORDS)) as client:
        resp = client.post("/plot", json={"selection": {"layerId": "stations", "index": 1}})

    assert resp.status_code == 200
    data = resp.json()
    assert data["layout"]["meta"]["selection"] == {"layerId": "stations", "index": 1}
    last = data["data"][-1]
    assert last["meta"]["layerId"] == "highlight"
    assert last["text"] == ["Beta"]


def test_repeated_plots_reuse_cached_datasets(monkeypatch):
    source = CountingSource(RECORDS)
    with _client(monkeypatch, source) as client:
        assert client.post("/plot", json={}).status_code == 200
        assert client.post("/plot", json={"year": 2024}).status_code == 200
    assert set(source.calls.values()) == {1}


def test_pick_routes_against_the_last_rendered_layers(monkeypatch):
    with _client(monkeypatch, CountingSource(RECORDS)) as client:
        client.post("/plot", json={})

        picked = client.post("/pick", json={"layerId": "stations", "index": 1}).json()
        assert picked["event"] == "select"
        assert picked["selection"] == {"layerId": "stations", "index": 1}
        assert picked["reference"]["type"] == "station"
        assert picked["reference"]["record"]["name"] == "Beta"
        assert picked["reference"]["record"]["connectors"] == ["J1772"]

        hover = client.post(
            "/pick", json={"layerId": "coverage", "index": 0, "kind": "hover"}
        ).json()
        assert hover["event"] == "hover"
        assert hover["reference"] == {
            "type": "region",
            "layerId": "coverage",
            "index": 0,
            "record": {"name": "CA"},
        }

        missing = client.post("/pick", json={"layerId": "stations", "index": 99}).json()
        assert missing == {"event": "clear", "reference": None, "selection": None}

        background = client.post("/pick", json={"lon": 6.0, "lat": 1.0}).json()
        assert background["event"] == "select"
        assert background["selection"] == {"layerId": "boundaries", "index": 1}


def test_dashboard_tiles(monkeypatch):
    source = CountingSource(RECORDS)
    with _client(monkeypatch, source) as client:
        resp = client.get("/dashboard")

    assert resp.status_code == 200
    body = resp.json()
    assert body["year"] == 2024
    assert body["tiles"] == [
        {"label": "Total Stations", "value": "61,234"},
        {"label": "DC Fast", "value": "9,876"},
        {"label": "States Covered", "value": "51"},
    ]
    assert source.calls == {TOTALS.identifier: 1}


def test_failed_dataset_is_reported_and_recoverable(monkeypatch):
    source = CountingSource(
        RECORDS, failures={STATIONS.identifier: not_found(STATIONS.identifier)}
    )
    with _client(monkeypatch, source) as client:
        resp = client.post("/plot", json={})
        assert resp.status_code == 502
        body = resp.json()
        assert body["error"] == "NetworkError"
        assert body["identifier"] == "data/stations.geo.json"
        assert body["status"] == 404
        assert body["retry"] == "/datasets/reload"
        assert "data/stations.geo.json" in body["message"]

        status = {d["name"]: d["status"] for d in client.get("/datasets").json()["datasets"]}
        assert status["stations"] == "error"
        assert status["totals"] == "absent"

        source.failures.clear()
        assert client.post("/datasets/reload").json() == {"epoch": 1}
        assert client.post("/plot", json={}).status_code == 200


def test_invalid_view_is_rejected(monkeypatch):
    with _client(monkeypatch, CountingSource(RECORDS)) as client:
        resp = client.post(
            "/plot", json={"view": {"center": {"lat": 120.0, "lon": 0.0}, "zoom": 3.0}}
        )
    assert resp.status_code == 422


def _on_event_loop() -> bool:
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return False
    return True


def test_cache_and_router_are_only_used_on_the_event_loop(monkeypatch):
    seen: list[tuple[str, bool]] = []

    def spy(cls, name):
        real = getattr(cls, name)

        def wrapper(self, *args, **kwargs):
            seen.append((name, _on_event_loop()))
            return real(self, *args, **kwargs)

        monkeypatch.setattr(cls, name, wrapper)

    spy(DatasetCache, "state")
    spy(DatasetCache, "invalidate")
    spy(InteractionRouter, "bind")
    spy(InteractionRouter, "dispatch")

    with _client(monkeypatch, CountingSource(RECORDS)) as client:
        client.post("/plot", json={})
        client.post("/pick", json={"layerId": "stations", "index": 0})
        client.get("/datasets")
        client.post("/datasets/reload")

    assert {name for name, _ in seen} == {"state", "invalidate", "bind", "dispatch"}
    assert all(on_loop for _, on_loop in seen)


def test_picks_resolve_against_each_sessions_own_render(monkeypatch):
    with _client(monkeypatch, CountingSource(RECORDS)) as client:
        client.post(
            "/plot", json={"session": "a", "selection": {"layerId": "stations", "index": 1}}
        )
        client.post("/plot", json={"session": "b"})

        mine = client.post("/pick", json={"session": "a", "layerId": "highlight", "index": 0})
        theirs = client.post("/pick", json={"session": "b", "layerId": "highlight", "index": 0})

    assert mine.json()["event"] == "select"
    assert mine.json()["selection"] == {"layerId": "stations", "index": 1}
    assert mine.json()["reference"]["record"]["name"] == "Beta"
    assert theirs.json() == {"event": "clear", "reference": None, "selection": None}


def test_startup_opens_the_telemetry_store(tmp_path, monkeypatch):
    db_path = tmp_path / "telemetry.duckdb"
    monkeypatch.setenv("EVVIZ_TELEMETRY_PATH", str(db_path))
    monkeypatch.setenv("EVVIZ_TELEMETRY", "1")
    try:
        with _client(monkeypatch, CountingSource(RECORDS)) as client:
            assert db_path.exists()
            assert client.post("/plot", json={}).status_code == 200
    finally:
        reset_store()
