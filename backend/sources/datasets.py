from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable
from urllib.parse import urlsplit

from sources.errors import UnknownDatasetError
from sources.schemas import (
    decode_boundaries,
    decode_coverage,
    decode_stations,
    decode_totals,
)


@dataclass(frozen=True)
class DatasetSpec:
    """
    A logical dataset: its stable identifier (also the cache key) and the decoder
    that turns the raw document into typed records.
    """

    name: str
    identifier: str
    decode: Callable[[str, Any], Any]


BOUNDARIES = DatasetSpec(
    name="boundaries",
    identifier="data/us_states.geojson",
    decode=decode_boundaries,
)
STATIONS = DatasetSpec(
    name="stations",
    identifier="data/stations.geo.json",
    decode=decode_stations,
)
COVERAGE = DatasetSpec(
    name="coverage",
    identifier="data/coverage_scores.json",
    decode=decode_coverage,
)
TOTALS = DatasetSpec(
    name="totals",
    identifier="data/infra_totals.json",
    decode=decode_totals,
)

DATASETS: dict[str, DatasetSpec] = {
    spec.identifier: spec for spec in (BOUNDARIES, STATIONS, COVERAGE, TOTALS)
}

# Datasets each view needs before it can render.
VIEWS: dict[str, tuple[DatasetSpec, ...]] = {
    "map": (BOUNDARIES, STATIONS, COVERAGE),
    "dashboard": (TOTALS,),
}


def get_dataset(identifier: str) -> DatasetSpec:
    key = (identifier or "").strip()
    spec = DATASETS.get(key)
    if spec is None:
        parts = urlsplit(key)
        if parts.scheme in ("http", "https"):
            # An absolute locator (e.g. a CDN copy) names its dataset by path suffix.
            spec = next(
                (s for s in DATASETS.values() if parts.path.endswith("/" + s.identifier)),
                None,
            )
    if spec is None:
        raise UnknownDatasetError(identifier)
    return spec
