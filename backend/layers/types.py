from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Literal, TypeAlias, Union


GeometryKind = Literal["points", "polygons"]
LayerId = Literal["boundaries", "coverage", "stations", "highlight"]

Ring: TypeAlias = tuple[tuple[float, float], ...]  # ((lon, lat), ...)
PolygonRings: TypeAlias = tuple[Ring, ...]  # (outer_ring, *holes)
RGBA: TypeAlias = tuple[int, int, int, int]


@dataclass(frozen=True)
class BoundaryRecord:
    """
    A named region (US state) with its Polygon/MultiPolygon geometry.

    `coordinates` is kept exactly as decoded from GeoJSON (tuples instead of lists)
    so the composer can forward it unchanged.
    """

    name: str
    geometry_type: Literal["Polygon", "MultiPolygon"]
    coordinates: tuple[Any, ...]

    def polygons(self) -> tuple[PolygonRings, ...]:
        if self.geometry_type == "Polygon":
            return (self.coordinates,)
        return self.coordinates

    def geometry(self) -> dict[str, Any]:
        return {"type": self.geometry_type, "coordinates": self.coordinates}


@dataclass(frozen=True)
class StationRecord:
    name: str
    lon: float
    lat: float
    network: str | None = None
    open_date: str | None = None
    connectors: tuple[str, ...] = ()
    pricing: str | None = None
    level: str | None = None

    def geometry(self) -> dict[str, Any]:
        return {"type": "Point", "coordinates": (self.lon, self.lat)}


@dataclass(frozen=True)
class CoverageRecord:
    region: str
    year: int
    coverage_pct: float
    readiness_tier: str
    stations_per_million: float


@dataclass(frozen=True)
class TotalsRecord:
    year: int
    total_stations: int
    fast_stations: int
    regions_covered: int


Record: TypeAlias = Union[BoundaryRecord, StationRecord]


@dataclass(frozen=True)
class FeatureRef:
    """Reference to a feature by (layer, position in the layer's record array)."""

    layer_id: str
    index: int


@dataclass(frozen=True)
class ViewState:
    """
    Camera + selection state owned by the presentation layer.

    The composer only reads it.
    """

    longitude: float = -98.5
    latitude: float = 39.8
    zoom: float = 3.5
    pitch: float = 0.0
    bearing: float = 0.0
    selection: FeatureRef | None = None
    # Coverage year to display; None means "latest year present in the data".
    year: int | None = None

    def with_selection(self, selection: FeatureRef | None) -> "ViewState":
        return replace(self, selection=selection)


@dataclass(frozen=True)
class FeatureStyle:
    fill_color: RGBA | None = None
    line_color: RGBA | None = None
    line_width: float = 1.0
    radius: float | None = None
    opacity: float = 1.0
    tooltip: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "fillColor": list(self.fill_color) if self.fill_color else None,
            "lineColor": list(self.line_color) if self.line_color else None,
            "lineWidth": self.line_width,
            "radius": self.radius,
            "opacity": self.opacity,
            "tooltip": self.tooltip,
        }


@dataclass(frozen=True)
class LayerDescriptor:
    """
    A renderable layer independent of the rendering technology.

    `records[i]` and `styles[i]` describe the same feature; `records` is the exact
    array handed to the composer for this layer, so a picked index maps straight
    back to a domain record.
    """

    id: LayerId
    kind: GeometryKind
    title: str
    records: tuple[Record, ...]
    styles: tuple[FeatureStyle, ...]
    hoverable: bool = True
    clickable: bool = True
    # Only set on the highlight overlay: where the highlighted record lives.
    origin: FeatureRef | None = None
    meta: dict[str, Any] = field(default_factory=dict, compare=True, hash=False)

    def geometries(self) -> list[dict[str, Any]]:
        return [r.geometry() for r in self.records]

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "kind": self.kind,
            "title": self.title,
            "hoverable": self.hoverable,
            "clickable": self.clickable,
            "origin": (
                {"layerId": self.origin.layer_id, "index": self.origin.index}
                if self.origin is not None
                else None
            ),
            "features": [
                {"geometry": g, "style": s.to_dict()}
                for g, s in zip(self.geometries(), self.styles)
            ],
            "meta": dict(self.meta),
        }
