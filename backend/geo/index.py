from __future__ import annotations

from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Iterable

from shapely.errors import GEOSException
from shapely.geometry import MultiPolygon, Point, Polygon
from shapely.strtree import STRtree

from layers.types import BoundaryRecord, PolygonRings, StationRecord


@dataclass
class RegionIndex:
    """
    STRtree over region polygons (EPSG:4326, lon/lat degrees).

    Positions returned by the index are positions in `boundaries`, i.e. the same
    positional indexes the composer emits for the boundary layers.
    """

    boundaries: tuple[BoundaryRecord, ...]
    _geoms: list[Polygon | MultiPolygon] = field(default_factory=list, repr=False)
    _tree: STRtree | None = field(default=None, repr=False)

    def region_at(self, lon: float, lat: float) -> int | None:
        if self._tree is None or not self._geoms:
            return None
        pt = Point(float(lon), float(lat))
        hits = sorted(_to_int_list(self._tree.query(pt, predicate="intersects")))
        # Overlapping regions are not expected; the lowest position wins.
        return hits[0] if hits else None

    def count_points(self, stations: Iterable[StationRecord]) -> tuple[int, ...]:
        counts = [0] * len(self.boundaries)
        for s in stations:
            i = self.region_at(s.lon, s.lat)
            if i is not None:
                counts[i] += 1
        return tuple(counts)


def _polygon(rings: PolygonRings) -> Polygon | None:
    if not rings or len(rings[0]) < 3:
        return None
    holes = [r for r in rings[1:] if len(r) >= 3]
    try:
        poly = Polygon(rings[0], holes)
        if not poly.is_valid:
            poly = poly.buffer(0)
    except (ValueError, GEOSException):
        return None
    return poly if not poly.is_empty else None


def region_geometry(record: BoundaryRecord) -> Polygon | MultiPolygon:
    polys = [p for p in (_polygon(r) for r in record.polygons()) if p is not None]
    if not polys:
        return Polygon()
    if len(polys) == 1:
        return polys[0]
    parts: list[Polygon] = []
    for p in polys:
        # buffer(0) can turn a self-intersecting ring into a MultiPolygon.
        parts.extend(p.geoms if isinstance(p, MultiPolygon) else [p])
    return MultiPolygon(parts)


@lru_cache(maxsize=4)
def build_region_index(boundaries: tuple[BoundaryRecord, ...]) -> RegionIndex:
    geoms = [region_geometry(b) for b in boundaries]
    idx = RegionIndex(boundaries=boundaries, _geoms=geoms)
    idx._tree = STRtree(geoms) if geoms else None
    return idx


def _to_int_list(idxs: Any) -> list[int]:
    if idxs is None:
        return []
    return [int(i) for i in idxs]
