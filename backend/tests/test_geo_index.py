from __future__ import annotations

from shapely.geometry import MultiPolygon

from fakes import CA, NV, STATION_A, STATION_B
from geo.index import build_region_index, region_geometry
from layers.types import BoundaryRecord, StationRecord


def test_region_at_returns_position_in_boundary_array():
    idx = build_region_index((CA, NV))
    assert idx.region_at(1.0, 1.0) == 0
    assert idx.region_at(6.0, 2.0) == 1
    assert idx.region_at(20.0, 20.0) is None


def test_shared_border_resolves_to_lowest_position():
    idx = build_region_index((CA, NV))
    assert idx.region_at(4.0, 2.0) == 0


def test_count_points_per_region():
    far = StationRecord(name="Far", lon=50.0, lat=50.0)
    nv_station = StationRecord(name="Reno", lon=7.5, lat=3.5)
    counts = build_region_index((CA, NV)).count_points((STATION_A, STATION_B, far, nv_station))
    assert counts == (2, 1)


def test_multipolygon_regions_and_holes():
    islands = BoundaryRecord(
        name="HI",
        geometry_type="MultiPolygon",
        coordinates=(
            (((10.0, 10.0), (11.0, 10.0), (11.0, 11.0), (10.0, 10.0)),),
            (((12.0, 12.0), (14.0, 12.0), (14.0, 14.0), (12.0, 14.0), (12.0, 12.0)),),
        ),
    )
    geom = region_geometry(islands)
    assert isinstance(geom, MultiPolygon)
    assert len(geom.geoms) == 2

    donut = BoundaryRecord(
        name="Donut",
        geometry_type="Polygon",
        coordinates=(
            ((0.0, 0.0), (10.0, 0.0), (10.0, 10.0), (0.0, 10.0), (0.0, 0.0)),
            ((4.0, 4.0), (6.0, 4.0), (6.0, 6.0), (4.0, 6.0), (4.0, 4.0)),
        ),
    )
    idx = build_region_index((donut, islands))
    assert idx.region_at(1.0, 1.0) == 0
    assert idx.region_at(5.0, 5.0) is None
    assert idx.region_at(13.0, 13.0) == 1


def test_self_intersecting_ring_is_repaired():
    bowtie = BoundaryRecord(
        name="Bowtie",
        geometry_type="Polygon",
        coordinates=(((0.0, 0.0), (2.0, 2.0), (2.0, 0.0), (0.0, 2.0), (0.0, 0.0)),),
    )
    geom = region_geometry(bowtie)
    assert geom.is_valid
    assert not geom.is_empty


def test_degenerate_geometry_is_empty_and_never_matches():
    sliver = BoundaryRecord(name="Sliver", geometry_type="Polygon", coordinates=(((0.0, 0.0), (1.0, 1.0)),))
    assert region_geometry(sliver).is_empty
    idx = build_region_index((sliver, NV))
    assert idx.region_at(0.5, 0.5) is None
    assert idx.region_at(5.0, 1.0) == 1
