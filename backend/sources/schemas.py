from __future__ import annotations

from typing import Any, Literal

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    RootModel,
    ValidationError,
    field_validator,
    model_validator,
)

from layers.types import (
    BoundaryRecord,
    CoverageRecord,
    StationRecord,
    TotalsRecord,
)
from sources.errors import ParseError


def _position(p: Any) -> tuple[float, float]:
    if not isinstance(p, (list, tuple)) or len(p) < 2:
        raise ValueError(f"invalid position: {p!r}")
    return float(p[0]), float(p[1])


def _ring(ring: Any) -> tuple[tuple[float, float], ...]:
    if not isinstance(ring, (list, tuple)):
        raise ValueError("ring must be an array of positions")
    return tuple(_position(p) for p in ring)


def _polygon(rings: Any) -> tuple[tuple[tuple[float, float], ...], ...]:
    if not isinstance(rings, (list, tuple)) or not rings:
        raise ValueError("polygon must be a non-empty array of rings")
    return tuple(_ring(r) for r in rings)


class PolygonGeometry(BaseModel):
    type: Literal["Polygon", "MultiPolygon"]
    coordinates: Any

    @model_validator(mode="after")
    def _coerce_coordinates(self) -> "PolygonGeometry":
        if self.type == "Polygon":
            self.coordinates = _polygon(self.coordinates)
        else:
            if not isinstance(self.coordinates, (list, tuple)) or not self.coordinates:
                raise ValueError("MultiPolygon must contain at least one polygon")
            self.coordinates = tuple(_polygon(p) for p in self.coordinates)
        return self


class BoundaryProperties(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str = Field(validation_alias=AliasChoices("name", "NAME", "state"))


class BoundaryFeature(BaseModel):
    geometry: PolygonGeometry
    properties: BoundaryProperties


class BoundaryCollection(BaseModel):
    type: Literal["FeatureCollection"] = "FeatureCollection"
    features: list[BoundaryFeature]

    def to_records(self) -> tuple[BoundaryRecord, ...]:
        return tuple(
            BoundaryRecord(
                name=f.properties.name,
                geometry_type=f.geometry.type,
                coordinates=f.geometry.coordinates,
            )
            for f in self.features
        )


class PointGeometry(BaseModel):
    type: Literal["Point"]
    coordinates: list[float] = Field(min_length=2)


class StationProperties(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str
    network: str | None = None
    open_date: str | None = None
    connectors: tuple[str, ...] = ()
    pricing: str | None = None
    level: str | None = None

    @field_validator("connectors", mode="before")
    @classmethod
    def _split_connectors(cls, v: Any) -> Any:
        # Source documents carry a comma separated string ("J1772,CCS").
        if v is None:
            return ()
        if isinstance(v, str):
            return tuple(p.strip() for p in v.split(",") if p.strip())
        return v

    @field_validator("open_date", mode="before")
    @classmethod
    def _date_as_text(cls, v: Any) -> Any:
        if v is None or isinstance(v, str):
            return v
        return str(v)


class StationFeature(BaseModel):
    geometry: PointGeometry
    properties: StationProperties


class StationCollection(BaseModel):
    type: Literal["FeatureCollection"] = "FeatureCollection"
    features: list[StationFeature]

    def to_records(self) -> tuple[StationRecord, ...]:
        out: list[StationRecord] = []
        for f in self.features:
            p = f.properties
            out.append(
                StationRecord(
                    name=p.name,
                    lon=float(f.geometry.coordinates[0]),
                    lat=float(f.geometry.coordinates[1]),
                    network=p.network,
                    open_date=p.open_date,
                    connectors=tuple(p.connectors),
                    pricing=p.pricing,
                    level=p.level,
                )
            )
        return tuple(out)


class CoverageRow(BaseModel):
    model_config = ConfigDict(extra="ignore")

    state: str = Field(validation_alias=AliasChoices("state", "region"))
    year: int
    coverage_pct: float = Field(ge=0.0, le=100.0)
    readiness_tier: str | None = None
    stations_per_million: float = Field(default=0.0, ge=0.0)


class CoverageTable(RootModel[list[CoverageRow]]):
    @model_validator(mode="after")
    def _one_row_per_region_year(self) -> "CoverageTable":
        seen: set[tuple[str, int]] = set()
        for row in self.root:
            key = (row.state, row.year)
            if key in seen:
                raise ValueError(f"duplicate coverage row for {key[0]} {key[1]}")
            seen.add(key)
        return self

    def to_records(self) -> tuple[CoverageRecord, ...]:
        return tuple(
            CoverageRecord(
                region=r.state,
                year=r.year,
                coverage_pct=float(r.coverage_pct),
                readiness_tier=r.readiness_tier or "",
                stations_per_million=float(r.stations_per_million),
            )
            for r in self.root
        )


class InfraTotals(BaseModel):
    model_config = ConfigDict(extra="ignore")

    year: int
    totalStations: int = Field(ge=0)
    dcFastStations: int = Field(ge=0)
    statesCovered: int = Field(ge=0)

    @model_validator(mode="after")
    def _fast_within_total(self) -> "InfraTotals":
        if self.dcFastStations > self.totalStations:
            raise ValueError(
                f"dcFastStations ({self.dcFastStations}) exceeds totalStations ({self.totalStations})"
            )
        return self

    def to_record(self) -> TotalsRecord:
        return TotalsRecord(
            year=self.year,
            total_stations=self.totalStations,
            fast_stations=self.dcFastStations,
            regions_covered=self.statesCovered,
        )


def _describe(exc: ValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return str(exc)
    first = errors[0]
    loc = ".".join(str(x) for x in first.get("loc", ()))
    more = f" (+{len(errors) - 1} more)" if len(errors) > 1 else ""
    return f"{loc}: {first.get('msg')}{more}"


def decode_boundaries(identifier: str, payload: Any) -> tuple[BoundaryRecord, ...]:
    try:
        return BoundaryCollection.model_validate(payload).to_records()
    except ValidationError as exc:
        raise ParseError(identifier, _describe(exc)) from exc


def decode_stations(identifier: str, payload: Any) -> tuple[StationRecord, ...]:
    try:
        return StationCollection.model_validate(payload).to_records()
    except ValidationError as exc:
        raise ParseError(identifier, _describe(exc)) from exc


def decode_coverage(identifier: str, payload: Any) -> tuple[CoverageRecord, ...]:
    try:
        return CoverageTable.model_validate(payload).to_records()
    except ValidationError as exc:
        raise ParseError(identifier, _describe(exc)) from exc


def decode_totals(identifier: str, payload: Any) -> TotalsRecord:
    try:
        return InfraTotals.model_validate(payload).to_record()
    except ValidationError as exc:
        raise ParseError(identifier, _describe(exc)) from exc
