from __future__ import annotations

from typing import TYPE_CHECKING

from geo.index import build_region_index
from layers.encoding import (
    network_color,
    pricing_opacity,
    ramp_color,
    station_radius,
    tier_color,
)
from layers.types import (
    BoundaryRecord,
    CoverageRecord,
    FeatureRef,
    FeatureStyle,
    LayerDescriptor,
    LayerId,
    Record,
    StationRecord,
    ViewState,
)
from styles.registry import get_styles
from styles.types import StyleConfig

if TYPE_CHECKING:
    from sources.hooks import ViewData


# Bottom-to-top render order. Interactive points sit above area fills and the
# selection overlay sits above everything.
LAYER_ORDER: tuple[LayerId, ...] = ("boundaries", "coverage", "stations", "highlight")

# Layers whose records are the boundary array / the station array.
BOUNDARY_LAYERS = frozenset({"boundaries", "coverage"})
STATION_LAYERS = frozenset({"stations"})


def compose(
    data: "ViewData",
    view: ViewState,
    *,
    styles: StyleConfig | None = None,
) -> list[LayerDescriptor]:
    """
    Turn the map view's records into an ordered list of layer descriptors.

    Pure and deterministic: same records + same view state -> equal output.
    Records are never reordered or filtered, so `descriptor.records[i]` is the
    i-th record the caller passed in.
    """
    st = styles or get_styles()
    boundaries = tuple(data.boundaries)
    stations = tuple(data.stations)

    built: dict[str, LayerDescriptor] = {
        "boundaries": _boundaries_layer(boundaries, stations, st),
        "coverage": _coverage_layer(boundaries, tuple(data.coverage), view, st),
        "stations": _stations_layer(stations, view, st),
    }
    highlight = _highlight_layer(view.selection, boundaries, stations, st)
    if highlight is not None:
        built["highlight"] = highlight
    return [built[lid] for lid in LAYER_ORDER if lid in built]


def selected_year(coverage: tuple[CoverageRecord, ...], view: ViewState) -> int | None:
    if view.year is not None:
        return int(view.year)
    if not coverage:
        return None
    return max(c.year for c in coverage)


def _coverage_by_region(
    coverage: tuple[CoverageRecord, ...], year: int | None
) -> dict[str, CoverageRecord]:
    out: dict[str, CoverageRecord] = {}
    for c in coverage:
        if c.year == year:
            out[c.region] = c
            out.setdefault(c.region.casefold(), c)
    return out


def _boundaries_layer(
    boundaries: tuple[BoundaryRecord, ...],
    stations: tuple[StationRecord, ...],
    st: StyleConfig,
) -> LayerDescriptor:
    counts = build_region_index(boundaries).count_points(stations) if boundaries else ()
    bs = st.boundaries
    styles = tuple(
        FeatureStyle(
            line_color=bs.lineColor.rgba,
            line_width=bs.lineWidth,
            tooltip=f"{b.name}\n{n} station{'s' if n != 1 else ''}",
        )
        for b, n in zip(boundaries, counts)
    )
    return LayerDescriptor(
        id="boundaries",
        kind="polygons",
        title=bs.title,
        records=boundaries,
        styles=styles,
        meta={"stationCounts": list(counts)},
    )


def _coverage_layer(
    boundaries: tuple[BoundaryRecord, ...],
    coverage: tuple[CoverageRecord, ...],
    view: ViewState,
    st: StyleConfig,
) -> LayerDescriptor:
    year = selected_year(coverage, view)
    by_region = _coverage_by_region(coverage, year)
    cs = st.coverage

    styles: list[FeatureStyle] = []
    for b in boundaries:
        row = by_region.get(b.name) or by_region.get(b.name.casefold())
        if row is None:
            styles.append(
                FeatureStyle(
                    fill_color=st.unknownColor.rgba,
                    line_color=st.unknownColor.rgba,
                    line_width=cs.lineWidth,
                    tooltip=f"{b.name}: no coverage data",
                )
            )
            continue
        fill = ramp_color(row.coverage_pct, st.ramp, alpha=cs.fillAlpha)
        styles.append(
            FeatureStyle(
                fill_color=fill or st.unknownColor.rgba,
                line_color=tier_color(row.readiness_tier, st),
                line_width=cs.lineWidth,
                tooltip=(
                    f"{b.name}: {row.coverage_pct:.1f}% coverage\n"
                    f"Tier: {row.readiness_tier or 'unknown'}\n"
                    f"{row.stations_per_million:.1f} stations per million ({row.year})"
                ),
            )
        )
    return LayerDescriptor(
        id="coverage",
        kind="polygons",
        title=cs.title,
        records=boundaries,
        styles=tuple(styles),
        meta={"year": year},
    )


def _station_tooltip(s: StationRecord) -> str:
    lines = [s.name]
    detail = " | ".join(x for x in (s.network, s.level) if x)
    if detail:
        lines.append(detail)
    if s.connectors:
        lines.append(", ".join(s.connectors))
    if s.pricing:
        lines.append(s.pricing)
    if s.open_date:
        lines.append(f"Opened {s.open_date}")
    return "\n".join(lines)


def _stations_layer(
    stations: tuple[StationRecord, ...], view: ViewState, st: StyleConfig
) -> LayerDescriptor:
    ss = st.stations
    styles = tuple(
        FeatureStyle(
            fill_color=network_color(s.network, ss),
            radius=station_radius(s.level, ss, zoom=view.zoom),
            opacity=pricing_opacity(s.pricing, ss),
            tooltip=_station_tooltip(s),
        )
        for s in stations
    )
    return LayerDescriptor(
        id="stations",
        kind="points",
        title=ss.title,
        records=stations,
        styles=styles,
    )


def resolve_ref(
    ref: FeatureRef,
    boundaries: tuple[BoundaryRecord, ...],
    stations: tuple[StationRecord, ...],
) -> Record | None:
    if ref.layer_id in BOUNDARY_LAYERS:
        pool: tuple[Record, ...] = boundaries
    elif ref.layer_id in STATION_LAYERS:
        pool = stations
    else:
        return None
    if isinstance(ref.index, bool) or not 0 <= ref.index < len(pool):
        return None
    return pool[ref.index]


def _highlight_layer(
    selection: FeatureRef | None,
    boundaries: tuple[BoundaryRecord, ...],
    stations: tuple[StationRecord, ...],
    st: StyleConfig,
) -> LayerDescriptor | None:
    if selection is None:
        return None
    record = resolve_ref(selection, boundaries, stations)
    if record is None:
        return None
    hs = st.highlight
    if isinstance(record, StationRecord):
        style = FeatureStyle(
            fill_color=hs.color.rgba,
            radius=hs.radius,
            tooltip=_station_tooltip(record),
        )
        kind = "points"
    else:
        r, g, b, _ = hs.color.rgba
        style = FeatureStyle(
            fill_color=(r, g, b, 40),
            line_color=hs.color.rgba,
            line_width=hs.lineWidth,
            tooltip=record.name,
        )
        kind = "polygons"
    return LayerDescriptor(
        id="highlight",
        kind=kind,
        title=hs.title,
        records=(record,),
        styles=(style,),
        origin=FeatureRef(
            layer_id="boundaries" if kind == "polygons" else "stations",
            index=selection.index,
        ),
    )
