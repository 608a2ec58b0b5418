from __future__ import annotations

from typing import Any

from layers.types import RGBA, BoundaryRecord, LayerDescriptor, StationRecord


def rgba_css(c: RGBA | None, *, opacity: float = 1.0) -> str | None:
    if c is None:
        return None
    r, g, b, a = c
    return f"rgba({r}, {g}, {b}, {round(a / 255.0 * opacity, 3)})"


def _outline(record: BoundaryRecord, index: int) -> tuple[list, list, list]:
    lons: list[float | None] = []
    lats: list[float | None] = []
    custom: list[int | None] = []
    for rings in record.polygons():
        if not rings or not rings[0]:
            continue
        ring = list(rings[0])
        if ring[0] != ring[-1]:
            ring = [*ring, ring[0]]
        for lon, lat in ring:
            lons.append(lon)
            lats.append(lat)
            custom.append(index)
        lons.append(None)
        lats.append(None)
        custom.append(None)
    return lons, lats, custom


def trace_boundaries(layer: LayerDescriptor) -> dict[str, Any]:
    lons: list[float | None] = []
    lats: list[float | None] = []
    custom: list[int | None] = []
    text: list[str | None] = []
    for i, (rec, style) in enumerate(zip(layer.records, layer.styles)):
        if not isinstance(rec, BoundaryRecord):
            continue
        lo, la, cd = _outline(rec, i)
        lons.extend(lo)
        lats.extend(la)
        custom.extend(cd)
        text.extend(style.tooltip if c is not None else None for c in cd)

    first = layer.styles[0] if layer.styles else None
    return {
        "type": "scattermapbox",
        "name": layer.title,
        "meta": {"layerId": layer.id},
        "lon": lons,
        "lat": lats,
        "mode": "lines",
        "line": {
            "color": rgba_css(first.line_color if first else None)
            or "rgba(255, 255, 255, 0.35)",
            "width": first.line_width if first else 1,
        },
        "customdata": custom,
        "text": text,
        "hoverinfo": "text" if layer.hoverable else "skip",
    }


def trace_coverage(layer: LayerDescriptor) -> list[dict[str, Any]]:
    # One trace per region: scattermapbox fills take a single color per trace.
    out: list[dict[str, Any]] = []
    for i, (rec, style) in enumerate(zip(layer.records, layer.styles)):
        if not isinstance(rec, BoundaryRecord):
            continue
        lons, lats, custom = _outline(rec, i)
        out.append(
            {
                "type": "scattermapbox",
                "name": layer.title,
                "legendgroup": layer.id,
                "showlegend": not out,
                "meta": {"layerId": layer.id},
                "lon": lons,
                "lat": lats,
                "mode": "lines",
                "fill": "toself",
                "fillcolor": rgba_css(style.fill_color),
                "line": {
                    "color": rgba_css(style.line_color),
                    "width": style.line_width,
                },
                "customdata": custom,
                "text": style.tooltip,
                "hoverinfo": "text" if layer.hoverable else "skip",
            }
        )
    return out


def trace_points(layer: LayerDescriptor) -> dict[str, Any]:
    pairs = [
        (i, rec, style)
        for i, (rec, style) in enumerate(zip(layer.records, layer.styles))
        if isinstance(rec, StationRecord)
    ]
    return {
        "type": "scattermapbox",
        "name": layer.title,
        "meta": {"layerId": layer.id},
        "lon": [rec.lon for _, rec, _ in pairs],
        "lat": [rec.lat for _, rec, _ in pairs],
        "mode": "markers",
        "customdata": [i for i, _, _ in pairs],
        "text": [style.tooltip for _, _, style in pairs],
        "marker": {
            "size": [style.radius or 4 for _, _, style in pairs],
            "color": [rgba_css(style.fill_color) for _, _, style in pairs],
            "opacity": [style.opacity for _, _, style in pairs],
        },
        "hovertemplate": "%{text}<extra></extra>",
    }


def trace_highlight(layer: LayerDescriptor) -> dict[str, Any]:
    if layer.kind == "points":
        trace = trace_points(layer)
        trace["mode"] = "markers+text"
        trace["textposition"] = "top center"
        trace["text"] = [
            rec.name for rec in layer.records if isinstance(rec, StationRecord)
        ]
        return trace

    fills = trace_coverage(layer)
    if not fills:
        return {
            "type": "scattermapbox",
            "name": layer.title,
            "meta": {"layerId": layer.id},
            "lon": [],
            "lat": [],
        }
    trace = fills[0]
    trace["showlegend"] = True
    return trace
