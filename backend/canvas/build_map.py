from __future__ import annotations

from typing import Any

from canvas.traces import (
    trace_boundaries,
    trace_coverage,
    trace_highlight,
    trace_points,
)
from layers.types import LayerDescriptor, ViewState


def build_map_plot(
    layers: list[LayerDescriptor],
    view: ViewState,
    *,
    map_style: str = "carto-darkmatter",
) -> dict[str, Any]:
    """
    Render composed layer descriptors as a Plotly mapbox payload.

    Each trace carries `meta.layerId` and per-point `customdata` (the feature index)
    so the frontend can turn Plotly hover/click events into pick events.
    """
    traces: list[dict[str, Any]] = []
    for layer in layers:
        if layer.id == "boundaries":
            traces.append(trace_boundaries(layer))
        elif layer.id == "coverage":
            traces.extend(trace_coverage(layer))
        elif layer.id == "stations":
            traces.append(trace_points(layer))
        elif layer.id == "highlight":
            traces.append(trace_highlight(layer))

    meta: dict[str, Any] = {
        "layers": [layer.id for layer in layers],
        "selection": (
            {"layerId": view.selection.layer_id, "index": view.selection.index}
            if view.selection is not None
            else None
        ),
    }
    for layer in layers:
        if layer.id == "coverage":
            meta["year"] = layer.meta.get("year")

    meta["stats"] = {
        "renderedRegions": sum(
            len(layer.records) for layer in layers if layer.id == "boundaries"
        ),
        "renderedStations": sum(
            len(layer.records) for layer in layers if layer.id == "stations"
        ),
        "traces": len(traces),
    }

    return {
        "data": traces,
        "layout": {
            "mapbox": {
                "center": {"lat": view.latitude, "lon": view.longitude},
                "zoom": view.zoom,
                "pitch": view.pitch,
                "bearing": view.bearing,
                "style": map_style,
            },
            "showlegend": True,
            "legend": {
                "x": 0.99,
                "y": 0.99,
                "xanchor": "right",
                "yanchor": "top",
                "bgcolor": "rgba(20, 20, 30, 0.75)",
                "bordercolor": "rgba(120, 120, 120, 0.35)",
                "borderwidth": 1,
                "font": {"size": 11, "color": "#e0e0e0"},
            },
            "margin": {"l": 0, "r": 0, "t": 0, "b": 0},
            "meta": meta,
        },
    }
