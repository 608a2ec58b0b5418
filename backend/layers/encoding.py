from __future__ import annotations

import math

from layers.types import RGBA
from styles.types import RampStop, StationStyle, StyleConfig


def ramp_color(pct: float | None, stops: list[RampStop], *, alpha: int = 255) -> RGBA | None:
    """
    Linear interpolation of `pct` (0..100, clamped) between ramp stops.

    Returns None for a missing/NaN value so callers can pick their own default.
    """
    if pct is None:
        return None
    v = float(pct)
    if math.isnan(v):
        return None
    v = min(100.0, max(0.0, v))

    if v <= stops[0].at:
        r, g, b, _ = stops[0].color.rgba
        return (r, g, b, alpha)
    for lo, hi in zip(stops, stops[1:]):
        if v <= hi.at:
            t = (v - lo.at) / (hi.at - lo.at)
            c = tuple(
                int(round(a + (b - a) * t))
                for a, b in zip(lo.color.rgba[:3], hi.color.rgba[:3])
            )
            return (c[0], c[1], c[2], alpha)
    r, g, b, _ = stops[-1].color.rgba
    return (r, g, b, alpha)


def _key(value: str | None) -> str:
    return (value or "").strip().lower()


def tier_color(tier: str | None, styles: StyleConfig, *, alpha: int = 255) -> RGBA:
    pos = styles.tiers.get(_key(tier))
    if pos is None:
        return styles.unknownColor.rgba
    return ramp_color(pos, styles.ramp, alpha=alpha) or styles.unknownColor.rgba


def zoom_factor(zoom: float) -> float:
    # Markers grow from 0.75x (continental view) to 1.5x (city view).
    z = float(zoom)
    if z <= 4.0:
        return 0.75
    if z >= 10.0:
        return 1.5
    return 0.75 + (z - 4.0) * (0.75 / 6.0)


def station_radius(level: str | None, style: StationStyle, *, zoom: float) -> float:
    base = style.levels.get(_key(level), style.defaultRadius)
    return round(base * zoom_factor(zoom), 2)


def network_color(network: str | None, style: StationStyle) -> RGBA:
    c = style.networks.get(_key(network))
    return c.rgba if c is not None else style.defaultColor.rgba


def pricing_class(pricing: str | None) -> str | None:
    p = _key(pricing)
    if not p:
        return None
    if "free" in p or p in {"$0", "0", "0.00"}:
        return "free"
    return "paid"


def pricing_opacity(pricing: str | None, style: StationStyle) -> float:
    cls = pricing_class(pricing)
    if cls is None:
        return style.defaultOpacity
    return float(style.pricing.get(cls, style.defaultOpacity))
