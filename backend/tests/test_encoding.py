from __future__ import annotations

import math

from layers.encoding import (
    network_color,
    pricing_class,
    pricing_opacity,
    ramp_color,
    station_radius,
    tier_color,
    zoom_factor,
)
from styles.registry import get_styles


def test_ramp_interpolates_between_stops():
    st = get_styles()
    assert ramp_color(0, st.ramp) == (68, 1, 84, 255)
    assert ramp_color(100, st.ramp) == (253, 231, 37, 255)
    assert ramp_color(12.5, st.ramp) == (64, 42, 112, 255)
    assert ramp_color(62.5, st.ramp, alpha=170) == (64, 173, 119, 170)


def test_ramp_clamps_out_of_range_and_skips_missing_values():
    st = get_styles()
    assert ramp_color(150, st.ramp) == ramp_color(100, st.ramp)
    assert ramp_color(-3, st.ramp) == ramp_color(0, st.ramp)
    assert ramp_color(None, st.ramp) is None
    assert ramp_color(math.nan, st.ramp) is None


def test_tier_color_is_case_insensitive_with_unknown_fallback():
    st = get_styles()
    assert tier_color("emerging", st) == (59, 82, 139, 255)
    assert tier_color("  Emerging ", st) == tier_color("emerging", st)
    assert tier_color("legendary", st) == st.unknownColor.rgba
    assert tier_color(None, st) == st.unknownColor.rgba


def test_zoom_factor_grows_linearly_between_continental_and_city_zoom():
    assert zoom_factor(2) == 0.75
    assert zoom_factor(4) == 0.75
    assert math.isclose(zoom_factor(7), 1.125)
    assert zoom_factor(10) == 1.5
    assert zoom_factor(16) == 1.5


def test_station_radius_by_level_with_default():
    ss = get_styles().stations
    assert station_radius("DC Fast", ss, zoom=3.5) == 6.0
    assert station_radius("level 2", ss, zoom=10) == 7.5
    assert station_radius("Level 3", ss, zoom=3.5) == 3.0
    assert station_radius(None, ss, zoom=3.5) == 3.0


def test_network_color_falls_back_for_unknown_networks():
    ss = get_styles().stations
    assert network_color("Tesla", ss) == (232, 33, 39, 255)
    assert network_color("Electrify America", ss) == (0, 181, 226, 255)
    assert network_color("Volta", ss) == (0, 255, 200, 255)
    assert network_color(None, ss) == (0, 255, 200, 255)


def test_pricing_classes_and_opacity():
    ss = get_styles().stations
    assert pricing_class("Free") == "free"
    assert pricing_class("Free for customers") == "free"
    assert pricing_class("$0") == "free"
    assert pricing_class("$0.43/kWh") == "paid"
    assert pricing_class("") is None
    assert pricing_opacity("Paid", ss) == 0.75
    assert pricing_opacity("free", ss) == 1.0
    assert pricing_opacity(None, ss) == 0.85
