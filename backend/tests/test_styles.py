from __future__ import annotations

import pytest
from pydantic import ValidationError

from styles.registry import get_styles, load_styles, styles_path
from styles.types import StyleConfig


def test_bundled_styles_load():
    st = get_styles()
    assert [s.at for s in st.ramp] == [0, 25, 50, 75, 100]
    assert st.tiers["emerging"] == 25
    assert st.stations.levels["dc fast"] == 8
    assert st.stations.networks["tesla"].rgba == (232, 33, 39, 255)
    assert st.unknownColor.rgba == (128, 128, 128, 160)


def test_styles_path_honours_env(tmp_path, monkeypatch):
    custom = tmp_path / "styles.yaml"
    custom.write_text(
        "ramp:\n"
        "  - {at: 0, color: [0, 0, 0]}\n"
        "  - {at: 100, color: [255, 255, 255]}\n"
        "tiers: {Leading: 100}\n"
        "stations:\n"
        "  networks: {EVgo: [1, 2, 3, 4]}\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("EVVIZ_STYLES_PATH", str(custom))
    assert styles_path() == custom

    st = load_styles(styles_path())
    assert st.tiers == {"leading": 100}
    assert st.stations.networks["evgo"].rgba == (1, 2, 3, 4)
    # Sections not present in the file keep their defaults.
    assert st.highlight.radius == 12.0
    assert st.stations.defaultRadius == 4.0


def test_ramp_must_be_ascending():
    with pytest.raises(ValidationError):
        StyleConfig.model_validate(
            {"ramp": [{"at": 50, "color": [0, 0, 0]}, {"at": 10, "color": [1, 1, 1]}]}
        )
    with pytest.raises(ValidationError):
        StyleConfig.model_validate({"ramp": [{"at": 0, "color": [0, 0, 0]}]})


def test_invalid_colors_and_tiers_are_rejected():
    with pytest.raises(ValidationError):
        StyleConfig.model_validate(
            {
                "ramp": [{"at": 0, "color": [0, 0]}, {"at": 100, "color": [1, 1, 1]}],
            }
        )
    with pytest.raises(ValidationError):
        StyleConfig.model_validate(
            {
                "ramp": [{"at": 0, "color": [0, 0, 0]}, {"at": 100, "color": [1, 1, 300]}],
            }
        )
    with pytest.raises(ValidationError):
        StyleConfig.model_validate(
            {
                "ramp": [{"at": 0, "color": [0, 0, 0]}, {"at": 100, "color": [1, 1, 1]}],
                "tiers": {"beyond": 140},
            }
        )


def test_non_mapping_yaml_root_is_rejected(tmp_path):
    path = tmp_path / "broken.yaml"
    path.write_text("- just\n- a list\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_styles(path)
