from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path

import yaml

from styles.types import StyleConfig


def _default_styles_path() -> Path:
    return Path(__file__).resolve().parent / "dashboard.yaml"


def styles_path() -> Path:
    return Path(os.getenv("EVVIZ_STYLES_PATH") or _default_styles_path())


def _load_yaml(path: Path) -> dict:
    raw = path.read_text(encoding="utf-8")
    data = yaml.safe_load(raw) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Invalid styles yaml root: {path}")
    return data


def load_styles(path: Path) -> StyleConfig:
    return StyleConfig.model_validate(_load_yaml(path))


@lru_cache(maxsize=1)
def get_styles() -> StyleConfig:
    return load_styles(styles_path())
