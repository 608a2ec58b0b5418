from __future__ import annotations

import os
from pathlib import Path

_OFF_VALUES = frozenset({"0", "false", "no", "off"})


def _default_path() -> Path:
    # <repo>/data/telemetry, next to the backend package.
    return Path(__file__).resolve().parents[2] / "data" / "telemetry" / "telemetry.duckdb"


def telemetry_path() -> Path:
    override = (os.getenv("EVVIZ_TELEMETRY_PATH") or "").strip()
    return Path(override) if override else _default_path()


def telemetry_enabled() -> bool:
    return (os.getenv("EVVIZ_TELEMETRY") or "1").strip().lower() not in _OFF_VALUES
