from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Literal


DeploymentMode = Literal["development", "production"]


@dataclass(frozen=True)
class DeploymentSettings:
    """
    Where dataset documents are served from.

    - development: documents live at the origin root (no base path prefix)
    - production: the published build is mounted under `base_path`
    """

    mode: DeploymentMode = "development"
    base_path: str = "/"
    asset_origin: str = "http://127.0.0.1:8000"

    @property
    def base_prefix(self) -> str:
        return "" if self.mode == "development" else self.base_path


@dataclass(frozen=True)
class CachePolicy:
    """
    Expiry/retry knobs for the dataset cache.

    Defaults keep an entry for the whole process lifetime and never retry.
    """

    ttl_s: float | None = None
    retries: int = 0

    def __post_init__(self) -> None:
        if self.ttl_s is not None and self.ttl_s < 0:
            raise ValueError(f"ttl_s must be >= 0, got {self.ttl_s}")
        if self.retries < 0:
            raise ValueError(f"retries must be >= 0, got {self.retries}")


def _normalize_mode(value: str | None) -> DeploymentMode:
    v = (value or "development").strip().lower()
    if v in {"production", "prod", "published", "build"}:
        return "production"
    return "development"


@lru_cache(maxsize=1)
def deployment_settings() -> DeploymentSettings:
    # Resolved once per process; tests call `deployment_settings.cache_clear()`.
    return DeploymentSettings(
        mode=_normalize_mode(os.getenv("EVVIZ_MODE")),
        base_path=(os.getenv("EVVIZ_BASE_PATH") or "/").strip() or "/",
        asset_origin=(os.getenv("EVVIZ_ASSET_ORIGIN") or "http://127.0.0.1:8000")
        .strip()
        .rstrip("/"),
    )


@lru_cache(maxsize=1)
def cache_policy() -> CachePolicy:
    ttl_raw = (os.getenv("EVVIZ_CACHE_TTL_S") or "").strip()
    retries_raw = (os.getenv("EVVIZ_FETCH_RETRIES") or "").strip()
    try:
        ttl = float(ttl_raw) if ttl_raw else None
        retries = int(retries_raw) if retries_raw else 0
    except ValueError as exc:
        raise ValueError(f"Invalid cache policy env: {exc}") from exc
    return CachePolicy(ttl_s=ttl or None, retries=retries)
