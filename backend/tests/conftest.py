import sys
from pathlib import Path

import pytest


# Ensure `backend/` is on sys.path so tests can import local modules
# like `sources.*`, `layers.*`, and `main`.
BACKEND_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(BACKEND_ROOT))

from sources.cache import reset_cache  # noqa: E402
from sources.config import cache_policy, deployment_settings  # noqa: E402


@pytest.fixture(autouse=True)
def _isolated_process_state(monkeypatch):
    # Keep tests off the repo-local telemetry DB and away from env leftovers.
    monkeypatch.setenv("EVVIZ_TELEMETRY", "0")
    for name in ("EVVIZ_MODE", "EVVIZ_BASE_PATH", "EVVIZ_ASSET_ORIGIN"):
        monkeypatch.delenv(name, raising=False)
    deployment_settings.cache_clear()
    cache_policy.cache_clear()
    reset_cache()
    yield
    deployment_settings.cache_clear()
    cache_policy.cache_clear()
    reset_cache()
