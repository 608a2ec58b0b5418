from __future__ import annotations

import threading
from pathlib import Path

from telemetry.config import telemetry_enabled, telemetry_path
from telemetry.store import TelemetryStore

_lock = threading.Lock()
_current: TelemetryStore | None = None
# Path as configured (unresolved); compared on every call, so keep it syscall-free.
_configured: Path | None = None


def get_store() -> TelemetryStore | None:
    """
    Process-wide store, or None when telemetry is switched off.

    The first call opens the database (the API does this at startup). The store
    follows `EVVIZ_TELEMETRY_PATH`: a changed path closes the old file and opens
    the new one.
    """
    global _current, _configured
    if not telemetry_enabled():
        return None
    wanted = telemetry_path()
    store = _current
    if store is not None and _configured == wanted:
        return store
    with _lock:
        if _current is not None and _configured != wanted:
            _current.close()
            _current = None
        if _current is None:
            _current = TelemetryStore.open(wanted.resolve())
            _configured = wanted
        return _current


def reset_store() -> None:
    global _current, _configured
    with _lock:
        store, _current, _configured = _current, None, None
    if store is not None:
        store.reset()
    else:
        telemetry_path().unlink(missing_ok=True)
