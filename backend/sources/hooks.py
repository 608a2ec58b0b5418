from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any

from layers.types import BoundaryRecord, CoverageRecord, StationRecord, TotalsRecord
from sources.cache import DatasetCache, DatasetState, get_cache
from sources.datasets import (
    BOUNDARIES,
    COVERAGE,
    STATIONS,
    TOTALS,
    VIEWS,
    DatasetSpec,
)
from sources.errors import DatasetError
from sources.source import Fetcher
from telemetry.singleton import get_store

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ViewData:
    """All records a view needs, handed to the composer in one piece."""

    boundaries: tuple[BoundaryRecord, ...] = ()
    stations: tuple[StationRecord, ...] = ()
    coverage: tuple[CoverageRecord, ...] = ()
    totals: TotalsRecord | None = None


class DatasetHooks:
    """
    One hook per dataset on top of a shared `DatasetCache`.

    Awaiting a hook suspends the caller until that dataset's single in-flight fetch
    settles. Errors are not caught here; they propagate to the caller's error
    boundary.
    """

    def __init__(self, source: Fetcher, *, cache: DatasetCache | None = None) -> None:
        self._source = source
        self._cache = cache

    @property
    def cache(self) -> DatasetCache:
        # Resolved lazily so `reset_cache()` takes effect for already-built hooks.
        return self._cache or get_cache()

    async def use_dataset(self, identifier: str) -> Any:
        return await self.cache.get(identifier, lambda: self._fetch(identifier))

    async def use_boundaries(self) -> tuple[BoundaryRecord, ...]:
        return await self.use_dataset(BOUNDARIES.identifier)

    async def use_stations(self) -> tuple[StationRecord, ...]:
        return await self.use_dataset(STATIONS.identifier)

    async def use_coverage(self) -> tuple[CoverageRecord, ...]:
        return await self.use_dataset(COVERAGE.identifier)

    async def use_totals(self) -> TotalsRecord:
        return await self.use_dataset(TOTALS.identifier)

    def peek(self, identifier: str) -> DatasetState:
        return self.cache.state(identifier)

    async def load_view(self, view: str) -> ViewData:
        """
        Readiness gate: resolve every dataset the view needs, or none.

        The datasets are requested concurrently; the first failure propagates (the
        remaining fetches still complete and land in the cache).
        """
        specs: tuple[DatasetSpec, ...] | None = VIEWS.get(view)
        if specs is None:
            raise ValueError(f"Unknown view: {view!r}")
        results = await asyncio.gather(
            *(self.use_dataset(spec.identifier) for spec in specs)
        )
        by_name = {spec.name: result for spec, result in zip(specs, results)}
        return ViewData(**by_name)

    async def _fetch(self, identifier: str) -> Any:
        t0 = time.perf_counter()
        status: int | None = None
        error: str | None = None
        try:
            records = await self._source.fetch(identifier)
            status = 200
            return records
        except DatasetError as exc:
            status = getattr(exc, "status", None)
            error = type(exc).__name__
            raise
        finally:
            duration_ms = (time.perf_counter() - t0) * 1000.0
            _logger.debug("Fetched %s in %.1f ms (%s)", identifier, duration_ms, error or "ok")
            _record_fetch(identifier, status, duration_ms, error)


def _record_fetch(
    identifier: str, status: int | None, duration_ms: float, error: str | None
) -> None:
    # Best-effort; telemetry must never fail a fetch.
    try:
        store = get_store()
        if store is not None:
            store.record(
                kind="fetch",
                identifier=identifier,
                status=status,
                duration_ms=duration_ms,
                stats={"error": error} if error else {},
            )
    except Exception:
        _logger.debug("Telemetry record failed for %s", identifier, exc_info=True)
