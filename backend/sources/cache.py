from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Literal

from sources.config import CachePolicy, cache_policy
from sources.errors import NetworkError

_logger = logging.getLogger(__name__)

EntryStatus = Literal["absent", "pending", "ready", "error"]


@dataclass(frozen=True)
class DatasetState:
    """Non-suspending snapshot of one identifier: `{data, error}` plus a status tag."""

    status: EntryStatus
    data: Any = None
    error: BaseException | None = None


@dataclass
class _Entry:
    task: "asyncio.Task[Any]"
    epoch: int
    settled_at: float | None = None


@dataclass
class DatasetCache:
    """
    Per-identifier cache of in-flight and settled dataset fetches.

    - Concurrent `get()` calls for the same identifier share one task, so there is
      at most one fetch per identifier per epoch.
    - Every waiter awaits the same task; they all resume with the same result or
      the same exception.
    - A failed fetch is evicted; the next `get()` starts a fresh one.
    - A waiter that is cancelled does not cancel the shared task; its result is
      still cached for the next caller.
    - `invalidate()` starts a new epoch. Tasks from an older epoch may still finish,
      but they no longer write into the cache.

    Everything runs on a single event loop, so no locking is needed.
    """

    policy: CachePolicy = field(default_factory=CachePolicy)
    clock: Callable[[], float] = time.monotonic
    _entries: dict[str, _Entry] = field(default_factory=dict, repr=False)
    _errors: dict[str, BaseException] = field(default_factory=dict, repr=False)
    _epoch: int = field(default=0, repr=False)

    @property
    def epoch(self) -> int:
        return self._epoch

    async def get(self, identifier: str, fetch: Callable[[], Awaitable[Any]]) -> Any:
        entry = self._live_entry(identifier)
        if entry is None:
            entry = self._start(identifier, fetch)
        return await asyncio.shield(entry.task)

    def state(self, identifier: str) -> DatasetState:
        entry = self._live_entry(identifier)
        if entry is None:
            err = self._errors.get(identifier)
            if err is not None:
                return DatasetState(status="error", error=err)
            return DatasetState(status="absent")
        task = entry.task
        if not task.done():
            return DatasetState(status="pending")
        # The task may have settled before its done-callback evicted it.
        if task.cancelled():
            return DatasetState(status="absent")
        exc = task.exception()
        if exc is not None:
            return DatasetState(status="error", error=exc)
        return DatasetState(status="ready", data=task.result())

    def invalidate(self, identifier: str | None = None) -> None:
        self._epoch += 1
        if identifier is None:
            self._entries.clear()
            self._errors.clear()
        else:
            self._entries.pop(identifier, None)
            self._errors.pop(identifier, None)
        _logger.info(
            "Dataset cache invalidated (%s), epoch=%d", identifier or "all", self._epoch
        )

    def _live_entry(self, identifier: str) -> _Entry | None:
        entry = self._entries.get(identifier)
        if entry is None:
            return None
        ttl = self.policy.ttl_s
        if ttl and entry.settled_at is not None and self.clock() - entry.settled_at > ttl:
            # Expired entries are replaced wholesale by the next fetch.
            self._entries.pop(identifier, None)
            return None
        return entry

    def _start(self, identifier: str, fetch: Callable[[], Awaitable[Any]]) -> _Entry:
        task = asyncio.ensure_future(self._run(identifier, fetch))
        entry = _Entry(task=task, epoch=self._epoch)
        self._entries[identifier] = entry
        task.add_done_callback(lambda t: self._settle(identifier, entry, t))
        return entry

    async def _run(self, identifier: str, fetch: Callable[[], Awaitable[Any]]) -> Any:
        attempt = 0
        while True:
            try:
                return await fetch()
            except NetworkError as exc:
                if attempt >= self.policy.retries:
                    raise
                attempt += 1
                _logger.warning(
                    "Retrying %s after %s (attempt %d/%d)",
                    identifier,
                    exc,
                    attempt,
                    self.policy.retries,
                )

    def _settle(self, identifier: str, entry: _Entry, task: "asyncio.Task[Any]") -> None:
        current = self._entries.get(identifier) is entry
        if task.cancelled():
            if current:
                self._entries.pop(identifier, None)
            return
        exc = task.exception()
        if exc is not None:
            if current:
                self._entries.pop(identifier, None)
                self._errors[identifier] = exc
            _logger.warning("Dataset %s failed: %s", identifier, exc)
            return
        if current:
            entry.settled_at = self.clock()
            self._errors.pop(identifier, None)
            _logger.info("Dataset %s cached (epoch=%d)", identifier, entry.epoch)


_CACHE: DatasetCache | None = None


def get_cache() -> DatasetCache:
    global _CACHE
    if _CACHE is None:
        _CACHE = DatasetCache(policy=cache_policy())
    return _CACHE


def reset_cache(cache: DatasetCache | None = None) -> None:
    """Drop the process-wide cache (or install a specific one, e.g. in tests)."""
    global _CACHE
    _CACHE = cache
