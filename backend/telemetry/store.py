from __future__ import annotations

import json
import logging
import queue
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import duckdb

from telemetry.sql import (
    CREATE_EVENTS_TABLE_SQL,
    INSERT_EVENTS_SQL,
    SUMMARY_SQL_TEMPLATE,
)

_logger = logging.getLogger(__name__)

# Queue marker that tells the writer to drain and exit.
_SHUTDOWN = object()

_SUMMARY_KEYS = ("kind", "identifier", "n", "avgMs", "p50Ms", "p95Ms", "errorRate")


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class TelemetryEvent:
    kind: str
    identifier: str
    status: int | None
    duration_ms: float
    stats: dict[str, Any] = field(default_factory=dict, hash=False)
    ts_ms: int = field(default_factory=_now_ms)

    def as_row(self) -> tuple:
        return (
            self.ts_ms,
            self.kind,
            self.identifier,
            self.status,
            self.duration_ms,
            json.dumps(self.stats, ensure_ascii=False, default=str),
        )


def _as_float(v: Any) -> float | None:
    return None if v is None else float(v)


@dataclass
class TelemetryStore:
    """
    Append-only event log (dataset fetches, compose requests) in a local DuckDB file.

    `record()` only enqueues; a single background writer inserts whatever has
    piled up in one `executemany`, so the event loop never waits on disk.
    """

    path: Path
    conn: duckdb.DuckDBPyConnection
    batch_size: int = 250
    _db_lock: threading.Lock = field(default_factory=threading.Lock, repr=False)
    _pending: "queue.Queue[Any]" = field(default_factory=queue.Queue, repr=False)
    _writer: threading.Thread | None = field(default=None, repr=False)

    @classmethod
    def open(cls, path: Path) -> "TelemetryStore":
        path.parent.mkdir(parents=True, exist_ok=True)
        store = cls(path=path, conn=duckdb.connect(str(path)))
        store.ensure_schema()
        store.start()
        return store

    def ensure_schema(self) -> None:
        with self._db_lock:
            self.conn.execute(CREATE_EVENTS_TABLE_SQL)

    def start(self) -> None:
        if self._writer is not None and self._writer.is_alive():
            return
        self._writer = threading.Thread(
            target=self._drain_forever, name="telemetry-writer", daemon=True
        )
        self._writer.start()

    def stop(self, *, timeout_s: float = 2.0) -> None:
        writer, self._writer = self._writer, None
        if writer is None or not writer.is_alive():
            return
        self._pending.put(_SHUTDOWN)
        writer.join(timeout=timeout_s)

    def record(
        self,
        *,
        kind: str,
        identifier: str,
        status: int | None,
        duration_ms: float,
        stats: dict[str, Any],
    ) -> None:
        self.start()
        self._pending.put(
            TelemetryEvent(
                kind=str(kind),
                identifier=str(identifier),
                status=int(status) if status is not None else None,
                duration_ms=float(duration_ms),
                stats=dict(stats),
            )
        )

    def flush(self, *, timeout_s: float = 2.0) -> bool:
        """Block until every queued event is on disk; False on timeout."""
        deadline = time.monotonic() + timeout_s
        while self._pending.unfinished_tasks:
            if time.monotonic() >= deadline:
                return False
            time.sleep(0.01)
        return True

    def query(self, sql: str, params: list[Any] | None = None) -> list[tuple]:
        with self._db_lock:
            return self.conn.execute(sql, params or []).fetchall()

    def summary(
        self,
        *,
        kind: str | None = None,
        since_ms: int | None = None,
    ) -> list[dict[str, Any]]:
        clauses: list[tuple[str, Any]] = []
        if kind:
            clauses.append(("kind = ?", kind))
        if since_ms is not None:
            clauses.append(("ts_ms >= ?", int(since_ms)))
        where_sql = ("WHERE " + " AND ".join(c for c, _ in clauses)) if clauses else ""
        rows = self.query(
            SUMMARY_SQL_TEMPLATE.format(where_sql=where_sql), [v for _, v in clauses]
        )

        out = []
        for kind_v, identifier, n, *timings in rows:
            values = [kind_v, identifier, int(n), *(_as_float(t) for t in timings)]
            out.append(dict(zip(_SUMMARY_KEYS, values)))
        return out

    def close(self) -> None:
        self.stop()
        with self._db_lock:
            try:
                self.conn.close()
            except duckdb.Error:
                _logger.debug("Telemetry connection already closed")

    def reset(self) -> None:
        """Close the store and delete its database file."""
        self.close()
        self.path.unlink(missing_ok=True)

    def _take_batch(self) -> tuple[list[TelemetryEvent], bool]:
        first = self._pending.get()
        if first is _SHUTDOWN:
            return [], True
        batch = [first]
        shutdown = False
        while len(batch) < self.batch_size:
            try:
                item = self._pending.get_nowait()
            except queue.Empty:
                break
            if item is _SHUTDOWN:
                shutdown = True
                break
            batch.append(item)
        return batch, shutdown

    def _write(self, batch: list[TelemetryEvent]) -> None:
        try:
            with self._db_lock:
                self.conn.executemany(INSERT_EVENTS_SQL, [e.as_row() for e in batch])
        except duckdb.Error:
            _logger.warning("Dropping %d telemetry events", len(batch), exc_info=True)

    def _drain_forever(self) -> None:
        shutdown = False
        while not shutdown:
            batch, shutdown = self._take_batch()
            if batch:
                self._write(batch)
            # One task_done per item taken, including the shutdown marker.
            for _ in range(len(batch) + (1 if shutdown else 0)):
                self._pending.task_done()
