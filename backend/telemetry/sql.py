from __future__ import annotations

CREATE_EVENTS_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS events (
  ts_ms BIGINT,
  kind TEXT,
  identifier TEXT,
  status INTEGER,
  duration_ms DOUBLE,
  stats_json TEXT
);
"""

SUMMARY_SQL_TEMPLATE = """
SELECT
  kind,
  identifier,
  COUNT(*) AS n,
  AVG(duration_ms) AS avg_ms,
  quantile_cont(duration_ms, 0.50) AS p50_ms,
  quantile_cont(duration_ms, 0.95) AS p95_ms,
  AVG(CASE WHEN status IS NULL OR status >= 400 THEN 1 ELSE 0 END) AS error_rate
FROM events
{where_sql}
GROUP BY kind, identifier
ORDER BY kind, identifier
"""

INSERT_EVENTS_SQL = """
INSERT INTO events
  (ts_ms, kind, identifier, status, duration_ms, stats_json)
VALUES (?, ?, ?, ?, ?, ?)
"""
