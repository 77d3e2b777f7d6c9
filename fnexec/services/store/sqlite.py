"""SQLite-backed record store."""

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, List, Optional

import aiosqlite
import structlog

from ...config import settings
from ...models.errors import FunctionNotFoundError
from ...models.function import FunctionRecord
from ...models.metrics import MetricFilter, MetricRecord
from ..interfaces import RecordStoreInterface

logger = structlog.get_logger(__name__)

SCHEMA_SQL = """
-- Function records (full record serialized as JSON)
CREATE TABLE IF NOT EXISTS functions (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL UNIQUE,
    route TEXT NOT NULL UNIQUE,
    data TEXT NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

-- One row per invocation that reached execution (append-only)
CREATE TABLE IF NOT EXISTS metrics (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    metric_id TEXT NOT NULL UNIQUE,
    function_id TEXT NOT NULL,
    timestamp TEXT NOT NULL,
    execution_time REAL NOT NULL,
    memory_usage INTEGER NOT NULL DEFAULT 0,
    cpu_usage REAL NOT NULL DEFAULT 0,
    status TEXT NOT NULL,
    status_code INTEGER NOT NULL,
    isolation_backend TEXT NOT NULL,
    request_id TEXT NOT NULL,
    cold_start INTEGER NOT NULL DEFAULT 0,
    error_message TEXT
);

CREATE INDEX IF NOT EXISTS idx_metrics_function_id ON metrics(function_id);
CREATE INDEX IF NOT EXISTS idx_metrics_timestamp ON metrics(timestamp);
CREATE INDEX IF NOT EXISTS idx_metrics_composite ON metrics(function_id, timestamp);
"""


def _to_utc_iso(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


class SQLiteRecordStore(RecordStoreInterface):
    """Record store persisted in a local SQLite database."""

    def __init__(self, db_path: Optional[str] = None):
        self._db_path = db_path or settings.sqlite_db_path
        self._db: Optional[aiosqlite.Connection] = None

    async def start(self) -> None:
        """Open the database and create the schema."""
        if self._db is not None:
            return

        if self._db_path != ":memory:":
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)

        self._db = await aiosqlite.connect(self._db_path)
        self._db.row_factory = aiosqlite.Row

        await self._db.execute("PRAGMA journal_mode=WAL")
        await self._db.execute("PRAGMA synchronous=NORMAL")
        await self._db.executescript(SCHEMA_SQL)
        await self._db.commit()

        logger.info("SQLite record store started", db_path=self._db_path)

    async def stop(self) -> None:
        if self._db is not None:
            await self._db.close()
            self._db = None
            logger.info("SQLite record store stopped")

    @property
    def db(self) -> aiosqlite.Connection:
        if self._db is None:
            raise RuntimeError("SQLite record store is not started")
        return self._db

    # ------------------------------------------------------------------
    # Functions
    # ------------------------------------------------------------------

    async def get_function(self, function_id: str) -> FunctionRecord:
        cursor = await self.db.execute(
            "SELECT data FROM functions WHERE id = ?", (function_id,)
        )
        row = await cursor.fetchone()
        if row is None:
            raise FunctionNotFoundError(function_id)
        return FunctionRecord.model_validate_json(row["data"])

    async def find_function(
        self, name: Optional[str] = None, route: Optional[str] = None
    ) -> Optional[FunctionRecord]:
        cursor = await self.db.execute(
            "SELECT data FROM functions WHERE name = ? OR route = ? LIMIT 1",
            (name, route),
        )
        row = await cursor.fetchone()
        return FunctionRecord.model_validate_json(row["data"]) if row else None

    async def list_functions(self) -> List[FunctionRecord]:
        cursor = await self.db.execute(
            "SELECT data FROM functions ORDER BY created_at DESC"
        )
        rows = await cursor.fetchall()
        return [FunctionRecord.model_validate_json(row["data"]) for row in rows]

    async def count_functions(self) -> int:
        cursor = await self.db.execute("SELECT COUNT(*) AS total FROM functions")
        row = await cursor.fetchone()
        return row["total"] if row else 0

    async def save_function(self, record: FunctionRecord) -> FunctionRecord:
        record.touch()
        await self.db.execute(
            """
            INSERT INTO functions (id, name, route, data, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                name = excluded.name,
                route = excluded.route,
                data = excluded.data,
                updated_at = excluded.updated_at
            """,
            (
                record.id,
                record.name,
                record.route,
                record.model_dump_json(),
                _to_utc_iso(record.created_at),
                _to_utc_iso(record.updated_at),
            ),
        )
        await self.db.commit()
        return record

    async def delete_function(self, function_id: str) -> bool:
        cursor = await self.db.execute(
            "DELETE FROM functions WHERE id = ?", (function_id,)
        )
        await self.db.commit()
        return cursor.rowcount > 0

    # ------------------------------------------------------------------
    # Metrics
    # ------------------------------------------------------------------

    async def create_metric(self, metric: MetricRecord) -> None:
        await self.db.execute(
            """
            INSERT INTO metrics (
                metric_id, function_id, timestamp, execution_time, memory_usage,
                cpu_usage, status, status_code, isolation_backend, request_id,
                cold_start, error_message
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                metric.metric_id,
                metric.function_id,
                _to_utc_iso(metric.timestamp),
                metric.execution_time,
                metric.memory_usage,
                metric.cpu_usage,
                metric.status,
                metric.status_code,
                metric.isolation_backend,
                metric.request_id,
                1 if metric.cold_start else 0,
                metric.error_message,
            ),
        )
        await self.db.commit()

    async def query_metrics(self, metric_filter: MetricFilter) -> List[MetricRecord]:
        clauses: List[str] = []
        params: List[Any] = []
        if metric_filter.function_id is not None:
            clauses.append("function_id = ?")
            params.append(metric_filter.function_id)
        if metric_filter.start is not None:
            clauses.append("timestamp >= ?")
            params.append(_to_utc_iso(metric_filter.start))
        if metric_filter.end is not None:
            clauses.append("timestamp <= ?")
            params.append(_to_utc_iso(metric_filter.end))
        if metric_filter.status is not None:
            clauses.append("status = ?")
            params.append(metric_filter.status)

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        limit = ""
        if metric_filter.limit is not None:
            limit = "LIMIT ?"
            params.append(metric_filter.limit)

        cursor = await self.db.execute(
            f"SELECT * FROM metrics {where} ORDER BY timestamp DESC, id DESC {limit}",
            params,
        )
        rows = await cursor.fetchall()
        return [MetricRecord.from_dict(dict(row)) for row in rows]
