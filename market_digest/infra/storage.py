"""SQLite persistence for digests, terms, term history and failure logs."""

from __future__ import annotations

import asyncio
import json
import sqlite3
from datetime import datetime, timedelta, timezone
from pathlib import Path
from threading import Lock
from typing import Any, Callable, Dict, Sequence

from ..errors import BatchError, utcnow
from ..jobs.results import NewsRecord, TermHistoryRecord, TermRecord

METADATA_FIELDS = ("news_last_updated", "terms_last_updated")

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS news (
        date TEXT PRIMARY KEY,
        world_news_title TEXT NOT NULL DEFAULT '',
        world_news_summary TEXT NOT NULL DEFAULT '',
        japan_news_title TEXT NOT NULL DEFAULT '',
        japan_news_summary TEXT NOT NULL DEFAULT '',
        updated_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS terms (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        date TEXT NOT NULL,
        name TEXT NOT NULL,
        description TEXT NOT NULL,
        difficulty TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS term_history (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        term_name TEXT NOT NULL,
        delivered_at TEXT NOT NULL,
        difficulty TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_term_history_delivered ON term_history(delivered_at)",
    """
    CREATE TABLE IF NOT EXISTS batch_metadata (
        id INTEGER PRIMARY KEY CHECK (id = 1),
        news_last_updated TEXT,
        terms_last_updated TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS error_logs (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        batch_type TEXT NOT NULL,
        date TEXT NOT NULL,
        payload TEXT NOT NULL,
        created_at TEXT NOT NULL
    )
    """,
)


def _utc_iso(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).isoformat()


class SQLiteManager:
    """Manage SQLite connections with basic schema guarantees."""

    def __init__(self) -> None:
        self._connections: Dict[Path, sqlite3.Connection] = {}
        self._lock = Lock()

    def connect(self, path: Path) -> sqlite3.Connection:
        path.parent.mkdir(parents=True, exist_ok=True)
        with self._lock:
            if path not in self._connections:
                conn = sqlite3.connect(path, check_same_thread=False)
                conn.row_factory = sqlite3.Row
                self._connections[path] = conn
                self._ensure_schema(conn)
            return self._connections[path]

    def _ensure_schema(self, conn: sqlite3.Connection) -> None:
        for statement in _SCHEMA:
            conn.execute(statement)
        conn.execute("INSERT OR IGNORE INTO batch_metadata(id) VALUES (1)")
        conn.commit()

    def reset(self, path: Path) -> None:
        with self._lock:
            if path in self._connections:
                self._connections[path].close()
                del self._connections[path]
        if path.exists():
            path.unlink()

    def close_all(self) -> None:
        with self._lock:
            for conn in self._connections.values():
                conn.close()
            self._connections.clear()


class SQLiteStore:
    """Storage, history repository and failure log backed by one SQLite file.

    Blocking sqlite calls run in a worker thread; a lock serialises access to
    the shared connection.
    """

    def __init__(
        self,
        manager: SQLiteManager,
        db_path: Path,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.manager = manager
        self.db_path = db_path
        self._clock = clock
        self._lock = Lock()
        self._conn = self.manager.connect(db_path)

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------
    async def upsert_news(self, record: NewsRecord) -> None:
        await asyncio.to_thread(self._write, self._upsert_news_sync, record)

    async def insert_terms(self, records: Sequence[TermRecord]) -> None:
        await asyncio.to_thread(self._write, self._insert_terms_sync, list(records))

    async def insert_term_history(self, records: Sequence[TermHistoryRecord]) -> None:
        await asyncio.to_thread(self._write, self._insert_history_sync, list(records))

    async def update_metadata(self, field: str, timestamp: datetime) -> None:
        if field not in METADATA_FIELDS:
            raise ValueError(f"Unknown metadata field: {field}")
        await asyncio.to_thread(self._write, self._update_metadata_sync, field, timestamp)

    # ------------------------------------------------------------------
    # History repository
    # ------------------------------------------------------------------
    async def get_delivered_names(self, lookback_days: int = 30) -> list[str]:
        return await asyncio.to_thread(self.delivered_names, lookback_days)

    def delivered_names(self, lookback_days: int = 30) -> list[str]:
        since = _utc_iso(self._clock() - timedelta(days=lookback_days))
        rows = self._read(
            "SELECT term_name FROM term_history WHERE delivered_at >= ? ORDER BY delivered_at",
            (since,),
        )
        return [row["term_name"] for row in rows]

    def recent_history(self, lookback_days: int = 30) -> list[dict[str, Any]]:
        since = _utc_iso(self._clock() - timedelta(days=lookback_days))
        rows = self._read(
            "SELECT term_name, delivered_at, difficulty FROM term_history "
            "WHERE delivered_at >= ? ORDER BY delivered_at DESC",
            (since,),
        )
        return [dict(row) for row in rows]

    # ------------------------------------------------------------------
    # Failure log
    # ------------------------------------------------------------------
    async def record(self, entry: dict[str, Any]) -> None:
        await asyncio.to_thread(self._write, self._record_failure_sync, entry)

    def failure_logs(self, limit: int = 20) -> list[dict[str, Any]]:
        rows = self._read(
            "SELECT id, batch_type, date, payload, created_at FROM error_logs "
            "ORDER BY id DESC LIMIT ?",
            (limit,),
        )
        return [self._decode_failure(row) for row in rows]

    def failure_log(self, log_id: int) -> dict[str, Any] | None:
        rows = self._read(
            "SELECT id, batch_type, date, payload, created_at FROM error_logs WHERE id = ?",
            (log_id,),
        )
        return self._decode_failure(rows[0]) if rows else None

    # ------------------------------------------------------------------
    # Read helpers used by the CLI
    # ------------------------------------------------------------------
    def news_for(self, date: str) -> dict[str, Any] | None:
        rows = self._read("SELECT * FROM news WHERE date = ?", (date,))
        return dict(rows[0]) if rows else None

    def terms_for(self, date: str) -> list[dict[str, Any]]:
        rows = self._read(
            "SELECT date, name, description, difficulty FROM terms WHERE date = ? ORDER BY id",
            (date,),
        )
        return [dict(row) for row in rows]

    def metadata(self) -> dict[str, str | None]:
        rows = self._read("SELECT news_last_updated, terms_last_updated FROM batch_metadata")
        if not rows:
            return {field: None for field in METADATA_FIELDS}
        return dict(rows[0])

    # ------------------------------------------------------------------
    def _write(self, func: Callable[..., None], *args: Any) -> None:
        with self._lock:
            try:
                func(*args)
                self._conn.commit()
            except sqlite3.Error as exc:
                self._conn.rollback()
                raise BatchError.storage(f"SQLite write failed: {exc}", operation="write") from exc

    def _read(self, sql: str, params: tuple = ()) -> list[sqlite3.Row]:
        with self._lock:
            try:
                return self._conn.execute(sql, params).fetchall()
            except sqlite3.Error as exc:
                raise BatchError.storage(f"SQLite read failed: {exc}", operation="read") from exc

    def _upsert_news_sync(self, record: NewsRecord) -> None:
        self._conn.execute(
            """
            INSERT INTO news(date, world_news_title, world_news_summary,
                             japan_news_title, japan_news_summary, updated_at)
            VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT(date) DO UPDATE SET
                world_news_title = excluded.world_news_title,
                world_news_summary = excluded.world_news_summary,
                japan_news_title = excluded.japan_news_title,
                japan_news_summary = excluded.japan_news_summary,
                updated_at = excluded.updated_at
            """,
            (
                record.date,
                record.world_news_title,
                record.world_news_summary,
                record.japan_news_title,
                record.japan_news_summary,
                record.updated_at.isoformat(),
            ),
        )

    def _insert_terms_sync(self, records: list[TermRecord]) -> None:
        self._conn.executemany(
            "INSERT INTO terms(date, name, description, difficulty) VALUES (?, ?, ?, ?)",
            [(r.date, r.name, r.description, r.difficulty) for r in records],
        )

    def _insert_history_sync(self, records: list[TermHistoryRecord]) -> None:
        self._conn.executemany(
            "INSERT INTO term_history(term_name, delivered_at, difficulty) VALUES (?, ?, ?)",
            [(r.term_name, _utc_iso(r.delivered_at), r.difficulty) for r in records],
        )

    def _update_metadata_sync(self, field: str, timestamp: datetime) -> None:
        self._conn.execute(
            f"UPDATE batch_metadata SET {field} = ? WHERE id = 1", (timestamp.isoformat(),)
        )

    def _record_failure_sync(self, entry: dict[str, Any]) -> None:
        self._conn.execute(
            "INSERT INTO error_logs(batch_type, date, payload, created_at) VALUES (?, ?, ?, ?)",
            (
                entry.get("batch_type", "unknown"),
                entry.get("date", ""),
                json.dumps(entry, ensure_ascii=False, default=str),
                self._clock().isoformat(),
            ),
        )

    @staticmethod
    def _decode_failure(row: sqlite3.Row) -> dict[str, Any]:
        data = dict(row)
        data["payload"] = json.loads(data["payload"])
        return data


__all__ = ["METADATA_FIELDS", "SQLiteManager", "SQLiteStore"]
