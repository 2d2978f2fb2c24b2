"""Append-only SQLite store for research findings."""

from __future__ import annotations

import asyncio
import sqlite3
import threading
from pathlib import Path

from deep_research.errors import ResearchError
from deep_research.models.finding import Finding
from deep_research.services.logger import log_db_operation

TABLE = "findings"

SCHEMA = f"""
CREATE TABLE IF NOT EXISTS {TABLE} (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    query TEXT,
    source TEXT,
    content TEXT,
    score REAL,
    timestamp TEXT
)
"""


class FindingStore:
    """One shared connection; blocking calls run in a worker thread under a lock."""

    def __init__(self, db_path: str | Path = "research_memory.db"):
        self.db_path = str(db_path)
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        try:
            self._conn: sqlite3.Connection | None = sqlite3.connect(self.db_path, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            with self._lock:
                self._conn.execute(SCHEMA)
                self._conn.commit()
        except sqlite3.Error as exc:
            log_db_operation("open", TABLE, "failed", details=self.db_path, error=str(exc))
            raise ResearchError(f"Cannot open findings database {self.db_path}: {exc}") from exc

    @property
    def closed(self) -> bool:
        return self._conn is None

    def _connection(self) -> sqlite3.Connection:
        if self._conn is None:
            raise sqlite3.ProgrammingError("Finding store is closed")
        return self._conn

    def _insert(self, finding: Finding) -> int:
        with self._lock:
            conn = self._connection()
            cursor = conn.execute(
                f"INSERT INTO {TABLE} (query, source, content, score, timestamp) VALUES (?, ?, ?, ?, ?)",
                (finding.query, finding.source, finding.content, finding.score, finding.timestamp),
            )
            conn.commit()
            return int(cursor.lastrowid)

    async def insert(self, finding: Finding) -> int | None:
        """Persist ``finding`` and return its row id, or None when the write failed."""
        try:
            row_id = await asyncio.to_thread(self._insert, finding)
        except sqlite3.Error as exc:
            log_db_operation("insert", TABLE, "failed", details=finding.source, error=str(exc))
            return None
        log_db_operation("insert", TABLE, "success", details=f"id={row_id} source={finding.source}")
        return row_id

    def _query(self, pattern: str, limit: int) -> list[Finding]:
        with self._lock:
            rows = self._connection().execute(
                f"SELECT id, query, source, content, score, timestamp FROM {TABLE} "
                "WHERE query LIKE ? ORDER BY score DESC LIMIT ?",
                (f"%{pattern}%", limit),
            ).fetchall()
        return [
            Finding(
                query=row["query"],
                source=row["source"],
                content=row["content"],
                score=row["score"],
                timestamp=row["timestamp"],
                id=row["id"],
            )
            for row in rows
        ]

    async def query_by_substring(self, pattern: str, limit: int = 10) -> list[Finding]:
        """Stored findings whose sub-question contains ``pattern``, best score first."""
        try:
            findings = await asyncio.to_thread(self._query, pattern, limit)
        except sqlite3.Error as exc:
            log_db_operation("select", TABLE, "failed", details=pattern, error=str(exc))
            raise
        log_db_operation("select", TABLE, "success", details=f"pattern={pattern!r} rows={len(findings)}")
        return findings

    async def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
        log_db_operation("close", TABLE, "success")
