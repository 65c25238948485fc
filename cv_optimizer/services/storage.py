"""SQLite persistence for optimization records and trial usage counters."""

from __future__ import annotations

import json
import logging
import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator

from cv_optimizer.config import settings
from cv_optimizer.models.resume import StructuredResume

logger = logging.getLogger(__name__)

_store: "OptimizationStore | None" = None


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class OptimizationStore:
    """Stores optimization results per user and usage counts per session."""

    def __init__(self, db_path: str | Path):
        self.db_path = Path(db_path)

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """One connection per operation: committed on success, always closed."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    def init_db(self) -> None:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS cv_optimizations (
                    id TEXT PRIMARY KEY,
                    user_id TEXT,
                    job_description TEXT NOT NULL,
                    job_role TEXT,
                    optimized_content TEXT NOT NULL,
                    match_score INTEGER CHECK (match_score >= 0 AND match_score <= 100),
                    template_name TEXT DEFAULT 'modern',
                    created_at TEXT NOT NULL
                )
                """
            )
            conn.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_cv_optimizations_user_created
                ON cv_optimizations (user_id, created_at)
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS usage_tracking (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    session_id TEXT UNIQUE NOT NULL,
                    user_id TEXT,
                    usage_count INTEGER NOT NULL DEFAULT 0,
                    last_used_at TEXT NOT NULL,
                    created_at TEXT NOT NULL
                )
                """
            )
        logger.info("Database ready at %s", self.db_path)

    # --- Optimization records ---

    def save_optimization(
        self,
        *,
        user_id: str | None,
        job_description: str,
        job_role: str | None,
        resume: StructuredResume,
        template_name: str = "modern",
    ) -> dict[str, Any]:
        record = {
            "id": str(uuid.uuid4()),
            "user_id": user_id,
            "job_description": job_description,
            "job_role": job_role,
            "optimized_content": resume.to_json_dict(),
            "match_score": resume.match_score,
            "template_name": template_name,
            "created_at": _utc_now(),
        }
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO cv_optimizations (
                    id, user_id, job_description, job_role, optimized_content,
                    match_score, template_name, created_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record["id"],
                    user_id,
                    job_description,
                    job_role,
                    json.dumps(record["optimized_content"], ensure_ascii=False),
                    record["match_score"],
                    template_name,
                    record["created_at"],
                ),
            )
        return record

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> dict[str, Any]:
        record = dict(row)
        record["optimized_content"] = json.loads(record["optimized_content"])
        return record

    def list_optimizations(self, user_id: str) -> list[dict[str, Any]]:
        """All records for ``user_id``, newest first."""
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT * FROM cv_optimizations
                WHERE user_id = ?
                ORDER BY created_at DESC
                """,
                (user_id,),
            ).fetchall()
        return [self._row_to_record(row) for row in rows]

    def get_optimization(self, optimization_id: str) -> dict[str, Any] | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM cv_optimizations WHERE id = ?",
                (optimization_id,),
            ).fetchone()
        return self._row_to_record(row) if row else None

    def delete_optimization(self, optimization_id: str, user_id: str) -> bool:
        """Delete a record owned by ``user_id``. Returns False if none matched."""
        with self._connect() as conn:
            deleted = conn.execute(
                "DELETE FROM cv_optimizations WHERE id = ? AND user_id = ?",
                (optimization_id, user_id),
            ).rowcount
        return deleted > 0

    # --- Usage counters ---

    def get_usage_count(self, session_id: str, user_id: str | None = None) -> int:
        with self._connect() as conn:
            if user_id:
                row = conn.execute(
                    "SELECT usage_count FROM usage_tracking WHERE user_id = ? LIMIT 1",
                    (user_id,),
                ).fetchone()
                if row:
                    return int(row["usage_count"])
            row = conn.execute(
                "SELECT usage_count FROM usage_tracking WHERE session_id = ?",
                (session_id,),
            ).fetchone()
        return int(row["usage_count"]) if row else 0

    def increment_usage(self, session_id: str, user_id: str | None = None) -> None:
        """Increment the counter for this session (or user), creating it if needed.

        Best effort under concurrency: two tabs of one session may race, the
        unique session id only guarantees a single row.
        """
        now = _utc_now()
        with self._connect() as conn:
            cur = conn.execute(
                """
                UPDATE usage_tracking
                SET usage_count = usage_count + 1,
                    last_used_at = ?,
                    user_id = COALESCE(user_id, ?)
                WHERE id = (
                    SELECT id FROM usage_tracking
                    WHERE session_id = ? OR (? IS NOT NULL AND user_id = ?)
                    LIMIT 1
                )
                """,
                (now, user_id, session_id, user_id, user_id),
            )
            if cur.rowcount == 0:
                conn.execute(
                    """
                    INSERT INTO usage_tracking (session_id, user_id, usage_count, last_used_at, created_at)
                    VALUES (?, ?, 1, ?, ?)
                    ON CONFLICT(session_id) DO UPDATE SET
                        usage_count = usage_count + 1,
                        last_used_at = excluded.last_used_at
                    """,
                    (session_id, user_id, now, now),
                )


def get_store() -> OptimizationStore:
    global _store
    if _store is None:
        _store = OptimizationStore(settings.database_path)
        _store.init_db()
    return _store
