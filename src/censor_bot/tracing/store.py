"""SQLite storage for traces."""

import json
import logging
import sqlite3
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from censor_bot.tracing.context import TraceContext

logger = logging.getLogger(__name__)


@dataclass
class TraceSummary:
    """Lightweight summary of a trace for list views."""

    id: str
    created_at: datetime
    group_id: int
    sender_id: int
    content_preview: str
    outcome: str

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "created_at": self.created_at.isoformat(),
            "group_id": self.group_id,
            "sender_id": self.sender_id,
            "content_preview": self.content_preview,
            "outcome": self.outcome,
        }


class TraceStore:
    """SQLite-backed trace storage."""

    def __init__(self, db_path: Path | str):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._ensure_schema()
        logger.info(f"TraceStore initialized at {self.db_path}")

    def _ensure_schema(self) -> None:
        """Create tables if they don't exist."""
        self._conn.executescript("""
            CREATE TABLE IF NOT EXISTS traces (
                id TEXT PRIMARY KEY,
                created_at TIMESTAMP NOT NULL,
                group_id INTEGER NOT NULL,
                sender_id INTEGER NOT NULL,
                content_preview TEXT,
                outcome TEXT NOT NULL,
                trace_json TEXT NOT NULL
            );
            CREATE INDEX IF NOT EXISTS idx_traces_created ON traces(created_at DESC);
            CREATE INDEX IF NOT EXISTS idx_traces_group ON traces(group_id);
            CREATE INDEX IF NOT EXISTS idx_traces_outcome ON traces(outcome);
        """)
        self._conn.commit()

    def save(self, trace: TraceContext) -> None:
        """Save a trace to the database."""
        outcome = trace.outcome
        self._conn.execute(
            """
            INSERT OR REPLACE INTO traces
            (id, created_at, group_id, sender_id, content_preview, outcome, trace_json)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                trace.id,
                trace.started_at.isoformat(),
                trace.group_id,
                trace.sender_id,
                trace.content[:100],
                outcome,
                json.dumps(trace.to_dict(), ensure_ascii=False),
            ),
        )
        self._conn.commit()
        logger.debug(f"Saved trace {trace.id[:8]}... outcome={outcome}")

    def get(self, trace_id: str) -> TraceContext | None:
        """Get a trace by ID."""
        row = self._conn.execute(
            "SELECT trace_json FROM traces WHERE id = ?", (trace_id,)
        ).fetchone()
        if row is None:
            return None
        return TraceContext.from_dict(json.loads(row["trace_json"]))

    def recent(
        self,
        limit: int = 50,
        group_id: int | None = None,
        outcome: str | None = None,
    ) -> list[TraceSummary]:
        """Get recent trace summaries."""
        query = "SELECT id, created_at, group_id, sender_id, content_preview, outcome FROM traces"
        params: list = []
        conditions = []

        if group_id is not None:
            conditions.append("group_id = ?")
            params.append(group_id)
        if outcome:
            conditions.append("outcome = ?")
            params.append(outcome)

        if conditions:
            query += " WHERE " + " AND ".join(conditions)

        query += " ORDER BY created_at DESC LIMIT ?"
        params.append(limit)

        rows = self._conn.execute(query, params).fetchall()
        return [
            TraceSummary(
                id=row["id"],
                created_at=datetime.fromisoformat(row["created_at"]),
                group_id=row["group_id"],
                sender_id=row["sender_id"],
                content_preview=row["content_preview"] or "",
                outcome=row["outcome"],
            )
            for row in rows
        ]

    def outcome_counts(self, group_id: int | None = None) -> dict[str, int]:
        """Number of stored traces per outcome."""
        query = "SELECT outcome, COUNT(*) AS n FROM traces"
        params: list = []
        if group_id is not None:
            query += " WHERE group_id = ?"
            params.append(group_id)
        query += " GROUP BY outcome"
        return {row["outcome"]: row["n"] for row in self._conn.execute(query, params)}

    def prune(self, keep_last: int = 500) -> int:
        """Delete old traces, keeping the most recent. Returns count deleted."""
        cutoff = self._conn.execute(
            "SELECT created_at FROM traces ORDER BY created_at DESC LIMIT 1 OFFSET ?",
            (keep_last - 1,),
        ).fetchone()

        if cutoff is None:
            return 0  # Fewer traces than keep_last

        result = self._conn.execute(
            "DELETE FROM traces WHERE created_at < ?", (cutoff["created_at"],)
        )
        self._conn.commit()
        deleted = result.rowcount
        if deleted > 0:
            logger.info(f"Pruned {deleted} old traces")
        return deleted

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()
