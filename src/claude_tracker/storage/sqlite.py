"""Local SQLite storage for finished sessions."""

import json
import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from claude_tracker.errors import SessionPersistenceError
from claude_tracker.models.session import EndReason, Session

logger = logging.getLogger(__name__)

DB_FILENAME = "sessions.db"

SCHEMA = """
CREATE TABLE IF NOT EXISTS sessions (
    id TEXT PRIMARY KEY,
    project_path TEXT NOT NULL,
    project_name TEXT NOT NULL,
    branch TEXT NOT NULL DEFAULT '',
    feature TEXT NOT NULL,
    start_time TEXT NOT NULL,
    end_time TEXT NOT NULL,
    duration_ms INTEGER NOT NULL,
    end_reason TEXT NOT NULL,
    commits TEXT NOT NULL DEFAULT '[]',
    changed_files TEXT NOT NULL DEFAULT '[]',
    pr_url TEXT,
    conversation_summary TEXT,
    record_synced INTEGER NOT NULL DEFAULT 0,
    record_id TEXT,
    notification_sent INTEGER NOT NULL DEFAULT 0
);

CREATE INDEX IF NOT EXISTS idx_sessions_project ON sessions(project_path);
CREATE INDEX IF NOT EXISTS idx_sessions_start ON sessions(start_time);
CREATE INDEX IF NOT EXISTS idx_sessions_synced ON sessions(record_synced);
"""

# Content columns are rewritten on conflict; delivery flags never are.
UPSERT = """
INSERT INTO sessions (
    id, project_path, project_name, branch, feature,
    start_time, end_time, duration_ms, end_reason,
    commits, changed_files, pr_url, conversation_summary,
    record_synced, record_id, notification_sent
) VALUES (
    :id, :project_path, :project_name, :branch, :feature,
    :start_time, :end_time, :duration_ms, :end_reason,
    :commits, :changed_files, :pr_url, :conversation_summary,
    :record_synced, :record_id, :notification_sent
)
ON CONFLICT(id) DO UPDATE SET
    project_path = excluded.project_path,
    project_name = excluded.project_name,
    branch = excluded.branch,
    feature = excluded.feature,
    start_time = excluded.start_time,
    end_time = excluded.end_time,
    duration_ms = excluded.duration_ms,
    end_reason = excluded.end_reason,
    commits = excluded.commits,
    changed_files = excluded.changed_files,
    pr_url = excluded.pr_url,
    conversation_summary = excluded.conversation_summary
"""


def _iso(value: datetime) -> str:
    """UTC ISO-8601 with fixed precision, so stored strings sort by time."""
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _to_row(session: Session) -> dict:
    return {
        "id": session.id,
        "project_path": str(session.project_path),
        "project_name": session.project_name,
        "branch": session.branch,
        "feature": session.feature,
        "start_time": _iso(session.start_time),
        "end_time": _iso(session.end_time),
        "duration_ms": session.duration_ms,
        "end_reason": session.end_reason.value,
        "commits": json.dumps(session.commits),
        "changed_files": json.dumps(session.changed_files),
        "pr_url": session.pr_url,
        "conversation_summary": session.conversation_summary,
        "record_synced": int(session.record_synced),
        "record_id": session.record_id,
        "notification_sent": int(session.notification_sent),
    }


def _from_row(row: sqlite3.Row) -> Session:
    return Session(
        id=row["id"],
        project_path=Path(row["project_path"]),
        project_name=row["project_name"],
        branch=row["branch"],
        feature=row["feature"],
        start_time=datetime.fromisoformat(row["start_time"]),
        end_time=datetime.fromisoformat(row["end_time"]),
        end_reason=EndReason(row["end_reason"]),
        commits=json.loads(row["commits"]),
        changed_files=json.loads(row["changed_files"]),
        pr_url=row["pr_url"],
        conversation_summary=row["conversation_summary"],
        record_synced=bool(row["record_synced"]),
        record_id=row["record_id"],
        notification_sent=bool(row["notification_sent"]),
    )


class SessionStore:
    """The authoritative record of every finished session."""

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self._conn: Optional[sqlite3.Connection] = None

    @property
    def conn(self) -> sqlite3.Connection:
        """Open the database on first use."""
        if self._conn is None:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(str(self.db_path))
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA journal_mode = WAL")
            self._conn.executescript(SCHEMA)
        return self._conn

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def save(self, session: Session) -> None:
        """Insert a session, or rewrite its content if the id already exists.

        Raises:
            SessionPersistenceError: The write failed.
        """
        try:
            with self.conn:
                self.conn.execute(UPSERT, _to_row(session))
        except sqlite3.Error as e:
            raise SessionPersistenceError(
                f"Could not save session {session.id}: {e}"
            ) from e
        logger.debug("Session %s saved to SQLite", session.id)

    def get(self, session_id: str) -> Optional[Session]:
        row = self.conn.execute(
            "SELECT * FROM sessions WHERE id = ?", (session_id,)
        ).fetchone()
        return _from_row(row) if row else None

    def get_unsynced(self) -> List[Session]:
        """Sessions not yet in the record store, oldest first."""
        rows = self.conn.execute(
            "SELECT * FROM sessions WHERE record_synced = 0 ORDER BY start_time ASC"
        ).fetchall()
        return [_from_row(row) for row in rows]

    def mark_synced(self, session_id: str, record_id: str) -> None:
        with self.conn:
            self.conn.execute(
                "UPDATE sessions SET record_synced = 1, record_id = ? WHERE id = ?",
                (record_id, session_id),
            )
        logger.debug("Session %s marked as synced", session_id)

    def mark_notified(self, session_id: str) -> None:
        with self.conn:
            self.conn.execute(
                "UPDATE sessions SET notification_sent = 1 WHERE id = ?",
                (session_id,),
            )
        logger.debug("Session %s marked as notified", session_id)

    def get_all(self, limit: Optional[int] = None) -> List[Session]:
        """Most recent sessions first."""
        query = "SELECT * FROM sessions ORDER BY start_time DESC"
        params: tuple = ()
        if limit is not None:
            query += " LIMIT ?"
            params = (limit,)
        return [_from_row(row) for row in self.conn.execute(query, params).fetchall()]

    def get_by_date_range(self, start: datetime, end: datetime) -> List[Session]:
        """Sessions that started within [start, end], most recent first."""
        rows = self.conn.execute(
            "SELECT * FROM sessions WHERE start_time >= ? AND start_time <= ? "
            "ORDER BY start_time DESC",
            (_iso(start), _iso(end)),
        ).fetchall()
        return [_from_row(row) for row in rows]
