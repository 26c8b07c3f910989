"""
Database - Storage collaborator for the mail sync pipeline

This module defines the storage contract the pipeline consumes
(StorageBackend) and its SQLite implementation. Tables:
- applications: Persisted job application records
- email_connections: One OAuth mailbox credential per user
- sync_history: One row per completed sync invocation

Uses WAL (Write-Ahead Logging) mode for file databases.
"""

import sqlite3
import threading
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from pathlib import Path
from typing import List, Optional, Union

from careerpulse.errors import StorageError
from careerpulse.logging_config import get_logger
from careerpulse.models import (
    CandidateRecord,
    Credential,
    StoredRecord,
    SyncSummary,
    ensure_utc,
    utcnow,
)
from careerpulse.normalize import normalize_company, normalize_title

logger = get_logger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS applications (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    company TEXT NOT NULL,
    title TEXT NOT NULL,
    location TEXT,
    status TEXT NOT NULL CHECK(status IN ('Applied', 'Interview', 'Offer', 'Rejected')),
    date_applied TEXT NOT NULL,
    normalized_company TEXT NOT NULL,
    normalized_title TEXT NOT NULL,
    source TEXT,
    source_message_id TEXT,
    confidence INTEGER DEFAULT 0,
    is_duplicate_of TEXT,
    remote_policy TEXT,
    notes TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_applications_exact
    ON applications(user_id, normalized_company, normalized_title, date_applied);
CREATE INDEX IF NOT EXISTS idx_applications_recent
    ON applications(user_id, created_at);

CREATE TABLE IF NOT EXISTS email_connections (
    user_id TEXT PRIMARY KEY,
    email TEXT,
    access_token TEXT NOT NULL,
    refresh_token TEXT NOT NULL,
    expires_at TEXT NOT NULL,
    connected INTEGER DEFAULT 1,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS sync_history (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL,
    finished_at TEXT NOT NULL,
    total_emails INTEGER,
    job_emails INTEGER,
    new_applications INTEGER,
    duplicates INTEGER,
    errors INTEGER,
    cancelled INTEGER DEFAULT 0
);

CREATE INDEX IF NOT EXISTS idx_sync_history_user ON sync_history(user_id, finished_at);
"""


class StorageBackend(ABC):
    """
    Storage contract consumed by the sync pipeline.

    Implementations raise StorageError for any backend failure.
    """

    @abstractmethod
    def create_record(self, record: CandidateRecord) -> str:
        """Persist a candidate record and return its id."""
        pass

    @abstractmethod
    def find_duplicate_candidate(
        self, user_id: str, company: str, title: str, date_applied: str
    ) -> Optional[StoredRecord]:
        """Return a stored record with the same normalized company, title and date."""
        pass

    @abstractmethod
    def find_recent_records(
        self, user_id: str, lookback: timedelta, limit: int = 200
    ) -> List[StoredRecord]:
        """Return the user's records stored within the lookback window, newest first."""
        pass

    @abstractmethod
    def get_credential(self, user_id: str) -> Optional[Credential]:
        """Return the user's connected credential, or None."""
        pass

    @abstractmethod
    def save_credential(self, credential: Credential) -> None:
        pass

    @abstractmethod
    def mark_disconnected(self, user_id: str) -> None:
        pass

    @abstractmethod
    def delete_credential(self, user_id: str) -> None:
        pass

    @abstractmethod
    def record_sync_run(self, user_id: str, summary: SyncSummary) -> None:
        pass

    @abstractmethod
    def get_last_sync(self, user_id: str) -> Optional[str]:
        """ISO timestamp of the user's last completed sync, or None."""
        pass

    def ping(self) -> None:
        """Raise StorageError if the backend is unreachable."""
        pass


def _row_to_record(row: sqlite3.Row) -> StoredRecord:
    return StoredRecord(
        id=row["id"],
        user_id=row["user_id"],
        company=row["company"],
        title=row["title"],
        location=row["location"],
        status=row["status"],
        date_applied=row["date_applied"],
        created_at=row["created_at"],
    )


class SQLiteStorage(StorageBackend):
    """
    SQLite implementation of the storage contract.

    A single connection is shared by all threads and serialized with a lock,
    which also makes ':memory:' databases usable across threads.
    """

    def __init__(self, db_path: Union[str, Path] = "careerpulse.db"):
        self.db_path = str(db_path)
        try:
            self._conn = sqlite3.connect(self.db_path, timeout=30.0, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            if self.db_path != ":memory:":
                self._conn.execute("PRAGMA journal_mode=WAL")
        except sqlite3.Error as e:
            raise StorageError(f"Failed to open database {self.db_path}: {e}") from e
        self._lock = threading.RLock()

    def init_db(self) -> None:
        """Create tables and indexes if they don't exist."""
        with self._lock:
            try:
                self._conn.executescript(SCHEMA)
                self._conn.commit()
            except sqlite3.Error as e:
                raise StorageError(f"Failed to initialize database: {e}") from e
        logger.info(f"Database initialized at {self.db_path}")

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def ping(self) -> None:
        self._execute("SELECT 1")

    def _execute(self, sql: str, params: tuple = (), commit: bool = False) -> List[sqlite3.Row]:
        """Run one statement and return its rows, fetched while the lock is held."""
        with self._lock:
            try:
                rows = self._conn.execute(sql, params).fetchall()
                if commit:
                    self._conn.commit()
                return rows
            except sqlite3.Error as e:
                if commit:
                    self._conn.rollback()
                raise StorageError(f"Database operation failed: {e}") from e

    # ===== APPLICATIONS =====

    def create_record(self, record: CandidateRecord) -> str:
        record_id = f"app-{uuid.uuid4().hex}"
        now = utcnow().isoformat()
        self._execute(
            """INSERT INTO applications
               (id, user_id, company, title, location, status, date_applied,
                normalized_company, normalized_title, source, source_message_id,
                confidence, is_duplicate_of, remote_policy, notes, created_at, updated_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                record_id,
                record.user_id,
                record.company,
                record.title,
                record.location,
                record.status.value,
                record.date_applied,
                normalize_company(record.company),
                normalize_title(record.title),
                record.source,
                record.source_message_id,
                record.confidence,
                record.is_duplicate_of,
                record.remote_policy,
                record.notes,
                now,
                now,
            ),
            commit=True,
        )
        return record_id

    def find_duplicate_candidate(
        self, user_id: str, company: str, title: str, date_applied: str
    ) -> Optional[StoredRecord]:
        # Original records sort ahead of flagged duplicates
        rows = self._execute(
            """SELECT * FROM applications
               WHERE user_id = ? AND normalized_company = ? AND normalized_title = ?
                 AND date_applied = ?
               ORDER BY is_duplicate_of IS NOT NULL, created_at
               LIMIT 1""",
            (user_id, normalize_company(company), normalize_title(title), date_applied),
        )
        return _row_to_record(rows[0]) if rows else None

    def find_recent_records(
        self, user_id: str, lookback: timedelta, limit: int = 200
    ) -> List[StoredRecord]:
        cutoff = (utcnow() - lookback).isoformat()
        rows = self._execute(
            """SELECT * FROM applications
               WHERE user_id = ? AND created_at >= ? AND is_duplicate_of IS NULL
               ORDER BY created_at DESC
               LIMIT ?""",
            (user_id, cutoff, limit),
        )
        return [_row_to_record(row) for row in rows]

    def list_records(self, user_id: str) -> List[StoredRecord]:
        """All records for a user, oldest first."""
        rows = self._execute(
            "SELECT * FROM applications WHERE user_id = ? ORDER BY created_at",
            (user_id,),
        )
        return [_row_to_record(row) for row in rows]

    # ===== EMAIL CONNECTIONS =====

    def get_credential(self, user_id: str) -> Optional[Credential]:
        rows = self._execute(
            "SELECT * FROM email_connections WHERE user_id = ? AND connected = 1",
            (user_id,),
        )
        if not rows:
            return None
        row = rows[0]
        return Credential(
            user_id=row["user_id"],
            access_token=row["access_token"],
            refresh_token=row["refresh_token"],
            expires_at=datetime.fromisoformat(row["expires_at"]),
            email=row["email"],
            connected=bool(row["connected"]),
        )

    def save_credential(self, credential: Credential) -> None:
        now = utcnow().isoformat()
        self._execute(
            """INSERT INTO email_connections
               (user_id, email, access_token, refresh_token, expires_at, connected,
                created_at, updated_at)
               VALUES (?, ?, ?, ?, ?, 1, ?, ?)
               ON CONFLICT(user_id) DO UPDATE SET
                   email = COALESCE(excluded.email, email),
                   access_token = excluded.access_token,
                   refresh_token = excluded.refresh_token,
                   expires_at = excluded.expires_at,
                   connected = 1,
                   updated_at = excluded.updated_at""",
            (
                credential.user_id,
                credential.email,
                credential.access_token,
                credential.refresh_token,
                ensure_utc(credential.expires_at).isoformat(),
                now,
                now,
            ),
            commit=True,
        )

    def mark_disconnected(self, user_id: str) -> None:
        self._execute(
            "UPDATE email_connections SET connected = 0, updated_at = ? WHERE user_id = ?",
            (utcnow().isoformat(), user_id),
            commit=True,
        )

    def delete_credential(self, user_id: str) -> None:
        self._execute("DELETE FROM email_connections WHERE user_id = ?", (user_id,), commit=True)

    # ===== SYNC HISTORY =====

    def record_sync_run(self, user_id: str, summary: SyncSummary) -> None:
        self._execute(
            """INSERT INTO sync_history
               (user_id, finished_at, total_emails, job_emails, new_applications,
                duplicates, errors, cancelled)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                user_id,
                utcnow().isoformat(),
                summary.total_emails,
                summary.job_emails,
                summary.new_applications,
                summary.duplicates,
                summary.errors,
                int(summary.cancelled),
            ),
            commit=True,
        )

    def get_last_sync(self, user_id: str) -> Optional[str]:
        rows = self._execute(
            "SELECT MAX(finished_at) AS last_sync FROM sync_history WHERE user_id = ?",
            (user_id,),
        )
        return rows[0]["last_sync"] if rows else None
