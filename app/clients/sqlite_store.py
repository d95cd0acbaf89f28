"""SQLite-backed durable store for credential records."""

from __future__ import annotations

import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Optional

from app.models.credentials import CredentialRecord
from app.services.errors import StorePersistError


class SQLiteCredentialRepository:
    """
    Append-only credential table.

    Rotations insert new rows rather than updating old ones so the history of
    a credential is kept. ``access_token`` carries a unique index, so a token
    can never belong to two records.
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = Path(db_path)
        if self._db_path.parent and not self._db_path.parent.exists():
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_schema(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS credential_records (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    access_token TEXT NOT NULL,
                    refresh_token TEXT NOT NULL,
                    expires_at TEXT NOT NULL,
                    provider_id TEXT NOT NULL,
                    user_id TEXT,
                    created_at TEXT NOT NULL
                )
                """
            )
            conn.execute(
                """
                CREATE UNIQUE INDEX IF NOT EXISTS idx_credential_records_access_token
                ON credential_records (access_token)
                """
            )
            conn.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_credential_records_identity
                ON credential_records (user_id, provider_id)
                """
            )

    def create(self, record: CredentialRecord) -> None:
        try:
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT INTO credential_records (
                        access_token, refresh_token, expires_at,
                        provider_id, user_id, created_at
                    )
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (
                        record.access_token,
                        record.refresh_token,
                        record.expires_at.isoformat(),
                        record.provider_id,
                        record.user_id,
                        record.created_at.isoformat(),
                    ),
                )
        except sqlite3.IntegrityError as exc:
            raise StorePersistError("Access token already recorded.") from exc
        except sqlite3.Error as exc:
            raise StorePersistError(str(exc)) from exc

    def find_latest(self, access_token: str) -> Optional[CredentialRecord]:
        with self._connect() as conn:
            row = conn.execute(
                """
                SELECT * FROM credential_records
                WHERE access_token = ?
                ORDER BY created_at DESC, id DESC
                LIMIT 1
                """,
                (access_token,),
            ).fetchone()
        if not row:
            return None
        return self._row_to_record(row)

    def find_latest_for_identity(
        self, provider_id: str, user_id: Optional[str]
    ) -> Optional[CredentialRecord]:
        """Return the newest record for an identity; a missing user id matches NULL."""
        with self._connect() as conn:
            row = conn.execute(
                """
                SELECT * FROM credential_records
                WHERE provider_id = ? AND user_id IS ?
                ORDER BY created_at DESC, id DESC
                LIMIT 1
                """,
                (provider_id, user_id),
            ).fetchone()
        if not row:
            return None
        return self._row_to_record(row)

    def history(self, *, provider_id: str, user_id: str | None = None) -> list[CredentialRecord]:
        """Return every record for an identity, newest first."""
        query = "SELECT * FROM credential_records WHERE provider_id = ?"
        params: tuple = (provider_id,)
        if user_id is not None:
            query += " AND user_id = ?"
            params = (provider_id, user_id)
        with self._connect() as conn:
            rows = conn.execute(query + " ORDER BY created_at DESC, id DESC", params).fetchall()
        return [self._row_to_record(row) for row in rows]

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> CredentialRecord:
        return CredentialRecord(
            access_token=row["access_token"],
            refresh_token=row["refresh_token"],
            expires_at=datetime.fromisoformat(row["expires_at"]),
            provider_id=row["provider_id"],
            user_id=row["user_id"],
            created_at=datetime.fromisoformat(row["created_at"]),
        )


__all__ = ["SQLiteCredentialRepository"]
