"""SQLite-backed storage for users, their current tokens and login history."""

from __future__ import annotations

import sqlite3
from contextlib import closing, contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, Optional

from cognito_auth.models.user import LoginHistoryEntry, StoredToken, User


class SQLiteStore:
    """Users are unique by email; each user has at most one token row."""

    def __init__(self, db_path: str) -> None:
        self._db_path = Path(db_path)
        if self._db_path.parent and not self._db_path.parent.exists():
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        with closing(sqlite3.connect(self._db_path, check_same_thread=False)) as conn:
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA foreign_keys = ON")
            with conn:
                yield conn

    def _ensure_schema(self) -> None:
        with self._connect() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS users (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    sub TEXT NOT NULL,
                    email TEXT NOT NULL UNIQUE,
                    name TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );
                CREATE TABLE IF NOT EXISTS tokens (
                    user_id INTEGER PRIMARY KEY REFERENCES users(id) ON DELETE CASCADE,
                    access_token TEXT NOT NULL,
                    refresh_token TEXT NOT NULL,
                    expires_at TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );
                CREATE TABLE IF NOT EXISTS login_history (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                    ip_address TEXT,
                    login_at TEXT NOT NULL
                );
                CREATE INDEX IF NOT EXISTS idx_login_history_user
                    ON login_history (user_id, login_at);
                """
            )

    # Users

    def upsert_user(self, *, email: str, sub: str, name: Optional[str]) -> User:
        """Create the user for ``email`` or update its ``sub`` and ``name``."""
        with self._connect() as conn:
            return _upsert_user(conn, email=email, sub=sub, name=name)

    def get_user(self, user_id: int) -> Optional[User]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        return User(**dict(row)) if row else None

    def get_user_by_email(self, email: str) -> Optional[User]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM users WHERE email = ?", (email,)).fetchone()
        return User(**dict(row)) if row else None

    # Tokens

    def save_token(
        self,
        *,
        user_id: int,
        access_token: str,
        refresh_token: str,
        expires_at: datetime,
    ) -> None:
        """Replace the user's token row; no token history is kept."""
        with self._connect() as conn:
            _write_token(conn, user_id, access_token, refresh_token, expires_at)

    def get_token(self, user_id: int) -> Optional[StoredToken]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM tokens WHERE user_id = ?", (user_id,)
            ).fetchone()
        return StoredToken(**dict(row)) if row else None

    # Login history

    def add_login_history(
        self,
        *,
        user_id: int,
        ip_address: Optional[str],
        login_at: datetime,
    ) -> LoginHistoryEntry:
        with self._connect() as conn:
            return _insert_login(conn, user_id, ip_address, login_at)

    def record_login(
        self,
        *,
        email: str,
        sub: str,
        name: Optional[str],
        access_token: str,
        refresh_token: str,
        expires_at: datetime,
        ip_address: Optional[str],
        login_at: datetime,
    ) -> User:
        """
        Upsert the user, replace their token and append a history row.

        The three writes share one transaction: either all of them land or,
        when any statement fails, none do.
        """
        with self._connect() as conn:
            user = _upsert_user(conn, email=email, sub=sub, name=name)
            _write_token(conn, user.id, access_token, refresh_token, expires_at)
            _insert_login(conn, user.id, ip_address, login_at)
        return user

    def list_login_history(self, user_id: int) -> list[LoginHistoryEntry]:
        """Return the user's logins, newest first."""
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT * FROM login_history
                WHERE user_id = ?
                ORDER BY login_at DESC, id DESC
                """,
                (user_id,),
            ).fetchall()
        return [LoginHistoryEntry(**dict(row)) for row in rows]

    def prune_login_history(self, *, before: datetime) -> int:
        """Delete login history recorded before ``before``; returns rows removed."""
        with self._connect() as conn:
            cursor = conn.execute(
                "DELETE FROM login_history WHERE login_at < ?",
                (before.isoformat(),),
            )
            return cursor.rowcount


def _upsert_user(
    conn: sqlite3.Connection, *, email: str, sub: str, name: Optional[str]
) -> User:
    now = _now()
    conn.execute(
        """
        INSERT INTO users (sub, email, name, created_at, updated_at)
        VALUES (?, ?, ?, ?, ?)
        ON CONFLICT(email) DO UPDATE SET
            sub = excluded.sub,
            name = excluded.name,
            updated_at = excluded.updated_at
        """,
        (sub, email, name, now, now),
    )
    row = conn.execute("SELECT * FROM users WHERE email = ?", (email,)).fetchone()
    return User(**dict(row))


def _write_token(
    conn: sqlite3.Connection,
    user_id: int,
    access_token: str,
    refresh_token: str,
    expires_at: datetime,
) -> None:
    now = _now()
    conn.execute(
        """
        INSERT INTO tokens
            (user_id, access_token, refresh_token, expires_at, created_at, updated_at)
        VALUES (?, ?, ?, ?, ?, ?)
        ON CONFLICT(user_id) DO UPDATE SET
            access_token = excluded.access_token,
            refresh_token = excluded.refresh_token,
            expires_at = excluded.expires_at,
            updated_at = excluded.updated_at
        """,
        (user_id, access_token, refresh_token, expires_at.isoformat(), now, now),
    )


def _insert_login(
    conn: sqlite3.Connection,
    user_id: int,
    ip_address: Optional[str],
    login_at: datetime,
) -> LoginHistoryEntry:
    cursor = conn.execute(
        "INSERT INTO login_history (user_id, ip_address, login_at) VALUES (?, ?, ?)",
        (user_id, ip_address, login_at.isoformat()),
    )
    return LoginHistoryEntry(
        id=cursor.lastrowid, user_id=user_id, ip_address=ip_address, login_at=login_at
    )


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


__all__ = ["SQLiteStore"]
