"""SQLite-based cache layer for registry version lists.

This module provides a persistent cache to avoid listing the versions of
the same package on every run. Entries expire quickly since new versions
are published all the time.
"""

import contextlib
import json
import sqlite3
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Optional


class VersionCache:
    """SQLite cache for storing registry version lists.

    Attributes:
        db_path: Path to the SQLite database file.
        ttl_hours: Number of hours before cache entries expire (default: 1).
    """

    DEFAULT_TTL_HOURS = 1

    def __init__(
        self,
        db_path: Optional[Path] = None,
        ttl_hours: float = DEFAULT_TTL_HOURS,
    ):
        """Initialize the version cache.

        Args:
            db_path: Path to SQLite database. If None, uses
                ~/.cache/depbump/cache.db.
            ttl_hours: Number of hours before cache entries expire.
        """
        if db_path is None:
            cache_dir = Path.home() / ".cache" / "depbump"
            cache_dir.mkdir(parents=True, exist_ok=True)
            db_path = cache_dir / "cache.db"

        self.db_path = db_path
        self.ttl_hours = ttl_hours
        self._conn: Optional[sqlite3.Connection] = None
        self._init_database()

    def __enter__(self) -> "VersionCache":
        """Enter context manager, keeping connection open."""
        self._conn = sqlite3.connect(self.db_path)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit context manager, closing connection."""
        if self._conn:
            self._conn.close()
            self._conn = None

    @contextlib.contextmanager
    def _connect(self):
        """Get a database connection.

        If used as a context manager (with statement), reuses the existing
        connection. Otherwise, creates a new one and closes it after use.
        """
        if self._conn:
            yield self._conn
        else:
            conn = sqlite3.connect(self.db_path)
            try:
                yield conn
            finally:
                conn.close()

    def _init_database(self) -> None:
        """Initialize the database schema if it doesn't exist."""
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS version_cache (
                    identity TEXT PRIMARY KEY,
                    versions TEXT NOT NULL,
                    fetched_at TEXT NOT NULL,
                    expires_at TEXT NOT NULL
                )
                """
            )
            conn.commit()

    def get(self, identity: str) -> Optional[list[str]]:
        """Retrieve the cached version list of a package.

        Args:
            identity: Dependency identity, e.g. ``"jsr:@std/fs"``.

        Returns:
            The version strings if cache hit and not expired,
            None if cache miss or expired.
        """
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT versions, expires_at FROM version_cache WHERE identity = ?",
                (identity,),
            )
            row = cursor.fetchone()

        if row is None:
            return None

        versions_json, expires_at_str = row
        if datetime.now(UTC) >= datetime.fromisoformat(expires_at_str):
            return None

        try:
            versions = json.loads(versions_json)
        except json.JSONDecodeError:
            # If data is corrupted, treat as cache miss
            return None
        if not isinstance(versions, list):
            return None
        return [str(version) for version in versions]

    def set(self, identity: str, versions: list[str]) -> None:
        """Store the version list of a package.

        Args:
            identity: Dependency identity.
            versions: Published version strings.
        """
        fetched_at = datetime.now(UTC)
        expires_at = fetched_at + timedelta(hours=self.ttl_hours)

        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                REPLACE INTO version_cache (identity, versions, fetched_at, expires_at)
                VALUES (?, ?, ?, ?)
                """,
                (
                    identity,
                    json.dumps(sorted(versions)),
                    fetched_at.isoformat(),
                    expires_at.isoformat(),
                ),
            )
            conn.commit()

    def clear(self, identity: Optional[str] = None) -> None:
        """Clear cache entries.

        Args:
            identity: If specified, clear only this package.
                If None, clear all entries.
        """
        with self._connect() as conn:
            cursor = conn.cursor()
            if identity is None:
                cursor.execute("DELETE FROM version_cache")
            else:
                cursor.execute("DELETE FROM version_cache WHERE identity = ?", (identity,))
            conn.commit()

    def info(self) -> dict:
        """Get cache statistics.

        Returns:
            Dictionary with cache information:
                - path: Path to cache database file
                - count: Number of cached entries
                - size_bytes: Database file size in bytes
        """
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT COUNT(*) FROM version_cache")
            count = cursor.fetchone()[0]

        size_bytes = self.db_path.stat().st_size if self.db_path.exists() else 0

        return {
            "path": str(self.db_path),
            "count": count,
            "size_bytes": size_bytes,
        }
