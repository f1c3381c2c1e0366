"""SQLite-backed merge journal for resuming interrupted runs."""

import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Optional

from .paths import normalize_store_path


class MergeJournal:
    """Records which source stores have been fully merged into a destination."""

    def __init__(self, db_path: Path):
        self.db_path = db_path
        self.conn = sqlite3.connect(str(db_path), isolation_level=None)
        self.conn.execute("PRAGMA journal_mode=WAL")
        self._init_schema()

    def _init_schema(self) -> None:
        """Initialize database schema."""
        self.conn.executescript("""
            CREATE TABLE IF NOT EXISTS metadata (
                key TEXT PRIMARY KEY,
                value TEXT
            );

            CREATE TABLE IF NOT EXISTS merged_sources (
                source_key TEXT PRIMARY KEY,
                source_path TEXT NOT NULL,
                items_moved INTEGER NOT NULL,
                merged_at TEXT NOT NULL
            );
        """)

    def close(self) -> None:
        """Close the database connection."""
        self.conn.close()

    def get_metadata(self, key: str, default: Optional[str] = None) -> Optional[str]:
        """Get a metadata value."""
        cursor = self.conn.execute(
            "SELECT value FROM metadata WHERE key = ?", (key,)
        )
        row = cursor.fetchone()
        return row[0] if row else default

    def set_metadata(self, key: str, value: str) -> None:
        """Set a metadata value."""
        self.conn.execute(
            "INSERT OR REPLACE INTO metadata (key, value) VALUES (?, ?)",
            (key, value)
        )

    def get_destination(self) -> Optional[str]:
        """Destination store this journal belongs to, if recorded."""
        return self.get_metadata("destination")

    def set_destination(self, destination: str) -> None:
        self.set_metadata("destination", destination)

    def belongs_to(self, destination: str) -> bool:
        """Check whether the journal is empty or was written for ``destination``."""
        recorded = self.get_destination()
        if recorded is None:
            return True
        return normalize_store_path(recorded) == normalize_store_path(destination)

    def mark_source_merged(self, source_path: str, items_moved: int) -> None:
        """Record a source store as completely merged."""
        self.conn.execute(
            """INSERT OR REPLACE INTO merged_sources
               (source_key, source_path, items_moved, merged_at)
               VALUES (?, ?, ?, ?)""",
            (normalize_store_path(source_path), source_path, items_moved,
             datetime.now().isoformat())
        )

    def is_source_merged(self, source_path: str) -> bool:
        """Check if a source store was merged in an earlier run."""
        cursor = self.conn.execute(
            "SELECT 1 FROM merged_sources WHERE source_key = ?",
            (normalize_store_path(source_path),)
        )
        return cursor.fetchone() is not None

    def get_merged_sources(self) -> dict[str, int]:
        """Get merged source paths mapped to the number of items moved."""
        cursor = self.conn.execute(
            "SELECT source_path, items_moved FROM merged_sources ORDER BY merged_at"
        )
        return {row[0]: row[1] for row in cursor}

    def get_merged_count(self) -> int:
        """Get the count of merged sources."""
        cursor = self.conn.execute("SELECT COUNT(*) FROM merged_sources")
        return cursor.fetchone()[0]

    def clear(self) -> None:
        """Delete the database file."""
        self.conn.close()
        if self.db_path.exists():
            self.db_path.unlink()
