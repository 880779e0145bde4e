"""Read-only access to Safari's browsing history.

Safari keeps its history in a private SQLite database (History.db):

- history_items: one row per URL
- history_visits: one row per visit, with the page title and a Cocoa
  timestamp (seconds since 2001-01-01 UTC)
"""
import sqlite3
import sys
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, List, Optional

import aiosqlite

from safari_data.errors import DatabaseError, SourceUnavailable


# Seconds between the Unix epoch (1970) and the Cocoa epoch (2001)
COCOA_EPOCH_OFFSET = 978307200

MAX_SEARCH_RESULTS = 200

_SELECT_VISITS = """
    SELECT history_items.url, history_visits.visit_time, history_visits.title
        FROM history_items
            LEFT JOIN history_visits
                ON history_visits.history_item = history_items.id
        WHERE history_visits.title <> '' AND history_items.url LIKE 'http%'
"""


def cocoa_to_datetime(cocoa_time: Optional[float]) -> Optional[datetime]:
    """Convert a Cocoa timestamp to an aware UTC datetime."""
    if cocoa_time is None:
        return None
    try:
        return datetime.fromtimestamp(cocoa_time + COCOA_EPOCH_OFFSET, tz=timezone.utc)
    except (ValueError, OSError, OverflowError):
        return None


@dataclass
class HistoryEntry:
    """A single visit from Safari's history."""
    title: str
    url: str
    time: Optional[datetime]

    def to_dict(self) -> dict:
        return {
            "title": self.title,
            "url": self.url,
            "time": self.time.isoformat() if self.time else None,
        }


async def open_readonly(db_path: Path) -> aiosqlite.Connection:
    """Open one of Safari's databases without write access.

    Raises:
        SourceUnavailable: If the database file doesn't exist
        DatabaseError: If SQLite can't open it
    """
    if not db_path.exists():
        raise SourceUnavailable(f"Database not found at {db_path}")

    uri = db_path.resolve().as_uri() + "?mode=ro"
    try:
        connection = await aiosqlite.connect(uri, uri=True)
    except sqlite3.Error as e:
        raise DatabaseError(f"Could not open {db_path}: {e}") from e

    connection.row_factory = aiosqlite.Row
    return connection


class HistoryStore:
    """Async reader for Safari's History.db."""

    def __init__(self, db_path: Optional[Path] = None, max_search_results: int = MAX_SEARCH_RESULTS):
        """Initialize the history store.

        Args:
            db_path: Path to History.db. Defaults to the configured location.
            max_search_results: Maximum number of results returned by search()
        """
        if db_path is None:
            from safari_data.config import get_config
            db_path = get_config().history.path
        self.db_path = Path(db_path)
        self.max_search_results = max_search_results
        self._connection: Optional[aiosqlite.Connection] = None

    async def initialize(self) -> None:
        """Open the database."""
        self._connection = await open_readonly(self.db_path)

    async def close(self) -> None:
        """Close the database connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None

    async def __aenter__(self) -> "HistoryStore":
        await self.initialize()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def recent(self, count: int) -> List[HistoryEntry]:
        """Get the most recent history entries.

        Args:
            count: Number of entries to return

        Returns:
            Entries with a title and an http(s) URL, newest first
        """
        return await self._query(
            _SELECT_VISITS + " ORDER BY history_visits.visit_time DESC LIMIT ?",
            count,
        )

    async def search(self, query: str) -> List[HistoryEntry]:
        """Search history entries by title.

        Args:
            query: Text to look for in page titles

        Returns:
            Matching entries, newest first, at most max_search_results
        """
        if not query:
            return []

        return await self._query(
            _SELECT_VISITS + " AND history_visits.title LIKE ?"
            " ORDER BY history_visits.visit_time DESC LIMIT ?",
            f"%{query}%",
            self.max_search_results,
        )

    async def _query(self, sql: str, *params: Any) -> List[HistoryEntry]:
        if not self._connection:
            raise RuntimeError("HistoryStore not initialized. Call initialize() first.")

        try:
            cursor = await self._connection.execute(sql, params)
            rows = await cursor.fetchall()
        except sqlite3.Error as e:
            print(f"[History] Query failed on {self.db_path}: {e}", file=sys.stderr)
            raise DatabaseError(f"History query failed: {e}") from e

        return [
            HistoryEntry(
                title=row["title"] or "",
                url=row["url"] or "",
                time=cocoa_to_datetime(row["visit_time"]),
            )
            for row in rows
        ]
