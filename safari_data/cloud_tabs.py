"""Read-only access to tabs open on the user's other devices (iCloud Tabs)."""
import sqlite3
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import List, Optional

import aiosqlite

from safari_data.errors import DatabaseError
from safari_data.history import open_readonly


@dataclass
class CloudTab:
    """A tab open in Safari on another device."""
    title: str
    url: str
    device: str

    def to_dict(self) -> dict:
        return asdict(self)


class CloudTabsStore:
    """Async reader for Safari's CloudTabs.db."""

    def __init__(self, db_path: Optional[Path] = None):
        if db_path is None:
            from safari_data.config import get_config
            db_path = get_config().cloud_tabs_path
        self.db_path = Path(db_path)
        self._connection: Optional[aiosqlite.Connection] = None

    async def initialize(self) -> None:
        """Open the database."""
        self._connection = await open_readonly(self.db_path)

    async def close(self) -> None:
        """Close the database connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None

    async def __aenter__(self) -> "CloudTabsStore":
        await self.initialize()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def tabs(self) -> List[CloudTab]:
        """Get all cloud tabs, grouped by device in tab order."""
        if not self._connection:
            raise RuntimeError("CloudTabsStore not initialized. Call initialize() first.")

        try:
            cursor = await self._connection.execute("""
                SELECT cloud_tabs.title, cloud_tabs.url, cloud_tab_devices.device_name
                    FROM cloud_tabs
                        LEFT JOIN cloud_tab_devices
                            ON cloud_tab_devices.device_uuid = cloud_tabs.device_uuid
                    ORDER BY cloud_tab_devices.device_name, cloud_tabs.position
            """)
            rows = await cursor.fetchall()
        except sqlite3.Error as e:
            raise DatabaseError(f"Cloud tabs query failed: {e}") from e

        return [
            CloudTab(
                title=row["title"] or "",
                url=row["url"] or "",
                device=row["device_name"] or "",
            )
            for row in rows
        ]
