"""Configuration for the Safari data MCP server."""
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional


SAFARI_DIR = Path.home() / "Library" / "Safari"

_TRUTHY = {"1", "true", "yes", "on"}


def _env_bool(name: str, default: bool = False) -> bool:
    """Read a boolean flag from the environment."""
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUTHY


def _env_path(name: str, default: Path) -> Path:
    value = os.environ.get(name)
    return Path(value).expanduser() if value else default


@dataclass
class BookmarksConfig:
    """Where to find Bookmarks.plist and how to read it."""
    path: Path = SAFARI_DIR / "Bookmarks.plist"
    ignore_bookmarklets: bool = False  # Drop javascript: bookmarks while parsing

    @classmethod
    def from_env(cls) -> "BookmarksConfig":
        """Create config from environment variables."""
        return cls(
            path=_env_path("SAFARI_BOOKMARKS_PATH", SAFARI_DIR / "Bookmarks.plist"),
            ignore_bookmarklets=_env_bool("SAFARI_IGNORE_BOOKMARKLETS"),
        )


@dataclass
class HistoryConfig:
    """Configuration for the history database reader."""
    path: Path = SAFARI_DIR / "History.db"
    max_search_results: int = 200

    @classmethod
    def from_env(cls) -> "HistoryConfig":
        """Create config from environment variables."""
        return cls(
            path=_env_path("SAFARI_HISTORY_DB", SAFARI_DIR / "History.db"),
            max_search_results=int(os.environ.get("SAFARI_HISTORY_MAX_RESULTS", "200")),
        )


@dataclass
class Config:
    """Main configuration for the Safari data MCP server."""
    bookmarks: BookmarksConfig = field(default_factory=BookmarksConfig)
    history: HistoryConfig = field(default_factory=HistoryConfig)
    cloud_tabs_path: Path = SAFARI_DIR / "CloudTabs.db"
    osascript_timeout: float = 5.0  # Seconds

    @classmethod
    def from_env(cls) -> "Config":
        """Create config from environment variables."""
        return cls(
            bookmarks=BookmarksConfig.from_env(),
            history=HistoryConfig.from_env(),
            cloud_tabs_path=_env_path("SAFARI_CLOUD_TABS_DB", SAFARI_DIR / "CloudTabs.db"),
            osascript_timeout=float(os.environ.get("SAFARI_OSASCRIPT_TIMEOUT", "5.0")),
        )


# Global config instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get the global config instance.

    Returns:
        Config loaded from environment
    """
    global _config

    if _config is None:
        _config = Config.from_env()

    return _config
