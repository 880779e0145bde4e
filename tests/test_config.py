"""Tests for config module."""
from pathlib import Path

from safari_data.config import Config, SAFARI_DIR


class TestConfig:
    def test_default_values(self):
        config = Config()
        assert config.bookmarks.path == SAFARI_DIR / "Bookmarks.plist"
        assert config.bookmarks.ignore_bookmarklets is False
        assert config.history.path == SAFARI_DIR / "History.db"
        assert config.history.max_search_results == 200
        assert config.cloud_tabs_path == SAFARI_DIR / "CloudTabs.db"
        assert config.osascript_timeout == 5.0

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("SAFARI_BOOKMARKS_PATH", "/tmp/Bookmarks.plist")
        monkeypatch.setenv("SAFARI_HISTORY_DB", "/tmp/History.db")
        monkeypatch.setenv("SAFARI_HISTORY_MAX_RESULTS", "20")
        monkeypatch.setenv("SAFARI_CLOUD_TABS_DB", "/tmp/CloudTabs.db")
        monkeypatch.setenv("SAFARI_OSASCRIPT_TIMEOUT", "2.5")

        config = Config.from_env()
        assert config.bookmarks.path == Path("/tmp/Bookmarks.plist")
        assert config.history.path == Path("/tmp/History.db")
        assert config.history.max_search_results == 20
        assert config.cloud_tabs_path == Path("/tmp/CloudTabs.db")
        assert config.osascript_timeout == 2.5

    def test_ignore_bookmarklets_from_env(self, monkeypatch):
        for value in ("1", "true", "YES", "on"):
            monkeypatch.setenv("SAFARI_IGNORE_BOOKMARKLETS", value)
            assert Config.from_env().bookmarks.ignore_bookmarklets is True

        monkeypatch.setenv("SAFARI_IGNORE_BOOKMARKLETS", "0")
        assert Config.from_env().bookmarks.ignore_bookmarklets is False

    def test_env_defaults(self, monkeypatch):
        monkeypatch.delenv("SAFARI_BOOKMARKS_PATH", raising=False)
        monkeypatch.delenv("SAFARI_IGNORE_BOOKMARKLETS", raising=False)
        config = Config.from_env()
        assert config.bookmarks.path == SAFARI_DIR / "Bookmarks.plist"
        assert config.bookmarks.ignore_bookmarklets is False
