"""Shared fixtures for tests."""
import plistlib
import sqlite3
from datetime import datetime

import pytest


def leaf(title, url, uid, reading_list=None, uri_title=None):
    """A WebBookmarkTypeLeaf node as Safari writes it."""
    node = {
        "WebBookmarkType": "WebBookmarkTypeLeaf",
        "URLString": url,
        "WebBookmarkUUID": uid,
        "URIDictionary": {"title": uri_title if uri_title is not None else title},
    }
    if reading_list is not None:
        node["ReadingList"] = reading_list
    return node


def folder(title, uid, children=None):
    """A WebBookmarkTypeList node."""
    return {
        "WebBookmarkType": "WebBookmarkTypeList",
        "Title": title,
        "WebBookmarkUUID": uid,
        "Children": children or [],
    }


def document(*children):
    """A Bookmarks.plist root."""
    return {
        "WebBookmarkType": "WebBookmarkTypeList",
        "Title": "",
        "WebBookmarkFileVersion": 1,
        "Children": list(children),
    }


def nested_folders_xml(depth):
    """XML Bookmarks.plist with depth nested folders and one bookmark at the bottom.

    Written by hand because plistlib.dumps cannot nest this deep.
    """
    list_type = "<key>WebBookmarkType</key><string>WebBookmarkTypeList</string>"
    parts = [
        '<?xml version="1.0" encoding="UTF-8"?>',
        '<plist version="1.0"><dict>', list_type, "<key>Children</key><array>",
    ]
    for level in range(depth):
        title = "BookmarksBar" if level == 0 else f"Level {level}"
        parts.append(
            f"<dict>{list_type}<key>Title</key><string>{title}</string>"
            f"<key>WebBookmarkUUID</key><string>F{level}</string>"
            "<key>Children</key><array>"
        )
    parts.append(
        "<dict><key>WebBookmarkType</key><string>WebBookmarkTypeLeaf</string>"
        "<key>URLString</key><string>https://deep.example.com</string>"
        "<key>WebBookmarkUUID</key><string>DEEP</string></dict>"
    )
    parts.append("</array></dict>" * depth)
    parts.append("</array></dict></plist>")
    return "".join(parts).encode()


SAMPLE_BOOKMARKS = document(
    {
        "WebBookmarkType": "WebBookmarkTypeProxy",
        "Title": "History",
        "WebBookmarkIdentifier": "History",
        "WebBookmarkUUID": "PROXY-1",
    },
    folder("BookmarksBar", "BAR", [
        leaf("Python Docs", "https://docs.python.org", "B1"),
        folder("Work", "F-WORK", [
            leaf("Jira Board", "https://jira.example.com/board", "B2"),
            leaf("Confluence", "https://confluence.example.com", "B3"),
            folder("Archive", "F-ARCHIVE", [
                leaf("Old Wiki", "https://wiki.example.com", "B4"),
            ]),
        ]),
        leaf("Readability", "javascript:(function(){readability()})()", "B5"),
        folder("Tutorials", "F-TUT", [
            leaf("SQLite Guide", "https://sqlite.org/guide", "B6"),
        ]),
    ]),
    folder("BookmarksMenu", "MENU", [
        leaf("Stack Overflow", "https://stackoverflow.com", "B7"),
    ]),
    folder("com.apple.ReadingList", "RL", [
        leaf(
            "Long Read",
            "https://longread.example.com/article",
            "R1",
            reading_list={
                "DateAdded": datetime(2024, 3, 1, 12, 0, 0),
                "PreviewText": "An article worth reading later.",
            },
        ),
        leaf("Another Article", "https://news.example.com/story", "R2", reading_list={}),
    ]),
)


@pytest.fixture
def sample_document():
    return SAMPLE_BOOKMARKS


@pytest.fixture
def sample_bookmarks_path(tmp_path):
    """Create a temporary binary Bookmarks.plist with sample data."""
    bookmarks_file = tmp_path / "Bookmarks.plist"
    bookmarks_file.write_bytes(plistlib.dumps(SAMPLE_BOOKMARKS, fmt=plistlib.FMT_BINARY))
    return bookmarks_file


# Cocoa timestamps (seconds since 2001-01-01)
T_2024_01_01 = 725760000.0
T_2024_01_02 = T_2024_01_01 + 86400


@pytest.fixture
def history_db_path(tmp_path):
    """Create a History.db with Safari's schema and a few visits."""
    db_path = tmp_path / "History.db"
    conn = sqlite3.connect(db_path)
    conn.executescript("""
        CREATE TABLE history_items (id INTEGER PRIMARY KEY, url TEXT NOT NULL UNIQUE);
        CREATE TABLE history_visits (
            id INTEGER PRIMARY KEY,
            history_item INTEGER NOT NULL,
            visit_time REAL NOT NULL,
            title TEXT
        );
    """)
    conn.executemany("INSERT INTO history_items (id, url) VALUES (?, ?)", [
        (1, "https://www.python.org/"),
        (2, "https://docs.python.org/3/library/plistlib.html"),
        (3, "https://www.google.com/search?q=safari"),
        (4, "file:///Users/me/notes.html"),
        (5, "https://untitled.example.com/"),
    ])
    conn.executemany(
        "INSERT INTO history_visits (history_item, visit_time, title) VALUES (?, ?, ?)",
        [
            (1, T_2024_01_01, "Welcome to Python.org"),
            (2, T_2024_01_01 + 60, "plistlib — Generate and parse Apple .plist files"),
            (3, T_2024_01_02, "safari - Google Search"),
            (4, T_2024_01_02 + 60, "Local notes"),
            (5, T_2024_01_02 + 120, ""),
        ],
    )
    conn.commit()
    conn.close()
    return db_path


@pytest.fixture
def cloud_tabs_db_path(tmp_path):
    """Create a CloudTabs.db with two devices."""
    db_path = tmp_path / "CloudTabs.db"
    conn = sqlite3.connect(db_path)
    conn.executescript("""
        CREATE TABLE cloud_tab_devices (device_uuid TEXT PRIMARY KEY, device_name TEXT);
        CREATE TABLE cloud_tabs (
            tab_uuid TEXT PRIMARY KEY,
            device_uuid TEXT,
            position INTEGER,
            title TEXT,
            url TEXT
        );
    """)
    conn.executemany("INSERT INTO cloud_tab_devices VALUES (?, ?)", [
        ("D1", "iPhone"),
        ("D2", "iPad"),
    ])
    conn.executemany("INSERT INTO cloud_tabs VALUES (?, ?, ?, ?, ?)", [
        ("T1", "D1", 1, "News", "https://news.example.com"),
        ("T2", "D1", 0, "Mail", "https://mail.example.com"),
        ("T3", "D2", 0, "Recipes", "https://recipes.example.com"),
    ])
    conn.commit()
    conn.close()
    return db_path
