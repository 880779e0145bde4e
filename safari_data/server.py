"""MCP server exposing Safari bookmarks, history, cloud tabs and window control."""
import json
import sys
from typing import Any, List, Optional

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import Tool, TextContent

from safari_data.bookmarks import BookmarkIndex, Folder, ItemKind, SharedIndex
from safari_data.cloud_tabs import CloudTabsStore
from safari_data.config import get_config
from safari_data.errors import SafariDataError
from safari_data.history import HistoryStore
from safari_data.search import KeywordSearchEngine, SearchEngine
from safari_data.tabs import CloseTarget, get_automation


SERVER_NAME = "safari-data-mcp"

# Global state
_shared_index: Optional[SharedIndex] = None
_search_engine: SearchEngine = KeywordSearchEngine()


def get_shared_index() -> SharedIndex:
    """Get or create the shared bookmarks index holder."""
    global _shared_index
    if _shared_index is None:
        _shared_index = SharedIndex(get_config().bookmarks)
    return _shared_index


def load_index() -> BookmarkIndex:
    """Get the parsed bookmarks, reading Bookmarks.plist on first use.

    Raises:
        SourceUnavailable: If the bookmarks file doesn't exist or can't be read
        DecodeError: If the bookmarks file is malformed
    """
    return get_shared_index().get()


def _text(text: str) -> List[TextContent]:
    return [TextContent(type="text", text=text)]


def _json(data: Any) -> List[TextContent]:
    return _text(json.dumps(data, indent=2))


def _error(e: Exception) -> List[TextContent]:
    print(f"[Server] {e}", file=sys.stderr)
    return _text(f"Error: {e}")


class ArgumentError(ValueError):
    """A tool argument has the wrong type or value."""


def _int_arg(arguments: dict, name: str, default: int, minimum: int) -> int:
    """Read an integer tool argument, raised to at least minimum."""
    value = arguments.get(name, default)
    if isinstance(value, bool):
        raise ArgumentError(f"'{name}' must be an integer, got {value!r}")
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ArgumentError(f"'{name}' must be an integer, got {value!r}") from None
    return max(minimum, number)


def _folder_summary(folder: Folder) -> dict:
    return {
        "title": folder.title,
        "uid": folder.uid,
        "ancestors": [f.title for f in folder.ancestors],
        "bookmarks": len(folder.bookmarks),
        "folders": len(folder.folders),
    }


# ============================================================================
# Bookmark tools
# ============================================================================

async def list_bookmarks_tool(folder_uid: Optional[str] = None, include_bookmarklets: bool = False) -> List[TextContent]:
    """List all bookmarks, or the bookmarks directly inside one folder."""
    try:
        index = load_index()
    except SafariDataError as e:
        return _error(e)

    if folder_uid:
        folder = index.lookup_folder(folder_uid)
        if folder is None:
            return _text(f"No folder with uid: {folder_uid}")
        bookmarks = folder.bookmarks
    else:
        bookmarks = index.all_bookmarks()

    return _json([
        bm.to_dict() for bm in bookmarks
        if include_bookmarklets or not bm.is_bookmarklet
    ])


async def search_bookmarks_tool(query: str, limit: int = 10, include_reading_list: bool = False) -> List[TextContent]:
    """Keyword search over bookmarks (and optionally the Reading List)."""
    limit = max(1, limit)
    try:
        index = load_index()
    except SafariDataError as e:
        return _error(e)

    candidates = index.filter_bookmarks(lambda bm: not bm.is_bookmarklet)
    if include_reading_list:
        candidates += index.all_reading_list_bookmarks()

    results = _search_engine.search(query, candidates, limit=limit)
    if not results:
        return _text(f"No bookmarks found matching query: {query}")

    return _json([bm.to_dict() for bm in results])


async def get_bookmark_tool(uid: str) -> List[TextContent]:
    """Look up a folder or bookmark by its UUID."""
    try:
        index = load_index()
    except SafariDataError as e:
        return _error(e)

    kind = index.kind_of(uid)
    if kind is ItemKind.FOLDER:
        data = index.lookup_folder(uid).to_dict()
    elif kind is ItemKind.BOOKMARK:
        data = index.lookup_bookmark(uid).to_dict()
    else:
        return _text(f"No folder or bookmark with uid: {uid}")

    data["kind"] = kind.value
    return _json(data)


async def list_folders_tool() -> List[TextContent]:
    """List all bookmark folders in tree order."""
    try:
        index = load_index()
    except SafariDataError as e:
        return _error(e)

    return _json([_folder_summary(f) for f in index.all_folders()])


async def list_reading_list_tool() -> List[TextContent]:
    """List the Reading List, with preview text."""
    try:
        index = load_index()
    except SafariDataError as e:
        return _error(e)

    return _json([bm.to_dict() for bm in index.all_reading_list_bookmarks()])


async def reload_bookmarks_tool() -> List[TextContent]:
    """Re-read Bookmarks.plist and report what was found."""
    try:
        index = get_shared_index().reload()
    except SafariDataError as e:
        return _error(e)

    return _json({
        "folders": len(index.all_folders()),
        "bookmarks": len(index.all_bookmarks()),
        "reading_list": len(index.all_reading_list_bookmarks()),
        "diagnostics": [d.message for d in index.diagnostics],
    })


# ============================================================================
# History and cloud tabs
# ============================================================================

async def recent_history_tool(count: int = 20) -> List[TextContent]:
    """Most recently visited pages."""
    count = max(1, count)
    config = get_config().history
    try:
        async with HistoryStore(config.path, config.max_search_results) as store:
            entries = await store.recent(count)
    except SafariDataError as e:
        return _error(e)

    return _json([entry.to_dict() for entry in entries])


async def search_history_tool(query: str) -> List[TextContent]:
    """Search history by page title."""
    config = get_config().history
    try:
        async with HistoryStore(config.path, config.max_search_results) as store:
            entries = await store.search(query)
    except SafariDataError as e:
        return _error(e)

    if not entries:
        return _text(f"No history entries found matching query: {query}")

    return _json([entry.to_dict() for entry in entries])


async def list_cloud_tabs_tool() -> List[TextContent]:
    """Tabs open on the user's other devices."""
    try:
        async with CloudTabsStore(get_config().cloud_tabs_path) as store:
            tabs = await store.tabs()
    except SafariDataError as e:
        return _error(e)

    return _json([t.to_dict() for t in tabs])


# ============================================================================
# Window control
# ============================================================================

async def list_tabs_tool() -> List[TextContent]:
    """Safari's open windows and their tabs."""
    try:
        windows = await get_automation().list_windows()
    except SafariDataError as e:
        return _error(e)

    return _json([w.to_dict() for w in windows])


async def activate_tab_tool(window: int, tab: int = 0) -> List[TextContent]:
    """Bring a window (and tab) to the front."""
    try:
        await get_automation().activate(window, tab)
    except SafariDataError as e:
        return _error(e)

    return _text(f"Activated window {window}" + (f", tab {tab}" if tab else ""))


async def close_tabs_tool(target: str, window: int = 0, tab: int = 0) -> List[TextContent]:
    """Close a window or tabs relative to a reference tab."""
    try:
        close_target = CloseTarget(target)
    except ValueError:
        valid = ", ".join(t.value for t in CloseTarget)
        return _text(f"Error: 'target' must be one of: {valid}")

    try:
        await get_automation().close(close_target, window, tab)
    except SafariDataError as e:
        return _error(e)

    return _text(f"Closed {close_target.value} in window {window or 1}")


async def dispatch_tool(name: str, arguments: dict) -> List[TextContent]:
    """Run one tool by name.

    Raises:
        ArgumentError: If an argument has the wrong type
        ValueError: If the tool is unknown
    """
    if name == "list_bookmarks":
        return await list_bookmarks_tool(
            arguments.get("folder_uid"),
            bool(arguments.get("include_bookmarklets", False)),
        )
    elif name == "search_bookmarks":
        query = arguments.get("query", "")
        if not query:
            return _text("Error: 'query' parameter is required")
        return await search_bookmarks_tool(
            query,
            _int_arg(arguments, "limit", 10, minimum=1),
            bool(arguments.get("include_reading_list", False)),
        )
    elif name == "get_bookmark":
        uid = arguments.get("uid", "")
        if not uid:
            return _text("Error: 'uid' parameter is required")
        return await get_bookmark_tool(uid)
    elif name == "list_folders":
        return await list_folders_tool()
    elif name == "list_reading_list":
        return await list_reading_list_tool()
    elif name == "reload_bookmarks":
        return await reload_bookmarks_tool()
    elif name == "recent_history":
        return await recent_history_tool(_int_arg(arguments, "count", 20, minimum=1))
    elif name == "search_history":
        query = arguments.get("query", "")
        if not query:
            return _text("Error: 'query' parameter is required")
        return await search_history_tool(query)
    elif name == "list_cloud_tabs":
        return await list_cloud_tabs_tool()
    elif name == "list_tabs":
        return await list_tabs_tool()
    elif name == "activate_tab":
        if "window" not in arguments:
            return _text("Error: 'window' parameter is required")
        return await activate_tab_tool(
            _int_arg(arguments, "window", 1, minimum=1),
            _int_arg(arguments, "tab", 0, minimum=0),
        )
    elif name == "close_tabs":
        return await close_tabs_tool(
            arguments.get("target", ""),
            _int_arg(arguments, "window", 0, minimum=0),
            _int_arg(arguments, "tab", 0, minimum=0),
        )
    else:
        raise ValueError(f"Unknown tool: {name}")


_NO_ARGS = {"type": "object", "properties": {}}


def create_server() -> Server:
    """Create and configure the MCP server.

    Returns:
        Configured Server instance
    """
    server = Server(SERVER_NAME)

    @server.list_tools()
    async def list_tools() -> list[Tool]:
        """List available tools."""
        return [
            Tool(
                name="list_bookmarks",
                description="List Safari bookmarks (excluding the Reading List). Optionally restrict to one folder by uid.",
                inputSchema={
                    "type": "object",
                    "properties": {
                        "folder_uid": {"type": "string", "description": "Only list bookmarks directly in this folder"},
                        "include_bookmarklets": {"type": "boolean", "description": "Include javascript: bookmarklets"},
                    },
                },
            ),
            Tool(
                name="search_bookmarks",
                description="Keyword search over Safari bookmarks by title, URL and folder.",
                inputSchema={
                    "type": "object",
                    "properties": {
                        "query": {"type": "string", "description": "Search query"},
                        "limit": {"type": "integer", "description": "Maximum results (default 10)"},
                        "include_reading_list": {"type": "boolean", "description": "Also search the Reading List"},
                    },
                    "required": ["query"],
                },
            ),
            Tool(
                name="get_bookmark",
                description="Look up a Safari bookmark or folder by its uid.",
                inputSchema={
                    "type": "object",
                    "properties": {"uid": {"type": "string", "description": "WebBookmarkUUID"}},
                    "required": ["uid"],
                },
            ),
            Tool(
                name="list_folders",
                description="List all Safari bookmark folders with their ancestors and item counts.",
                inputSchema=_NO_ARGS,
            ),
            Tool(
                name="list_reading_list",
                description="List the Safari Reading List with preview text.",
                inputSchema=_NO_ARGS,
            ),
            Tool(
                name="reload_bookmarks",
                description="Re-read Safari's Bookmarks.plist.",
                inputSchema=_NO_ARGS,
            ),
            Tool(
                name="recent_history",
                description="Most recently visited pages from Safari history.",
                inputSchema={
                    "type": "object",
                    "properties": {"count": {"type": "integer", "description": "Number of entries (default 20)"}},
                },
            ),
            Tool(
                name="search_history",
                description="Search Safari history by page title.",
                inputSchema={
                    "type": "object",
                    "properties": {"query": {"type": "string", "description": "Text to find in titles"}},
                    "required": ["query"],
                },
            ),
            Tool(
                name="list_cloud_tabs",
                description="List tabs open in Safari on the user's other devices.",
                inputSchema=_NO_ARGS,
            ),
            Tool(
                name="list_tabs",
                description="List open Safari windows and tabs.",
                inputSchema=_NO_ARGS,
            ),
            Tool(
                name="activate_tab",
                description="Bring a Safari window, and optionally one of its tabs, to the front.",
                inputSchema={
                    "type": "object",
                    "properties": {
                        "window": {"type": "integer", "description": "Window number, starting at 1"},
                        "tab": {"type": "integer", "description": "Tab number, starting at 1 (0 = keep current tab)"},
                    },
                    "required": ["window"],
                },
            ),
            Tool(
                name="close_tabs",
                description="Close a Safari window, a tab, or the tabs other than / left of / right of a tab.",
                inputSchema={
                    "type": "object",
                    "properties": {
                        "target": {
                            "type": "string",
                            "enum": [t.value for t in CloseTarget],
                            "description": "What to close",
                        },
                        "window": {"type": "integer", "description": "Window number (0 = frontmost)"},
                        "tab": {"type": "integer", "description": "Reference tab (0 = current tab)"},
                    },
                    "required": ["target"],
                },
            ),
        ]

    @server.call_tool()
    async def call_tool(name: str, arguments: Any) -> list[TextContent]:
        """Handle tool calls."""
        arguments = arguments or {}

        try:
            return await dispatch_tool(name, arguments)
        except ArgumentError as e:
            return _text(f"Error: {e}")

    return server


async def main():
    """Main entry point for the MCP server."""
    server = create_server()
    print(f"[Server] {SERVER_NAME} running on stdio", file=sys.stderr)

    async with stdio_server() as (read_stream, write_stream):
        initialization_options = server.create_initialization_options()
        await server.run(read_stream, write_stream, initialization_options)
