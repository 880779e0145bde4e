"""Safari bookmarks index.

Bookmarks.plist is decoded by ``safari_data.plist_decoder`` and then walked
once, depth-first, to build ``Folder`` and ``Bookmark`` objects. The walk
classifies the well-known top-level folders (Favorites bar, Bookmarks Menu,
Reading List), separates Reading List entries from ordinary bookmarks and
indexes everything by UUID.

Folders are stored in a flat arena (pre-order). Each folder and bookmark
keeps the arena position of its parent, so ancestor chains are computed on
demand by walking up the parents instead of being copied at every level.

Anything unexpected below the decoding level (unknown node types,
unrecognised top-level folders, duplicate UUIDs) is never fatal: it is
recorded as a ``Diagnostic`` on the index and echoed to stderr.
"""
import sys
import threading
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional, Set, Tuple, Union

from safari_data.config import BookmarksConfig, get_config
from safari_data.errors import SourceUnavailable
from safari_data.plist_decoder import NodeKind, RawNode, ReadingListMeta, decode_document


# Internal names of the special top-level folders
NAME_BOOKMARKS_BAR = "BookmarksBar"
NAME_BOOKMARKS_MENU = "BookmarksMenu"
NAME_READING_LIST = "com.apple.ReadingList"

# Names shown to users in place of the internal ones
DISPLAY_BOOKMARKS_BAR = "Favorites"
DISPLAY_BOOKMARKS_MENU = "Bookmarks Menu"
DISPLAY_READING_LIST = "Reading List"

BOOKMARKLET_PREFIX = "javascript:"


class ItemKind(Enum):
    """What a UUID refers to."""
    FOLDER = "folder"
    BOOKMARK = "bookmark"


@dataclass(frozen=True)
class Diagnostic:
    """A non-fatal oddity found while building the index."""
    code: str
    message: str
    uid: str = ""


class Folder:
    """A bookmark folder."""

    def __init__(self, title: str, uid: str, arena: List["Folder"], parent: Optional[int] = None):
        self.title = title
        self.uid = uid
        self.folders: List[Folder] = []
        self.bookmarks: List[Bookmark] = []
        self.is_reading_list = False
        self.is_bookmarks_bar = False
        self.is_bookmarks_menu = False
        self._arena = arena
        self._parent = parent

    @property
    def parent(self) -> Optional["Folder"]:
        """The containing folder, or None for a top-level folder."""
        if self._parent is None:
            return None
        return self._arena[self._parent]

    @property
    def ancestors(self) -> List["Folder"]:
        """Folders from the top level down to this folder's parent."""
        return _walk_up(self.parent)

    @property
    def is_top_level(self) -> bool:
        return self._parent is None

    @property
    def path(self) -> List[str]:
        """Titles of the ancestors followed by this folder's own title."""
        return [f.title for f in self.ancestors] + [self.title]

    def to_dict(self, include_bookmarklets: bool = False) -> Dict:
        """JSON-friendly view. Ancestors are reduced to their titles."""
        return {
            "title": self.title,
            "uid": self.uid,
            "ancestors": [f.title for f in self.ancestors],
            "folders": [f.title for f in self.folders],
            "bookmarks": [
                bm.to_dict() for bm in self.bookmarks
                if include_bookmarklets or not bm.is_bookmarklet
            ],
        }

    def __repr__(self) -> str:
        return f"Folder(title={self.title!r}, uid={self.uid!r})"


class Bookmark:
    """A bookmark or Reading List entry."""

    def __init__(
        self,
        title: str,
        url: str,
        uid: str,
        arena: List[Folder],
        parent: int,
        reading_list: Optional[ReadingListMeta] = None,
    ):
        self.title = title
        self.url = url
        self.uid = uid
        self.reading_list = reading_list
        self.preview = reading_list.preview_text if reading_list else ""
        self._arena = arena
        self._parent = parent

    @property
    def parent(self) -> Folder:
        return self._arena[self._parent]

    @property
    def ancestors(self) -> List[Folder]:
        """Folders from the top level down to the containing folder."""
        return _walk_up(self.parent)

    @property
    def is_bookmarklet(self) -> bool:
        """True if the URL is a javascript: bookmarklet."""
        return self.url.startswith(BOOKMARKLET_PREFIX)

    @property
    def in_reading_list(self) -> bool:
        return self.ancestors[0].is_reading_list

    @property
    def folder_path(self) -> str:
        return "/".join(f.title for f in self.ancestors)

    def to_dict(self) -> Dict:
        """JSON-friendly view. Ancestors are reduced to their titles."""
        return {
            "title": self.title,
            "url": self.url,
            "uid": self.uid,
            "ancestors": [f.title for f in self.ancestors],
            "preview": self.preview,
        }

    def __repr__(self) -> str:
        return f"Bookmark(title={self.title!r}, url={self.url!r}, uid={self.uid!r})"


def _walk_up(folder: Optional[Folder]) -> List[Folder]:
    chain = []
    while folder is not None:
        chain.append(folder)
        folder = folder.parent
    chain.reverse()
    return chain


@dataclass
class _Graph:
    """Everything produced by one parse."""
    folders: List[Folder] = field(default_factory=list)
    bookmarks: List[Bookmark] = field(default_factory=list)
    reading_list_bookmarks: List[Bookmark] = field(default_factory=list)
    bookmarks_bar: Optional[Folder] = None
    bookmarks_menu: Optional[Folder] = None
    reading_list: Optional[Folder] = None
    uid_to_folder: Dict[str, Folder] = field(default_factory=dict)
    uid_to_bookmark: Dict[str, Bookmark] = field(default_factory=dict)
    uid_to_kind: Dict[str, ItemKind] = field(default_factory=dict)
    diagnostics: List[Diagnostic] = field(default_factory=list)


# Internal name -> (flag attribute, slot attribute, display name)
_WELL_KNOWN = {
    NAME_BOOKMARKS_BAR: ("is_bookmarks_bar", "bookmarks_bar", DISPLAY_BOOKMARKS_BAR),
    NAME_BOOKMARKS_MENU: ("is_bookmarks_menu", "bookmarks_menu", DISPLAY_BOOKMARKS_MENU),
    NAME_READING_LIST: ("is_reading_list", "reading_list", DISPLAY_READING_LIST),
}


class _TreeBuilder:
    """Builds a _Graph from a decoded document in a single depth-first pass."""

    def __init__(self, ignore_bookmarklets: bool = False):
        self.ignore_bookmarklets = ignore_bookmarklets
        self.graph = _Graph()
        self._reserved: Set[str] = set()

    def build(self, root: RawNode) -> _Graph:
        self._reserved = _document_uids(root)

        # Explicit stack of (node, parent folder position), popped in document order
        stack: List[Tuple[RawNode, Optional[int]]] = [(child, None) for child in reversed(root.children)]
        while stack:
            node, parent = stack.pop()
            position = self._visit(node, parent)
            if position is not None:
                stack.extend((child, position) for child in reversed(node.children))
        return self.graph

    def _note(self, code: str, message: str, uid: str = "") -> None:
        self.graph.diagnostics.append(Diagnostic(code, message, uid))
        print(f"[Bookmarks] {message}", file=sys.stderr)

    def _claim_uid(self, uid: str, kind: ItemKind, title: str) -> Optional[str]:
        """Reserve a UUID for a new item.

        Items without a UUID get a synthetic one based on their position,
        never one that a real item anywhere in the document uses.
        Returns None if the UUID is already taken.
        """
        graph = self.graph
        if not uid:
            uid = f"{kind.value}-{len(graph.uid_to_kind)}"
            while uid in graph.uid_to_kind or uid in self._reserved:
                uid += "-"
        elif uid in graph.uid_to_kind:
            self._note("duplicate-uid", f"Duplicate UUID {uid} ({title!r}), skipped", uid)
            return None
        graph.uid_to_kind[uid] = kind
        return uid

    def _visit(self, node: RawNode, parent: Optional[int]) -> Optional[int]:
        """Add one node. Returns the folder's arena position if its children should be visited."""
        if node.kind is NodeKind.PROXY:
            # Only History, which has no content
            return None
        elif node.kind is NodeKind.LIST:
            return self._add_folder(node, parent)
        elif node.kind is NodeKind.LEAF:
            self._add_bookmark(node, parent)
        else:
            self._note(
                "unknown-node-type",
                f"Unknown node type {node.type_name!r} ({node.title!r})",
                node.uid,
            )
        return None

    def _add_folder(self, node: RawNode, parent: Optional[int]) -> Optional[int]:
        graph = self.graph
        uid = self._claim_uid(node.uid, ItemKind.FOLDER, node.title)
        if uid is None:
            return None

        folder = Folder(node.title, uid, graph.folders, parent)
        position = len(graph.folders)
        graph.folders.append(folder)
        graph.uid_to_folder[uid] = folder

        if parent is None:
            self._classify(folder)
        else:
            graph.folders[parent].folders.append(folder)

        return position

    def _classify(self, folder: Folder) -> None:
        """Recognise one of the special top-level folders."""
        known = _WELL_KNOWN.get(folder.title)
        if known is None:
            self._note("unknown-top-level-folder", f"Unknown top-level folder: {folder.title}", folder.uid)
            return

        flag, slot, display_name = known
        if getattr(self.graph, slot) is not None:
            # First one wins
            self._note(
                "duplicate-well-known-folder",
                f"Duplicate top-level folder: {folder.title}",
                folder.uid,
            )
            return

        setattr(folder, flag, True)
        folder.title = display_name
        setattr(self.graph, slot, folder)

    def _add_bookmark(self, node: RawNode, parent: Optional[int]) -> None:
        graph = self.graph
        if parent is None:
            self._note("orphan-bookmark", f"Bookmark outside any folder: {node.title!r}", node.uid)
            return

        if self.ignore_bookmarklets and node.url.startswith(BOOKMARKLET_PREFIX):
            return

        uid = self._claim_uid(node.uid, ItemKind.BOOKMARK, node.title)
        if uid is None:
            return

        bookmark = Bookmark(
            title=node.title,
            url=node.url,
            uid=uid,
            arena=graph.folders,
            parent=parent,
            reading_list=node.reading_list,
        )
        graph.uid_to_bookmark[uid] = bookmark
        graph.folders[parent].bookmarks.append(bookmark)

        if bookmark.in_reading_list:
            graph.reading_list_bookmarks.append(bookmark)
        else:
            graph.bookmarks.append(bookmark)


def _document_uids(root: RawNode) -> Set[str]:
    """Every non-empty WebBookmarkUUID in the document."""
    uids = set()
    stack = [root]
    while stack:
        node = stack.pop()
        if node.uid:
            uids.add(node.uid)
        stack.extend(node.children)
    return uids


def default_bookmarks_path() -> Path:
    """Path to Bookmarks.plist from the current configuration."""
    return get_config().bookmarks.path


def read_document(path: Union[str, Path]) -> bytes:
    """Read a bookmarks file in one go.

    Raises:
        SourceUnavailable: If the file doesn't exist or can't be read
    """
    path = Path(path)
    try:
        return path.read_bytes()
    except FileNotFoundError as e:
        raise SourceUnavailable(f"Bookmarks file not found at {path}") from e
    except OSError as e:
        raise SourceUnavailable(f"Could not read bookmarks file {path}: {e}") from e


class BookmarkIndex:
    """Parsed Safari bookmarks with lookups by UUID and by category.

    A new index is empty (unparsed). Each ``parse*`` call replaces the whole
    graph; if it fails the index is left empty rather than half-built.
    """

    def __init__(self):
        self._graph = _Graph()
        self._parsed = False

    # ------------------------------------------------------------------
    # Parsing
    # ------------------------------------------------------------------

    def parse(self, config: Optional[BookmarksConfig] = None) -> "BookmarkIndex":
        """Parse the bookmarks file named by config (or the global config)."""
        if config is None:
            config = get_config().bookmarks
        return self.parse_file(config.path, ignore_bookmarklets=config.ignore_bookmarklets)

    def parse_file(self, path: Union[str, Path], ignore_bookmarklets: bool = False) -> "BookmarkIndex":
        """Parse a Bookmarks.plist file.

        Raises:
            SourceUnavailable: If the file doesn't exist or can't be read
            DecodeError: If the file is not a valid bookmarks plist
        """
        self._reset()
        return self.parse_data(read_document(path), ignore_bookmarklets=ignore_bookmarklets)

    def parse_data(self, data: bytes, ignore_bookmarklets: bool = False) -> "BookmarkIndex":
        """Parse Bookmarks.plist contents.

        Raises:
            DecodeError: If the data is not a valid bookmarks plist
        """
        self._reset()
        root = decode_document(data)
        self._graph = _TreeBuilder(ignore_bookmarklets).build(root)
        self._parsed = True
        return self

    def _reset(self) -> None:
        self._graph = _Graph()
        self._parsed = False

    @property
    def is_parsed(self) -> bool:
        return self._parsed

    @property
    def diagnostics(self) -> List[Diagnostic]:
        """Non-fatal problems found during the last parse."""
        return list(self._graph.diagnostics)

    # ------------------------------------------------------------------
    # Special folders
    # ------------------------------------------------------------------

    @property
    def bookmarks_bar(self) -> Optional[Folder]:
        return self._graph.bookmarks_bar

    @property
    def bookmarks_menu(self) -> Optional[Folder]:
        return self._graph.bookmarks_menu

    @property
    def reading_list(self) -> Optional[Folder]:
        return self._graph.reading_list

    # ------------------------------------------------------------------
    # Flat lists
    # ------------------------------------------------------------------

    def all_bookmarks(self) -> List[Bookmark]:
        """All bookmarks except Reading List entries, in document order."""
        return list(self._graph.bookmarks)

    def all_reading_list_bookmarks(self) -> List[Bookmark]:
        return list(self._graph.reading_list_bookmarks)

    def all_folders(self) -> List[Folder]:
        """All folders in pre-order."""
        return list(self._graph.folders)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def lookup_folder(self, uid: str) -> Optional[Folder]:
        return self._graph.uid_to_folder.get(uid)

    def lookup_bookmark(self, uid: str) -> Optional[Bookmark]:
        return self._graph.uid_to_bookmark.get(uid)

    def kind_of(self, uid: str) -> Optional[ItemKind]:
        """Whether uid names a folder or a bookmark. None if unknown."""
        return self._graph.uid_to_kind.get(uid)

    def uids(self) -> List[str]:
        return list(self._graph.uid_to_kind)

    # ------------------------------------------------------------------
    # Filters
    # ------------------------------------------------------------------

    def filter_bookmarks(self, accept: Callable[[Bookmark], bool]) -> List[Bookmark]:
        """Bookmarks (excluding the Reading List) for which accept() is true."""
        return [bm for bm in self._graph.bookmarks if accept(bm)]

    def filter_reading_list(self, accept: Callable[[Bookmark], bool]) -> List[Bookmark]:
        return [bm for bm in self._graph.reading_list_bookmarks if accept(bm)]

    def filter_folders(self, accept: Callable[[Folder], bool]) -> List[Folder]:
        return [f for f in self._graph.folders if accept(f)]

    def find_bookmark(self, accept: Callable[[Bookmark], bool]) -> Optional[Bookmark]:
        """First bookmark (excluding the Reading List) for which accept() is true."""
        return next((bm for bm in self._graph.bookmarks if accept(bm)), None)

    def find_folder(self, accept: Callable[[Folder], bool]) -> Optional[Folder]:
        return next((f for f in self._graph.folders if accept(f)), None)


def parse(config: Optional[BookmarksConfig] = None) -> BookmarkIndex:
    """Read and index Bookmarks.plist.

    Args:
        config: Bookmarks configuration. If None, uses the global config.

    Returns:
        A parsed BookmarkIndex

    Raises:
        SourceUnavailable: If the bookmarks file doesn't exist or can't be read
        DecodeError: If the bookmarks file is malformed
    """
    return BookmarkIndex().parse(config)


class SharedIndex:
    """A lazily parsed BookmarkIndex that can be shared between callers.

    The index is built once on first use. ``reload()`` parses into a fresh
    index and only then swaps it in, so readers never see a partial graph.
    """

    def __init__(self, config: Optional[BookmarksConfig] = None):
        self._config = config
        self._index: Optional[BookmarkIndex] = None
        self._lock = threading.Lock()

    def get(self) -> BookmarkIndex:
        """Return the shared index, parsing it on first use."""
        index = self._index
        if index is None:
            with self._lock:
                if self._index is None:
                    self._index = parse(self._config)
                index = self._index
        return index

    def reload(self) -> BookmarkIndex:
        """Re-read the bookmarks file and publish the new index."""
        index = parse(self._config)
        with self._lock:
            self._index = index
        return index

    def clear(self) -> None:
        with self._lock:
            self._index = None
