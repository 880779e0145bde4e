"""Structural decoder for Safari's Bookmarks.plist.

Bookmarks.plist is a tree of dictionaries. Every node carries a
``WebBookmarkType`` discriminant:

- ``WebBookmarkTypeList``: a folder, with ``Title`` and ``Children``
- ``WebBookmarkTypeLeaf``: a bookmark, with ``URLString``, ``WebBookmarkUUID``
  and (for generated titles) a ``URIDictionary`` holding ``title``.
  Reading List entries also carry a ``ReadingList`` dictionary.
- ``WebBookmarkTypeProxy``: a placeholder (History) with no content of its own

This module only checks field shapes and turns the document into immutable
``RawNode`` objects. Interpreting the tree is left to ``safari_data.bookmarks``.
"""
import plistlib
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from safari_data.errors import DecodeError


# Values of the WebBookmarkType field
TYPE_LEAF = "WebBookmarkTypeLeaf"
TYPE_LIST = "WebBookmarkTypeList"
TYPE_PROXY = "WebBookmarkTypeProxy"


class NodeKind(Enum):
    """Kind of a node in Bookmarks.plist."""
    LEAF = "leaf"
    LIST = "list"
    PROXY = "proxy"
    UNKNOWN = "unknown"

    @classmethod
    def from_type_name(cls, type_name: str) -> "NodeKind":
        return _KINDS.get(type_name, cls.UNKNOWN)


_KINDS = {
    TYPE_LEAF: NodeKind.LEAF,
    TYPE_LIST: NodeKind.LIST,
    TYPE_PROXY: NodeKind.PROXY,
}


@dataclass(frozen=True)
class ReadingListMeta:
    """Reading List data attached to a bookmark."""
    date_added: Optional[datetime] = None
    date_last_fetched: Optional[datetime] = None
    date_last_viewed: Optional[datetime] = None
    preview_text: str = ""


@dataclass(frozen=True)
class RawNode:
    """A node of Bookmarks.plist, decoded but not interpreted."""
    kind: NodeKind
    type_name: str = ""
    title: str = ""
    url: str = ""
    uid: str = ""
    reading_list: Optional[ReadingListMeta] = None
    children: Tuple["RawNode", ...] = ()


def decode_document(data: bytes) -> RawNode:
    """Decode Bookmarks.plist contents into a tree of RawNodes.

    Both XML and binary property lists are accepted.

    Args:
        data: Raw bytes of the plist file

    Returns:
        The root node of the document

    Raises:
        DecodeError: If the data is not a plist or a field has the wrong type
    """
    try:
        document = plistlib.loads(data)
    except Exception as e:
        # plistlib raises anything from ExpatError to AttributeError on bad input
        raise DecodeError(f"Invalid property list: {e}") from e

    return decode_node(document, "root")


def decode_node(node: Any, where: str) -> RawNode:
    """Decode one plist dictionary (and everything below it) into a RawNode.

    The tree is walked with an explicit stack, so nesting depth is not
    limited by the interpreter's recursion limit.

    Args:
        node: Deserialized plist value
        where: Human-readable location, used in error messages

    Raises:
        DecodeError: If a node or one of its fields has the wrong type
    """
    # Pre-order list of (fields, positions of children)
    entries: List[Tuple[Dict[str, Any], List[int]]] = []
    stack: List[Tuple[Any, str, Optional[int]]] = [(node, where, None)]

    while stack:
        value, path, parent = stack.pop()
        fields, children_data = _fields(value, path)

        position = len(entries)
        entries.append((fields, []))
        if parent is not None:
            entries[parent][1].append(position)

        for i in reversed(range(len(children_data))):
            stack.append((children_data[i], f"{path}/{i}", position))

    # Children always come after their parent, so build back to front
    built: List[Optional[RawNode]] = [None] * len(entries)
    for position in reversed(range(len(entries))):
        fields, child_positions = entries[position]
        built[position] = RawNode(
            children=tuple(built[c] for c in child_positions),
            **fields,
        )
    return built[0]


def _fields(node: Any, where: str) -> Tuple[Dict[str, Any], list]:
    """Check one node's own fields. Returns them with its undecoded children."""
    if not isinstance(node, dict):
        raise DecodeError(f"{where}: expected a dictionary, got {type(node).__name__}")

    type_name = _string(node, "WebBookmarkType", where)
    uri_dict = _dictionary(node, "URIDictionary", where)

    title = _string(node, "Title", where)
    if not title and uri_dict is not None:
        # Automatically-generated titles live in URIDictionary
        fallback = uri_dict.get("title", "")
        if not isinstance(fallback, str):
            raise DecodeError(f"{where}: URIDictionary.title must be a string")
        title = fallback

    children_data = node.get("Children", [])
    if not isinstance(children_data, list):
        raise DecodeError(f"{where}: Children must be an array")

    fields = {
        "kind": NodeKind.from_type_name(type_name),
        "type_name": type_name,
        "title": title,
        "url": _string(node, "URLString", where),
        "uid": _string(node, "WebBookmarkUUID", where),
        "reading_list": _reading_list(node, where),
    }
    return fields, children_data


def _string(node: Dict[str, Any], key: str, where: str) -> str:
    value = node.get(key, "")
    if not isinstance(value, str):
        raise DecodeError(f"{where}: {key} must be a string, got {type(value).__name__}")
    return value


def _dictionary(node: Dict[str, Any], key: str, where: str) -> Optional[Dict[str, Any]]:
    value = node.get(key)
    if value is not None and not isinstance(value, dict):
        raise DecodeError(f"{where}: {key} must be a dictionary, got {type(value).__name__}")
    return value


def _date(meta: Dict[str, Any], key: str, where: str) -> Optional[datetime]:
    value = meta.get(key)
    if value is not None and not isinstance(value, datetime):
        raise DecodeError(f"{where}: ReadingList.{key} must be a date")
    return value


def _reading_list(node: Dict[str, Any], where: str) -> Optional[ReadingListMeta]:
    meta = _dictionary(node, "ReadingList", where)
    if meta is None:
        return None

    return ReadingListMeta(
        date_added=_date(meta, "DateAdded", where),
        date_last_fetched=_date(meta, "DateLastFetched", where),
        date_last_viewed=_date(meta, "DateLastViewed", where),
        preview_text=_string(meta, "PreviewText", f"{where}: ReadingList"),
    )
