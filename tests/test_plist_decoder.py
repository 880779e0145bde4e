"""Tests for plist_decoder module."""
import plistlib
from datetime import datetime

import pytest

from conftest import document, folder, leaf, nested_folders_xml
from safari_data.errors import DecodeError
from safari_data.plist_decoder import NodeKind, decode_document


def encode(doc, fmt=plistlib.FMT_XML):
    return plistlib.dumps(doc, fmt=fmt)


class TestDecodeDocument:
    def test_decodes_xml(self, sample_document):
        root = decode_document(encode(sample_document))
        assert root.kind is NodeKind.LIST
        assert len(root.children) == 4

    def test_decodes_binary(self, sample_document):
        root = decode_document(encode(sample_document, plistlib.FMT_BINARY))
        assert [c.kind for c in root.children] == [
            NodeKind.PROXY, NodeKind.LIST, NodeKind.LIST, NodeKind.LIST,
        ]

    def test_leaf_fields(self):
        root = decode_document(encode(document(
            folder("BookmarksBar", "BAR", [leaf("Example", "http://example.com", "U1")]),
        )))
        bookmark = root.children[0].children[0]
        assert bookmark.kind is NodeKind.LEAF
        assert bookmark.title == "Example"
        assert bookmark.url == "http://example.com"
        assert bookmark.uid == "U1"
        assert bookmark.reading_list is None
        assert bookmark.children == ()

    def test_unknown_type_kept(self):
        root = decode_document(encode(document({"WebBookmarkType": "WebBookmarkTypeSomethingNew"})))
        assert root.children[0].kind is NodeKind.UNKNOWN
        assert root.children[0].type_name == "WebBookmarkTypeSomethingNew"

    def test_missing_type_is_unknown(self):
        root = decode_document(encode(document({"Title": "No type"})))
        assert root.children[0].kind is NodeKind.UNKNOWN


class TestTitles:
    def test_explicit_title_wins(self):
        node = leaf("ignored", "https://a.com", "A", uri_title="From URIDictionary")
        node["Title"] = "Explicit"
        root = decode_document(encode(document(folder("F", "F1", [node]))))
        assert root.children[0].children[0].title == "Explicit"

    def test_falls_back_to_uri_dictionary(self):
        node = leaf("Generated", "https://a.com", "A")
        node["Title"] = ""
        root = decode_document(encode(document(folder("F", "F1", [node]))))
        assert root.children[0].children[0].title == "Generated"

    def test_no_title_is_empty(self):
        node = {"WebBookmarkType": "WebBookmarkTypeLeaf", "URLString": "https://a.com"}
        root = decode_document(encode(document(folder("F", "F1", [node]))))
        assert root.children[0].children[0].title == ""


class TestReadingList:
    def test_reading_list_metadata(self):
        added = datetime(2024, 3, 1, 12, 0, 0)
        node = leaf("Read me", "https://a.com", "R1", reading_list={
            "DateAdded": added,
            "PreviewText": "hello",
        })
        root = decode_document(encode(document(folder("com.apple.ReadingList", "RL", [node]))))
        meta = root.children[0].children[0].reading_list
        assert meta.preview_text == "hello"
        assert meta.date_added == added
        assert meta.date_last_viewed is None


class TestMalformed:
    def test_garbage_raises(self):
        with pytest.raises(DecodeError):
            decode_document(b"not a plist")

    def test_empty_raises(self):
        with pytest.raises(DecodeError):
            decode_document(b"")

    def test_truncated_binary_raises(self, sample_document):
        data = encode(sample_document, plistlib.FMT_BINARY)
        with pytest.raises(DecodeError):
            decode_document(data[: len(data) // 2])

    def test_root_must_be_dict(self):
        with pytest.raises(DecodeError, match="expected a dictionary"):
            decode_document(encode(["not", "a", "dict"]))

    def test_children_must_be_array(self):
        doc = document()
        doc["Children"] = "nope"
        with pytest.raises(DecodeError, match="Children"):
            decode_document(encode(doc))

    def test_url_must_be_string(self):
        node = leaf("Bad", "x", "A")
        node["URLString"] = 42
        with pytest.raises(DecodeError, match="URLString"):
            decode_document(encode(document(folder("F", "F1", [node]))))

    def test_reading_list_must_be_dict(self):
        node = leaf("Bad", "https://a.com", "A", reading_list=["oops"])
        with pytest.raises(DecodeError, match="ReadingList"):
            decode_document(encode(document(folder("F", "F1", [node]))))

    def test_reading_list_date_must_be_date(self):
        node = leaf("Bad", "https://a.com", "A", reading_list={"DateAdded": "yesterday"})
        with pytest.raises(DecodeError, match="DateAdded"):
            decode_document(encode(document(folder("F", "F1", [node]))))

    def test_decode_error_is_value_error(self):
        with pytest.raises(ValueError):
            decode_document(b"\x00\x01")

    def test_malformed_date_raises(self):
        data = (
            b'<?xml version="1.0" encoding="UTF-8"?>'
            b'<plist version="1.0"><dict>'
            b"<key>WebBookmarkType</key><string>WebBookmarkTypeList</string>"
            b"<key>X</key><date>not-a-date</date>"
            b"</dict></plist>"
        )
        with pytest.raises(DecodeError, match="Invalid property list"):
            decode_document(data)


class TestDeepNesting:
    def test_deeper_than_recursion_limit(self):
        depth = 3000
        node = decode_document(nested_folders_xml(depth))

        for level in range(depth):
            assert len(node.children) == 1
            node = node.children[0]
            assert node.uid == f"F{level}"

        assert node.children[0].kind is NodeKind.LEAF
        assert node.children[0].uid == "DEEP"

    def test_children_keep_document_order(self, sample_document):
        root = decode_document(encode(sample_document))
        work = root.children[1].children[1]
        assert [c.uid for c in work.children] == ["B2", "B3", "F-ARCHIVE"]
        assert [c.uid for c in root.children[1].children] == ["B1", "F-WORK", "B5", "F-TUT"]
