"""Keyword search over bookmarks."""
from typing import List, Protocol
import re

from safari_data.bookmarks import Bookmark


class SearchEngine(Protocol):
    """Protocol for search engines to allow extensibility."""

    def search(self, query: str, bookmarks: List[Bookmark], limit: int = 10) -> List[Bookmark]:
        """Search bookmarks based on query.

        Args:
            query: Search query string
            bookmarks: Bookmarks to search
            limit: Maximum number of results to return

        Returns:
            Matching bookmarks, sorted by relevance
        """
        ...


class KeywordSearchEngine:
    """Simple keyword-based search engine."""

    def _tokenize(self, text: str) -> List[str]:
        """Lowercase text and split it into words."""
        return re.findall(r'\b\w+\b', text.lower())

    def _score_bookmark(self, query_tokens: List[str], bookmark: Bookmark) -> int:
        """Score a bookmark based on query tokens.

        Title matches count double; URL, folder path and Reading List
        preview count once.
        """
        title_tokens = set(self._tokenize(bookmark.title))
        other_tokens = set(self._tokenize(
            f"{bookmark.url} {bookmark.folder_path} {bookmark.preview}"
        ))

        score = 0
        for token in query_tokens:
            if token in title_tokens:
                score += 2
            elif token in other_tokens:
                score += 1

        return score

    def search(self, query: str, bookmarks: List[Bookmark], limit: int = 10) -> List[Bookmark]:
        """Search bookmarks using keyword matching.

        Args:
            query: Search query string
            bookmarks: Bookmarks to search
            limit: Maximum number of results to return

        Returns:
            Matching bookmarks, highest score first. Ties keep their original order.
        """
        if not query or not bookmarks:
            return []

        query_tokens = self._tokenize(query)

        scored = []
        for bookmark in bookmarks:
            score = self._score_bookmark(query_tokens, bookmark)
            if score > 0:
                scored.append((score, bookmark))

        # sort() is stable
        scored.sort(key=lambda x: x[0], reverse=True)

        return [bookmark for _, bookmark in scored[:limit]]
