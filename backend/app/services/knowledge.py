"""Lexical search over the self-help knowledge base."""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from app.core.config import get_settings
from app.services.record_store import KNOWLEDGE, JsonRecordStore, record_store


TITLE_MAX_CHARS = 50
TITLE_TRUNCATE_AT = 47


class KnowledgeRetriever:
    """Keyword scoring: +1 per query term in the article, +2 more when the title has it."""

    def __init__(self, store: Optional[JsonRecordStore] = None, max_results: Optional[int] = None) -> None:
        self._store = store or record_store
        self._max_results = max_results if max_results is not None else get_settings().knowledge_max_results

    @staticmethod
    def display_title(article: Dict[str, Any]) -> str:
        title = str(article.get("title") or "").strip()
        if title:
            return title
        first_line = str(article.get("content") or "").split("\n")[0].strip()
        if len(first_line) > TITLE_MAX_CHARS:
            return first_line[:TITLE_TRUNCATE_AT] + "..."
        return first_line

    @staticmethod
    def score(article: Dict[str, Any], terms: List[str]) -> int:
        title = str(article.get("title") or "").lower()
        tags = article.get("tags") or []
        if not isinstance(tags, list):
            tags = [str(tags)]
        haystack = " ".join([title, str(article.get("content") or ""), " ".join(str(t) for t in tags)]).lower()

        total = 0
        for term in terms:
            if term in haystack:
                total += 1
                if title and term in title:
                    total += 2
        return total

    def articles(self) -> List[Dict[str, Any]]:
        return self._store.read_all(KNOWLEDGE) or []

    def search(self, query: str) -> List[Dict[str, Any]]:
        terms = [term for term in str(query or "").lower().split() if term]
        if not terms:
            return []

        scored = []
        for article in self.articles():
            points = self.score(article, terms)
            if points <= 0:
                continue
            scored.append({**article, "title": self.display_title(article), "score": points})

        # sorted() is stable, so ties keep corpus order.
        scored = sorted(scored, key=lambda row: row["score"], reverse=True)
        return scored[: self._max_results]


knowledge_retriever = KnowledgeRetriever()
