"""Free-text search and easykey completion over a library snapshot."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Iterable

from easycite.models import Item
from easycite.services.easykeys import EasykeyCandidate, EasykeyIndex, fold

logger = logging.getLogger(__name__)

FIELD_WEIGHTS = {
    "title": 3.0,
    "author": 2.0,
    "container": 1.0,
    "year": 1.0,
}

_TOKEN_RE = re.compile(r"\w+")


def tokenize(text: str | None) -> list[str]:
    if not text:
        return []
    return _TOKEN_RE.findall(fold(text))


@dataclass(frozen=True)
class _Document:
    key: str
    sort_title: str
    fields: tuple[tuple[str, frozenset[str]], ...]

    def score(self, term: str) -> float:
        return sum(
            FIELD_WEIGHTS[name]
            for name, tokens in self.fields
            if any(token.startswith(term) for token in tokens)
        )


class SearchIndex:
    """Token index ranking items by weighted field matches.

    Every query term must match (as a token prefix) in at least one field.
    """

    def __init__(self, documents: Iterable[_Document], easykeys: EasykeyIndex) -> None:
        self._documents = tuple(documents)
        self._easykeys = easykeys

    @classmethod
    def build(cls, items: Iterable[Item], easykeys: EasykeyIndex) -> "SearchIndex":
        documents = []
        for item in items:
            authors: list[str] = []
            for author in item.authors:
                authors.extend(tokenize(author.family))
                authors.extend(tokenize(author.given))
            documents.append(
                _Document(
                    key=item.key,
                    sort_title=fold(item.title or ""),
                    fields=(
                        ("title", frozenset(tokenize(item.title))),
                        ("author", frozenset(authors)),
                        ("container", frozenset(tokenize(item.container_title))),
                        ("year", frozenset(tokenize(item.year))),
                    ),
                )
            )
        return cls(documents, easykeys)

    def search(self, query: str) -> list[str]:
        terms = tokenize(query)
        if not terms:
            return []
        ranked = []
        for document in self._documents:
            scores = [document.score(term) for term in terms]
            if all(scores):
                ranked.append((-sum(scores), document.sort_title, document.key))
        ranked.sort()
        logger.debug("Search %r matched %d items", query, len(ranked))
        return [key for _, _, key in ranked]

    def complete(self, prefix: str) -> list[EasykeyCandidate]:
        return self._easykeys.lookup_prefix(prefix)
