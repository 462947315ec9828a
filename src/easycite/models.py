"""Core data models used across easycite."""

from __future__ import annotations

import re
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

# Internal item type -> CSL type name.
CSL_TYPES: dict[str, str] = {
    "article": "article-journal",
    "book": "book",
    "chapter": "chapter",
    "paper": "paper-conference",
    "thesis": "thesis",
    "report": "report",
    "webpage": "webpage",
    "misc": "document",
}

_CSL_TO_INTERNAL: dict[str, str] = {
    **{csl: internal for internal, csl in CSL_TYPES.items()},
    "article": "article",
    "article-magazine": "article",
    "article-newspaper": "article",
    "entry-encyclopedia": "chapter",
    "entry-dictionary": "chapter",
    "post-weblog": "webpage",
    "post": "webpage",
    "manuscript": "misc",
}

_CUSTOM_KEY_RE = re.compile(r"^\s*(?:easykey|citation key)\s*:\s*(\S+)\s*$", re.IGNORECASE | re.MULTILINE)
_YEAR_RE = re.compile(r"\b(\d{4})\b")


class Author(BaseModel):
    """Represents a single contributor in the bibliographic record."""

    model_config = ConfigDict(frozen=True)

    family: str
    given: Optional[str] = None

    def display_name(self) -> str:
        if self.given:
            return f"{self.family}, {self.given}"
        return self.family

    def full_name(self) -> str:
        if self.given:
            return f"{self.given} {self.family}"
        return self.family


class Item(BaseModel):
    """A library item as handed out by an item store."""

    model_config = ConfigDict(frozen=True)

    key: str
    id: Optional[Union[int, str]] = None
    type: str = "misc"
    title: Optional[str] = None
    container_title: Optional[str] = None
    volume: Optional[str] = None
    issue: Optional[str] = None
    page: Optional[str] = None
    publisher: Optional[str] = None
    publisher_place: Optional[str] = None
    doi: Optional[str] = None
    url: Optional[str] = None
    authors: list[Author] = Field(default_factory=list)
    issued: list[str] = Field(default_factory=list)
    custom_key: Optional[str] = None

    def first_author(self) -> Optional[Author]:
        return self.authors[0] if self.authors else None

    @property
    def year(self) -> Optional[str]:
        return self.issued[0] if self.issued else None

    @property
    def csl_type(self) -> str:
        return CSL_TYPES.get(self.type, "document")

    @classmethod
    def from_csl(cls, data: dict[str, Any], key: Optional[str] = None) -> "Item":
        """Build an item from a CSL-JSON record.

        ``key`` overrides the record's own ``key`` entry; one of the two must be
        present. The custom easykey is read from an explicit ``easykey`` entry or
        from an ``easykey: ...`` / ``Citation Key: ...`` line in ``note``.
        """
        item_key = key or data.get("key")
        if not item_key:
            raise ValueError("CSL record has no item key")

        authors = []
        for raw in data.get("author") or []:
            if not isinstance(raw, dict):
                continue
            family = raw.get("family") or raw.get("literal")
            if not family:
                continue
            authors.append(Author(family=family, given=raw.get("given") or None))

        custom_key = data.get("easykey")
        note = data.get("note")
        if not custom_key and isinstance(note, str):
            match = _CUSTOM_KEY_RE.search(note)
            if match:
                custom_key = match.group(1)

        return cls(
            key=str(item_key),
            id=data.get("id"),
            type=_CSL_TO_INTERNAL.get(str(data.get("type") or ""), "misc"),
            title=_text(data.get("title")),
            container_title=_text(data.get("container-title")),
            volume=_text(data.get("volume")),
            issue=_text(data.get("issue")),
            page=_text(data.get("page")),
            publisher=_text(data.get("publisher")),
            publisher_place=_text(data.get("publisher-place")),
            doi=_text(data.get("DOI")),
            url=_text(data.get("URL")),
            authors=authors,
            issued=_date_parts(data.get("issued")),
            custom_key=custom_key,
        )


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, list):
        value = value[0] if value else None
        if value is None:
            return None
    text = str(value).strip()
    return text or None


def _date_parts(issued: Any) -> list[str]:
    if not isinstance(issued, dict):
        return []
    parts = issued.get("date-parts")
    if isinstance(parts, list) and parts and isinstance(parts[0], list) and parts[0]:
        return [str(part) for part in parts[0] if part not in (None, "")]
    for field in ("raw", "literal"):
        raw = issued.get(field)
        if isinstance(raw, str):
            match = _YEAR_RE.search(raw)
            if match:
                return [match.group(1)]
    return []
