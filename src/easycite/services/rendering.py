"""Render resolved items in the supported output formats."""

from __future__ import annotations

import html
import logging
import re
from dataclasses import dataclass
from typing import Any, Optional, Sequence
from urllib.parse import quote

from easycite.errors import MissingRequiredFieldError, UnsupportedFormatError
from easycite.models import Item
from easycite.services.citations import CitationAssembler
from easycite.services.easykeys import colon_easykey, fold, title_words

logger = logging.getLogger(__name__)

FORMATS = ("key", "easykey", "json", "bibtex", "bibliography")

COINS_REFERRER = "info:sid/zotero.org:2"

# Internal item type -> (BibTeX entry type, field order).
BIBTEX_LAYOUT: dict[str, tuple[str, tuple[str, ...]]] = {
    "article": ("article", ("title", "volume", "number", "journal", "author", "year", "pages", "doi", "url")),
    "book": ("book", ("title", "publisher", "address", "author", "year", "doi", "url")),
    "chapter": (
        "incollection",
        ("title", "booktitle", "publisher", "address", "author", "year", "pages", "doi", "url"),
    ),
    "paper": (
        "inproceedings",
        ("title", "booktitle", "publisher", "address", "author", "year", "pages", "doi", "url"),
    ),
    "thesis": ("phdthesis", ("title", "school", "address", "author", "year", "url")),
    "report": ("techreport", ("title", "number", "institution", "address", "author", "year", "url")),
    "webpage": ("misc", ("title", "howpublished", "author", "year", "url")),
    "misc": ("misc", ("title", "howpublished", "author", "year", "url")),
}

_BIBTEX_SPECIALS = re.compile(r"([&%$#_{}])")
_VERBATIM_FIELDS = {"doi", "url"}
# Characters encodeURIComponent leaves alone beyond quote()'s defaults.
_URI_SAFE = "!*'()"


@dataclass
class FormatRenderer:
    """Pure conversions from an item to each output format."""

    assembler: CitationAssembler

    def render(self, item: Item, fmt: str, style_id: Optional[str] = None) -> Any:
        if fmt == "key":
            return item.key
        if fmt == "easykey":
            return self.easykey(item)
        if fmt == "json":
            return self.csl_json(item)
        if fmt == "bibtex":
            return self.bibtex(item)
        if fmt == "bibliography":
            return self.bibliography(item, style_id)
        raise UnsupportedFormatError(fmt, FORMATS)

    def render_all(self, items: Sequence[Item], fmt: str, style_id: Optional[str] = None) -> list[Any]:
        if fmt not in FORMATS:
            raise UnsupportedFormatError(fmt, FORMATS)
        return [self.render(item, fmt, style_id) for item in items]

    def easykey(self, item: Item) -> str:
        easykey = colon_easykey(item)
        if easykey is None:
            missing = "author" if item.first_author() is None else "issued"
            raise MissingRequiredFieldError(item.key, missing, "easykey")
        return easykey

    def csl_json(self, item: Item) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": item.id if item.id is not None else item.key,
            "type": item.csl_type,
        }
        optional = (
            ("title", item.title),
            ("container-title", item.container_title),
            ("page", item.page),
            ("volume", item.volume),
            ("issue", item.issue),
            ("publisher", item.publisher),
            ("publisher-place", item.publisher_place),
            ("DOI", item.doi),
            ("URL", item.url),
        )
        for name, value in optional:
            if value:
                data[name] = value
        if item.authors:
            data["author"] = [
                {"family": author.family, "given": author.given} if author.given else {"family": author.family}
                for author in item.authors
            ]
        if item.issued:
            data["issued"] = {"date-parts": [list(item.issued)]}
        return data

    def bibtex(self, item: Item) -> str:
        if not item.authors:
            raise MissingRequiredFieldError(item.key, "author", "bibtex")
        if not item.title:
            raise MissingRequiredFieldError(item.key, "title", "bibtex")

        entry_type, order = BIBTEX_LAYOUT.get(item.type, BIBTEX_LAYOUT["misc"])
        values = {
            "title": item.title,
            "volume": item.volume,
            "number": item.issue,
            "journal": item.container_title,
            "booktitle": item.container_title,
            "howpublished": item.container_title,
            "publisher": item.publisher,
            "school": item.publisher,
            "institution": item.publisher,
            "address": item.publisher_place,
            "author": " and ".join(author.display_name() for author in item.authors),
            "year": item.year,
            "pages": re.sub(r"\s*-+\s*", "--", item.page) if item.page else None,
            "doi": item.doi,
            "url": item.url,
        }
        lines = []
        for name in order:
            value = values.get(name)
            if not value:
                continue
            if name not in _VERBATIM_FIELDS:
                value = _BIBTEX_SPECIALS.sub(r"\\\1", value)
            lines.append(f"\t{name} = {{{value}}}")
        entry = f"\n@{entry_type}{{{bibtex_key(item)},\n" + ",\n".join(lines) + "\n}"
        logger.debug("Generated BibTeX entry for %s", item.key)
        return entry

    def bibliography(self, item: Item, style_id: Optional[str] = None) -> dict[str, str]:
        formatted = self.assembler.bibliography_entry(item, style_id, "html")
        text = self.assembler.bibliography_entry(item, style_id, "text")
        return {
            "key": item.key,
            "html": formatted.html([coins_span(item)]),
            "text": text.entries[0],
        }


def _ascii(text: str) -> str:
    return "".join(ch for ch in fold(text) if ch.isascii() and ch.isalnum())


def bibtex_key(item: Item) -> str:
    """``surname_word_year`` built from ASCII-folded, lowercased components."""
    author = item.first_author()
    words = title_words(item.title)
    parts = [
        _ascii(author.family) if author else "",
        _ascii(words[0]) if words else "",
        item.year or "",
    ]
    return "_".join(part for part in parts if part) or item.key


def openurl_context(item: Item) -> list[tuple[str, str]]:
    """OpenURL 1.0 key/value pairs describing ``item``."""
    pairs = [
        ("url_ver", "Z39.88-2004"),
        ("ctx_ver", "Z39.88-2004"),
        ("rfr_id", COINS_REFERRER),
    ]
    if item.doi:
        pairs.append(("rft_id", f"info:doi/{item.doi}"))

    if item.type == "article":
        pairs += [
            ("rft_val_fmt", "info:ofi/fmt:kev:mtx:journal"),
            ("rft.genre", "article"),
            ("rft.atitle", item.title),
            ("rft.jtitle", item.container_title),
            ("rft.volume", item.volume),
            ("rft.issue", item.issue),
        ]
    elif item.type in {"book", "chapter", "paper"}:
        pairs.append(("rft_val_fmt", "info:ofi/fmt:kev:mtx:book"))
        if item.type == "book":
            pairs += [("rft.genre", "book"), ("rft.btitle", item.title)]
        else:
            genre = "bookitem" if item.type == "chapter" else "proceeding"
            pairs += [("rft.genre", genre), ("rft.atitle", item.title), ("rft.btitle", item.container_title)]
        pairs += [("rft.place", item.publisher_place), ("rft.publisher", item.publisher)]
    else:
        pairs += [
            ("rft_val_fmt", "info:ofi/fmt:kev:mtx:dc"),
            ("rft.type", item.csl_type),
            ("rft.title", item.title),
        ]

    author = item.first_author()
    if author:
        pairs += [("rft.aufirst", author.given), ("rft.aulast", author.family)]
    pairs += [("rft.au", other.full_name()) for other in item.authors]
    pairs.append(("rft.date", item.year))

    if item.page:
        pairs.append(("rft.pages", item.page))
        bounds = re.split(r"\s*-+\s*", item.page)
        if len(bounds) == 2:
            pairs += [("rft.spage", bounds[0]), ("rft.epage", bounds[1])]
    return [(name, value) for name, value in pairs if value]


def coins_span(item: Item) -> str:
    """COinS span embedding the item's OpenURL context object."""
    query = "&".join(f"{name}={quote(value, safe=_URI_SAFE)}" for name, value in openurl_context(item))
    return f'<span class="Z3988" title="{html.escape(query)}"></span>'
