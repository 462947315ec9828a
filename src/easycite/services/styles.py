"""Citation style processing.

The rest of the package only talks to :class:`StyleProcessor`. The built-in
processor implements the two Chicago variants by hand; any other engine that
honours the same two methods can be swapped in.
"""

from __future__ import annotations

import html
import logging
import re
from abc import ABC, abstractmethod
from typing import Any, Mapping, Optional, Sequence

from pydantic import BaseModel

from easycite.errors import UnknownStyleError, UnsupportedFormatError
from easycite.models import Author, Item
from easycite.services.easykeys import fold

logger = logging.getLogger(__name__)

OUTPUT_FORMATS = ("html", "text")
STYLE_URL_PREFIXES = ("http://www.zotero.org/styles/", "https://www.zotero.org/styles/")

_RANGE_RE = re.compile(r"\s*-+\s*")


class Cite(BaseModel):
    """One resolved item inside a citation group."""

    item: Item
    locator: Optional[str] = None
    label: Optional[str] = None
    prefix: Optional[str] = None
    suffix: Optional[str] = None
    suppress_author: bool = False


class Bibliography(BaseModel):
    """Formatted bibliography entries plus the layout the style asks for."""

    entries: list[str]
    line_height: str = "1.35"
    hanging_indent: bool = True

    def html(self, trailers: Optional[Sequence[str]] = None) -> str:
        style = f"line-height: {self.line_height};"
        if self.hanging_indent:
            style += " padding-left: 2em; text-indent:-2em;"
        lines = [f'<div style="{style}" class="csl-bib-body">']
        for index, entry in enumerate(self.entries):
            lines.append(f'  <div class="csl-entry">{entry}</div>')
            if trailers:
                lines.append(f"  {trailers[index]}")
        lines.append("</div>")
        return "\n".join(lines)


class StyleProcessor(ABC):
    """Interface for citation style engines."""

    @abstractmethod
    def format_cluster(
        self,
        style_id: str,
        cites: Sequence[Cite],
        properties: Mapping[str, Any],
        output_format: str = "html",
    ) -> str:
        """Render one citation group."""

    @abstractmethod
    def make_bibliography(
        self,
        style_id: str,
        items: Sequence[Item],
        output_format: str = "html",
    ) -> Bibliography:
        """Render bibliography entries for ``items`` in style order."""


class Markup:
    """Escaping and emphasis for one output format."""

    def __init__(self, output_format: str) -> None:
        if output_format not in OUTPUT_FORMATS:
            raise UnsupportedFormatError(output_format, OUTPUT_FORMATS)
        self.is_html = output_format == "html"

    def text(self, value: str) -> str:
        return html.escape(value, quote=False) if self.is_html else value

    def italic(self, value: str) -> str:
        escaped = self.text(value)
        return f"<i>{escaped}</i>" if self.is_html else escaped


def page_range(pages: str) -> str:
    return _RANGE_RE.sub("–", pages.strip())


def _closed(raw: str, rendered: str, mark: str = ".") -> str:
    """Append ``mark`` unless ``raw`` already ends in terminal punctuation."""
    return rendered if raw.rstrip().endswith((".", "?", "!")) else rendered + mark


def _quoted(title: str, markup: Markup, mark: str) -> str:
    return f"“{_closed(title, markup.text(title), mark)}”"


def _series(names: list[str]) -> str:
    if len(names) == 1:
        return names[0]
    if len(names) == 2:
        return f"{names[0]} and {names[1]}"
    return f"{', '.join(names[:-1])}, and {names[-1]}"


def bibliography_names(authors: Sequence[Author]) -> str:
    if not authors:
        return ""
    first = authors[0].display_name()
    rest = [author.full_name() for author in authors[1:]]
    if not rest:
        return first
    if len(rest) == 1:
        return f"{first}, and {rest[0]}"
    return f"{first}, {', '.join(rest[:-1])}, and {rest[-1]}"


def note_names(authors: Sequence[Author]) -> str:
    if not authors:
        return ""
    if len(authors) > 3:
        return f"{authors[0].full_name()} et al."
    return _series([author.full_name() for author in authors])


def short_names(authors: Sequence[Author]) -> str:
    if not authors:
        return ""
    if len(authors) > 3:
        return f"{authors[0].family} et al."
    return _series([author.family for author in authors])


def _affix(cite: Cite, body: str) -> str:
    if cite.prefix:
        body = cite.prefix + ("" if cite.prefix.endswith(" ") else " ") + body
    if cite.suffix:
        suffix = cite.suffix
        body = body + (" " + suffix if suffix[:1].isalnum() else suffix)
    return body


def _publication(item: Item, markup: Markup, year: Optional[str]) -> str:
    place = item.publisher_place
    publisher = item.publisher
    if place and publisher:
        where = f"{place}: {publisher}"
    else:
        where = place or publisher or ""
    pieces = [markup.text(where)] if where else []
    if year:
        pieces.append(year)
    return ", ".join(pieces)


class CitationStyle(ABC):
    """Rules of a single built-in style."""

    style_id: str = ""
    line_height = "1.35"
    hanging_indent = True

    @abstractmethod
    def cite(self, cite: Cite, markup: Markup) -> str:
        """Render one cite of a cluster."""

    @abstractmethod
    def cluster(self, rendered: list[str]) -> str:
        """Join rendered cites into the final cluster string."""

    @abstractmethod
    def bibliography_entry(self, item: Item, markup: Markup) -> str:
        """Render one bibliography entry."""

    def sort_key(self, item: Item) -> tuple[str, str, str]:
        author = item.first_author()
        lead = author.family if author else (item.title or "")
        return fold(lead), item.year or "", fold(item.title or "")


class ChicagoAuthorDate(CitationStyle):
    style_id = "chicago-author-date"

    def cite(self, cite: Cite, markup: Markup) -> str:
        item = cite.item
        year = item.year or "n.d."
        if cite.suppress_author:
            body = year
        elif item.authors:
            body = f"{markup.text(short_names(item.authors))} {year}"
        else:
            body = f"“{markup.text(item.title or '')}” {year}"
        if cite.locator:
            body += f", {markup.text(page_range(cite.locator))}"
        return _affix(cite, body)

    def cluster(self, rendered: list[str]) -> str:
        return f"({'; '.join(rendered)})"

    def bibliography_entry(self, item: Item, markup: Markup) -> str:
        parts = []
        names = bibliography_names(item.authors)
        if names:
            parts.append(_closed(names, markup.text(names)))
        year = item.year or "n.d."
        title = item.title or ""

        if item.type == "book":
            if not names:
                parts.append(_closed(title, markup.italic(title)))
                parts.append(f"{year}.")
            else:
                parts.append(f"{year}.")
                parts.append(_closed(title, markup.italic(title)))
            where = _publication(item, markup, None)
            if where:
                parts.append(f"{where}.")
            return " ".join(parts)

        if names:
            parts.append(f"{year}.")
            parts.append(_quoted(title, markup, "."))
        else:
            parts.append(_quoted(title, markup, "."))
            parts.append(f"{year}.")

        if item.type == "article" and item.container_title:
            tail = markup.italic(item.container_title)
            if item.volume:
                tail += f" {markup.text(item.volume)}"
            if item.issue:
                tail += f" ({markup.text(item.issue)})"
            if item.page:
                tail += f": {markup.text(page_range(item.page))}"
            parts.append(f"{tail}.")
        elif item.type in {"chapter", "paper"} and item.container_title:
            tail = f"In {markup.italic(item.container_title)}"
            if item.page:
                tail += f", {markup.text(page_range(item.page))}"
            parts.append(f"{tail}.")
            where = _publication(item, markup, None)
            if where:
                parts.append(f"{where}.")
        else:
            if item.container_title:
                parts.append(_closed(item.container_title, markup.italic(item.container_title)))
            where = _publication(item, markup, None)
            if where:
                parts.append(f"{where}.")
        if item.url and item.type == "webpage":
            parts.append(f"{markup.text(item.url)}.")
        return " ".join(parts)


class ChicagoNoteBibliography(CitationStyle):
    style_id = "chicago-note-bibliography"

    def cite(self, cite: Cite, markup: Markup) -> str:
        item = cite.item
        year = item.year or "n.d."
        title = item.title or ""
        names = "" if cite.suppress_author else note_names(item.authors)
        lead = f"{markup.text(names)}, " if names else ""
        pages = cite.locator or item.page

        if item.type == "book":
            body = f"{lead}{markup.italic(title)} ({_publication(item, markup, year)})"
            if cite.locator:
                body += f", {markup.text(page_range(cite.locator))}"
        elif item.type == "article" and item.container_title:
            body = f"{lead}{_quoted(title, markup, ',')} {markup.italic(item.container_title)}"
            if item.volume:
                body += f" {markup.text(item.volume)}"
            if item.issue:
                body += f", no. {markup.text(item.issue)}"
            body += f" ({year})"
            if pages:
                body += f": {markup.text(page_range(pages))}"
        else:
            body = f"{lead}{_quoted(title, markup, ',')}"
            if item.container_title:
                body += f" in {markup.italic(item.container_title)}"
            body += f" ({_publication(item, markup, year)})"
            if pages:
                body += f", {markup.text(page_range(pages))}"
        return _affix(cite, body)

    def cluster(self, rendered: list[str]) -> str:
        joined = "; ".join(rendered)
        return joined if joined.endswith(".") else f"{joined}."

    def bibliography_entry(self, item: Item, markup: Markup) -> str:
        parts = []
        names = bibliography_names(item.authors)
        if names:
            parts.append(_closed(names, markup.text(names)))
        year = item.year or "n.d."
        title = item.title or ""

        if item.type == "book":
            parts.append(_closed(title, markup.italic(title)))
            parts.append(f"{_publication(item, markup, year)}.")
        elif item.type == "article" and item.container_title:
            parts.append(_quoted(title, markup, "."))
            tail = markup.italic(item.container_title)
            if item.volume:
                tail += f" {markup.text(item.volume)}"
            if item.issue:
                tail += f", no. {markup.text(item.issue)}"
            tail += f" ({year})"
            if item.page:
                tail += f": {markup.text(page_range(item.page))}"
            parts.append(f"{tail}.")
        elif item.type in {"chapter", "paper"} and item.container_title:
            parts.append(_quoted(title, markup, "."))
            tail = f"In {markup.italic(item.container_title)}"
            if item.page:
                tail += f", {markup.text(page_range(item.page))}"
            parts.append(f"{tail}.")
            parts.append(f"{_publication(item, markup, year)}.")
        else:
            parts.append(_quoted(title, markup, "."))
            if item.container_title:
                parts.append(_closed(item.container_title, markup.italic(item.container_title)))
            parts.append(f"{_publication(item, markup, year)}.")
            if item.url and item.type == "webpage":
                parts.append(f"{markup.text(item.url)}.")
        return " ".join(parts)


BUILTIN_STYLES: tuple[CitationStyle, ...] = (ChicagoAuthorDate(), ChicagoNoteBibliography())


class BuiltinStyleProcessor(StyleProcessor):
    """Style processor backed by the hand-written styles in this module."""

    def __init__(self, styles: Sequence[CitationStyle] = BUILTIN_STYLES) -> None:
        self._styles = {style.style_id: style for style in styles}

    def style(self, style_id: str) -> CitationStyle:
        name = style_id.strip()
        for prefix in STYLE_URL_PREFIXES:
            if name.startswith(prefix):
                name = name[len(prefix):]
                break
        try:
            return self._styles[name]
        except KeyError as exc:
            raise UnknownStyleError(style_id) from exc

    def format_cluster(
        self,
        style_id: str,
        cites: Sequence[Cite],
        properties: Mapping[str, Any],
        output_format: str = "html",
    ) -> str:
        style = self.style(style_id)
        markup = Markup(output_format)
        return style.cluster([style.cite(cite, markup) for cite in cites])

    def make_bibliography(
        self,
        style_id: str,
        items: Sequence[Item],
        output_format: str = "html",
    ) -> Bibliography:
        style = self.style(style_id)
        markup = Markup(output_format)
        ordered = sorted(items, key=style.sort_key)
        logger.debug("Formatting %d bibliography entries with %s", len(ordered), style.style_id)
        return Bibliography(
            entries=[style.bibliography_entry(item, markup) for item in ordered],
            line_height=style.line_height,
            hanging_indent=style.hanging_indent,
        )
