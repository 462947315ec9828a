"""Citation cluster assembly."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field

from easycite.models import Item
from easycite.services.resolver import KeyResolver
from easycite.services.styles import Bibliography, Cite, StyleProcessor

logger = logging.getLogger(__name__)


class CitationItem(BaseModel):
    """A reference inside a citation group, by easykey or library key."""

    model_config = ConfigDict(populate_by_name=True)

    easy_key: Optional[str] = Field(default=None, alias="easyKey")
    key: Optional[str] = None
    locator: Optional[str] = None
    label: Optional[str] = None
    prefix: Optional[str] = None
    suffix: Optional[str] = None
    suppress_author: bool = Field(default=False, alias="suppress-author")


class CitationGroup(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    citation_items: list[CitationItem] = Field(alias="citationItems", min_length=1)
    properties: dict[str, Any] = Field(default_factory=dict)


class BibliographyRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    style_id: str = Field(alias="styleId")
    citation_groups: list[CitationGroup] = Field(alias="citationGroups")
    output_format: str = Field(default="html", alias="outputFormat")


class CitationCluster(BaseModel):
    """Rendered citations, one per input group, plus the matching bibliography."""

    model_config = ConfigDict(populate_by_name=True)

    citation_clusters: list[str] = Field(alias="citationClusters")
    bibliography: list[str] = Field(default_factory=list)


@dataclass
class CitationAssembler:
    """Applies a style to citation groups, all or nothing."""

    resolver: KeyResolver
    styles: StyleProcessor
    default_style: str

    def assemble(
        self,
        style_id: Optional[str],
        groups: Sequence[CitationGroup],
        output_format: str = "html",
    ) -> CitationCluster:
        style = style_id or self.default_style

        # Bind every reference before rendering anything.
        resolved: list[list[Cite]] = []
        for group in groups:
            cites = []
            for citation in group.citation_items:
                item = self.resolver.resolve_one(easykey=citation.easy_key, key=citation.key)
                cites.append(
                    Cite(
                        item=item,
                        locator=citation.locator,
                        label=citation.label,
                        prefix=citation.prefix,
                        suffix=citation.suffix,
                        suppress_author=citation.suppress_author,
                    )
                )
            resolved.append(cites)

        clusters = [
            self.styles.format_cluster(style, cites, group.properties, output_format)
            for group, cites in zip(groups, resolved)
        ]

        cited: dict[str, Item] = {}
        for cites in resolved:
            for cite in cites:
                cited.setdefault(cite.item.key, cite.item)
        bibliography = self.styles.make_bibliography(style, list(cited.values()), output_format)

        logger.debug("Assembled %d citation clusters with style %s", len(clusters), style)
        return CitationCluster(citation_clusters=clusters, bibliography=bibliography.entries)

    def bibliography_entry(self, item: Item, style_id: Optional[str] = None, output_format: str = "html") -> Bibliography:
        """Single-item bibliography used by the ``bibliography`` item format."""
        return self.styles.make_bibliography(style_id or self.default_style, [item], output_format)
