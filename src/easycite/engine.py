"""Request-level operations over a consistent view of the library."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Optional

from easycite.config import Settings
from easycite.models import Item
from easycite.services.citations import BibliographyRequest, CitationAssembler, CitationCluster
from easycite.services.easykeys import EasykeyCandidate, EasykeyIndex
from easycite.services.rendering import FormatRenderer
from easycite.services.resolver import KeyResolver, Locator
from easycite.services.search import SearchIndex
from easycite.services.store import ItemStore, JsonFileItemStore, LibraryContents
from easycite.services.styles import BuiltinStyleProcessor, StyleProcessor
from easycite.services.zotero import ZoteroClient, ZoteroItemStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LibrarySnapshot:
    """Immutable items, memberships and indexes built from one read of the store."""

    version: Optional[object]
    items: Mapping[str, Item]
    collections: Mapping[str, tuple[str, ...]]
    selected: tuple[str, ...]
    easykeys: EasykeyIndex
    search: SearchIndex

    @classmethod
    def build(cls, contents: LibraryContents, version: Optional[object] = None) -> "LibrarySnapshot":
        by_key = {item.key: item for item in contents.items}
        easykeys = EasykeyIndex.build(by_key.values())
        return cls(
            version=version,
            items=MappingProxyType(by_key),
            collections=MappingProxyType({name: tuple(keys) for name, keys in contents.collections.items()}),
            selected=tuple(contents.selected),
            easykeys=easykeys,
            search=SearchIndex.build(by_key.values(), easykeys),
        )


@dataclass
class ReferenceEngine:
    """Entry point for item lookup, citation assembly, completion and search.

    Each call works against one snapshot. Snapshots are cached while the store
    reports an unchanged version and are replaced, never rebuilt in place.
    """

    store: ItemStore
    styles: StyleProcessor = field(default_factory=BuiltinStyleProcessor)
    default_style: str = "chicago-note-bibliography"
    _snapshot: Optional[LibrarySnapshot] = field(default=None, init=False, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def snapshot(self) -> LibrarySnapshot:
        version = self.store.version()
        with self._lock:
            cached = self._snapshot
        if version is not None and cached is not None and cached.version == version:
            return cached

        snapshot = LibrarySnapshot.build(self.store.load(), version)
        logger.info("Rebuilt library snapshot: %d items (version %s)", len(snapshot.items), version)
        with self._lock:
            self._snapshot = snapshot
        return snapshot

    def _services(self, snapshot: LibrarySnapshot) -> tuple[KeyResolver, CitationAssembler, FormatRenderer]:
        resolver = KeyResolver(
            items=snapshot.items,
            easykeys=snapshot.easykeys,
            collections=snapshot.collections,
            selected=snapshot.selected,
        )
        assembler = CitationAssembler(resolver=resolver, styles=self.styles, default_style=self.default_style)
        return resolver, assembler, FormatRenderer(assembler=assembler)

    def lookup_items(self, locator: Locator, fmt: str = "json", style_id: Optional[str] = None) -> list[Any]:
        resolver, _, renderer = self._services(self.snapshot())
        items = resolver.resolve(locator)
        return renderer.render_all(items, fmt, style_id)

    def assemble(self, request: BibliographyRequest) -> CitationCluster:
        _, assembler, _ = self._services(self.snapshot())
        return assembler.assemble(request.style_id, request.citation_groups, request.output_format)

    def complete(self, prefix: str) -> list[EasykeyCandidate]:
        return self.snapshot().search.complete(prefix)

    def search(self, query: str, fmt: str = "json", style_id: Optional[str] = None) -> list[Any]:
        snapshot = self.snapshot()
        _, _, renderer = self._services(snapshot)
        items = [snapshot.items[key] for key in snapshot.search.search(query)]
        return renderer.render_all(items, fmt, style_id)


def build_store(settings: Settings) -> ItemStore:
    if settings.store == "zotero":
        return ZoteroItemStore(ZoteroClient.from_settings(settings))
    return JsonFileItemStore(settings.library_path or "")


def build_engine(settings: Settings) -> ReferenceEngine:
    return ReferenceEngine(store=build_store(settings), default_style=settings.default_style)
