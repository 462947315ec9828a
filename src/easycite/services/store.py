"""Item store interfaces and local implementations."""

from __future__ import annotations

import json
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Mapping, Optional, Sequence

from pydantic import ValidationError

from easycite.errors import StoreError, UnknownCollectionError
from easycite.models import Item

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LibraryContents:
    """Items, collections and selection read from a single state of a store."""

    items: list[Item]
    collections: dict[str, list[str]]
    selected: list[str]


class ItemStore(ABC):
    """Read-only view of a reference library."""

    @abstractmethod
    def get_by_key(self, key: str) -> Optional[Item]:
        """Return the item stored under ``key``, or ``None``."""

    @abstractmethod
    def get_all(self) -> list[Item]:
        """Return every item in the library."""

    @abstractmethod
    def get_collections(self) -> dict[str, list[str]]:
        """Return every collection name with its member keys."""

    @abstractmethod
    def get_selected(self) -> list[str]:
        """Return the keys of the items currently selected by the user."""

    def get_collection(self, name: str) -> list[str]:
        """Return the member keys of the named collection.

        Raises ``UnknownCollectionError`` when no such collection exists.
        """
        try:
            return list(self.get_collections()[name])
        except KeyError as exc:
            raise UnknownCollectionError(name) from exc

    def load(self) -> LibraryContents:
        """Read the whole library in one go."""
        return LibraryContents(
            items=self.get_all(),
            collections=self.get_collections(),
            selected=self.get_selected(),
        )

    def version(self) -> Optional[object]:
        """Opaque token that changes whenever the contents change.

        ``None`` means the store cannot tell, so callers must assume it changed.
        """
        return None


class InMemoryItemStore(ItemStore):
    """Store backed by plain Python containers."""

    def __init__(
        self,
        items: Iterable[Item] = (),
        collections: Optional[Mapping[str, Sequence[str]]] = None,
        selected: Sequence[str] = (),
    ) -> None:
        self._items: dict[str, Item] = {item.key: item for item in items}
        self._collections = {name: list(keys) for name, keys in (collections or {}).items()}
        self._selected = list(selected)
        self._version = 0
        self._lock = threading.Lock()

    def add(self, item: Item) -> None:
        with self._lock:
            self._items[item.key] = item
            self._version += 1

    def remove(self, key: str) -> None:
        with self._lock:
            self._items.pop(key, None)
            self._version += 1

    def get_by_key(self, key: str) -> Optional[Item]:
        return self._items.get(key)

    def get_all(self) -> list[Item]:
        with self._lock:
            return list(self._items.values())

    def get_collections(self) -> dict[str, list[str]]:
        with self._lock:
            return {name: list(keys) for name, keys in self._collections.items()}

    def get_selected(self) -> list[str]:
        with self._lock:
            return list(self._selected)

    def load(self) -> LibraryContents:
        with self._lock:
            return LibraryContents(
                items=list(self._items.values()),
                collections={name: list(keys) for name, keys in self._collections.items()},
                selected=list(self._selected),
            )

    def version(self) -> int:
        return self._version


class JsonFileItemStore(ItemStore):
    """Store reading a JSON library document from disk.

    The document holds ``items`` (CSL-JSON records carrying a ``key``),
    ``collections`` (name to member keys) and ``selected`` (keys). The file is
    re-read whenever its modification time changes.
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        self._loaded_mtime: Optional[int] = None
        self._store = InMemoryItemStore()
        self._lock = threading.Lock()

    def _current(self) -> InMemoryItemStore:
        mtime = self._mtime()
        with self._lock:
            if mtime != self._loaded_mtime:
                self._store = self._load()
                self._loaded_mtime = mtime
            return self._store

    def _mtime(self) -> int:
        try:
            return self.path.stat().st_mtime_ns
        except OSError as exc:
            raise StoreError(f"Cannot read library file {self.path}: {exc}") from exc

    def _load(self) -> InMemoryItemStore:
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise StoreError(f"Cannot load library file {self.path}: {exc}") from exc
        if not isinstance(payload, dict):
            raise StoreError(f"Library file {self.path} must contain a JSON object")

        items: list[Item] = []
        for raw in payload.get("items") or []:
            try:
                items.append(Item.from_csl(raw))
            except (ValueError, ValidationError, AttributeError) as exc:
                logger.warning("Skipping malformed record in %s: %s", self.path, exc)
        logger.info("Loaded %d items from %s", len(items), self.path)
        return InMemoryItemStore(
            items=items,
            collections=payload.get("collections") or {},
            selected=payload.get("selected") or [],
        )

    def get_by_key(self, key: str) -> Optional[Item]:
        return self._current().get_by_key(key)

    def get_all(self) -> list[Item]:
        return self._current().get_all()

    def get_collections(self) -> dict[str, list[str]]:
        return self._current().get_collections()

    def get_selected(self) -> list[str]:
        return self._current().get_selected()

    def load(self) -> LibraryContents:
        return self._current().load()

    def version(self) -> int:
        return self._mtime()
