"""Turn request locators into ordered lists of library items."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Mapping, Optional, Sequence
from urllib.parse import unquote

from pydantic import BaseModel

from easycite.errors import (
    AmbiguousReferenceError,
    MissingOrConflictingLocatorError,
    UnknownCollectionError,
    UnknownEasykeyError,
    UnknownKeyError,
)
from easycite.models import Item
from easycite.services.easykeys import EasykeyIndex

logger = logging.getLogger(__name__)

LOCATOR_KINDS = ("keys", "easykeys", "selected", "collection", "all")

# Request parameter names accepted for each locator kind.
_PARAM_ALIASES = {
    "keys": ("key", "keys"),
    "easykeys": ("easykey", "easykeys"),
    "selected": ("selected",),
    "collection": ("collection",),
    "all": ("all",),
}


class Locator(BaseModel):
    """Exactly one way of naming the items a request is about."""

    kind: str
    value: Optional[str] = None

    @classmethod
    def from_params(cls, params: Mapping[str, Optional[str]]) -> "Locator":
        present = []
        for kind, names in _PARAM_ALIASES.items():
            for name in names:
                if params.get(name) is not None:
                    present.append((kind, params[name]))
                    break
        if len(present) != 1:
            raise MissingOrConflictingLocatorError(
                "Exactly one of key, easykey, selected, collection or all is required"
            )
        kind, value = present[0]
        return cls(kind=kind, value=value)

    def parts(self) -> list[str]:
        parts = [part.strip() for part in (self.value or "").split(",")]
        parts = [part for part in parts if part]
        if not parts:
            raise MissingOrConflictingLocatorError(f"Empty {self.kind} list")
        return parts


@dataclass
class KeyResolver:
    """Resolves locators against one library snapshot."""

    items: Mapping[str, Item]
    easykeys: EasykeyIndex
    collections: Mapping[str, Sequence[str]] = field(default_factory=dict)
    selected: Sequence[str] = ()

    def resolve(self, locator: Locator) -> list[Item]:
        if locator.kind not in LOCATOR_KINDS:
            raise MissingOrConflictingLocatorError(f"Unknown locator {locator.kind!r}")

        if locator.kind == "keys":
            resolved = [self._by_key(key) for key in locator.parts()]
        elif locator.kind == "easykeys":
            resolved = []
            for easykey in locator.parts():
                resolved.extend(self._by_easykey(easykey))
        elif locator.kind == "selected":
            resolved = [self._by_key(key) for key in self.selected]
        elif locator.kind == "collection":
            resolved = [self._by_key(key) for key in self._collection(locator.value or "")]
        else:
            resolved = [self.items[key] for key in sorted(self.items)]

        logger.debug("Resolved %s locator to %d items", locator.kind, len(resolved))
        return resolved

    def resolve_one(self, easykey: Optional[str] = None, key: Optional[str] = None) -> Item:
        """Bind a single reference to exactly one item."""
        if (easykey is None) == (key is None):
            raise MissingOrConflictingLocatorError("A citation item needs exactly one of easyKey or key")
        if key is not None:
            return self._by_key(key)

        matches = self.easykeys.lookup_exact(easykey)
        if not matches:
            raise UnknownEasykeyError(easykey)
        if len(matches) > 1:
            raise AmbiguousReferenceError(easykey, matches)
        return self._by_key(next(iter(matches)))

    def _collection(self, name: str) -> Sequence[str]:
        """Members of ``name``, taken literally first and percent-decoded second."""
        for candidate in (name, unquote(name)):
            if candidate in self.collections:
                return self.collections[candidate]
        raise UnknownCollectionError(name)

    def _by_key(self, key: str) -> Item:
        try:
            return self.items[key]
        except KeyError as exc:
            raise UnknownKeyError(key) from exc

    def _by_easykey(self, easykey: str) -> list[Item]:
        matches = self.easykeys.lookup_exact(easykey)
        if not matches:
            raise UnknownEasykeyError(easykey)
        if len(matches) > 1:
            logger.debug("Easykey %r matches %d items", easykey, len(matches))
        return [self._by_key(key) for key in sorted(matches)]
