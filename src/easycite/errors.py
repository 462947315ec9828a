"""Error taxonomy shared by the resolution, rendering and citation services."""

from __future__ import annotations

from typing import Iterable


class EasyciteError(RuntimeError):
    """Base class for failures reported back to the caller."""


class MissingOrConflictingLocatorError(EasyciteError):
    """Raised when a request names no locator, or more than one."""


class ResolutionError(EasyciteError):
    """Raised when a reference cannot be bound to library items."""


class UnknownKeyError(ResolutionError):
    def __init__(self, key: str) -> None:
        super().__init__(f"No item with key {key!r}")
        self.key = key


class UnknownEasykeyError(ResolutionError):
    def __init__(self, easykey: str) -> None:
        super().__init__(f"No item matches easykey {easykey!r}")
        self.easykey = easykey


class AmbiguousReferenceError(ResolutionError):
    def __init__(self, reference: str, candidates: Iterable[str]) -> None:
        self.reference = reference
        self.candidates = sorted(candidates)
        super().__init__(
            f"Easykey {reference!r} matches {len(self.candidates)} items: "
            f"{', '.join(self.candidates)}"
        )


class UnknownCollectionError(ResolutionError):
    def __init__(self, name: str) -> None:
        super().__init__(f"No collection named {name!r}")
        self.name = name


class MissingRequiredFieldError(EasyciteError):
    """Raised when an item lacks a field the requested format needs."""

    def __init__(self, item_key: str, field: str, fmt: str) -> None:
        super().__init__(f"Item {item_key} has no {field}; cannot render as {fmt}")
        self.item_key = item_key
        self.field = field
        self.format = fmt


class UnknownStyleError(EasyciteError):
    def __init__(self, style_id: str) -> None:
        super().__init__(f"Unknown citation style {style_id!r}")
        self.style_id = style_id


class UnsupportedFormatError(EasyciteError):
    def __init__(self, fmt: str, supported: Iterable[str]) -> None:
        super().__init__(f"Unsupported format {fmt!r}; expected one of {', '.join(supported)}")
        self.format = fmt


class StoreError(EasyciteError):
    """Raised when the backing item store cannot be read."""
