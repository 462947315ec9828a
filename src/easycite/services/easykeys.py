"""Easykey derivation, normalization and lookup index.

An easykey is a short human-typed handle for an item, derived from the first
author's family name, a word of the title and the publication year. Two
spellings are accepted: the colon form ``doe:2005book`` and the camel form
``DoeBook2005``. Both fold to the same normalized key, ``doebook2005``: letters
first, in order, then digits. Diacritics and case are dropped during folding,
so composed and decomposed input, ``Hüning`` and ``huning`` all agree.
"""

from __future__ import annotations

import logging
import re
import unicodedata
from collections import defaultdict
from dataclasses import dataclass
from types import MappingProxyType
from typing import Iterable, Mapping, Optional

from pydantic import BaseModel

from easycite.models import Item

logger = logging.getLogger(__name__)

# Leading articles and prepositions skipped when picking the title word.
STOP_WORDS = frozenset(
    """
    a an the some from on in to of do with
    der die das ein eine einer eines einem einen
    un une la le l el las los al uno una unos unas de des del d
    het een van
    """.split()
)

_WORD_RE = re.compile(r"[^\W\d_]+")


class EasykeyCandidate(BaseModel):
    """A completion candidate: an easykey string and the item it names."""

    easykey: str
    key: str


def fold(text: str) -> str:
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch)).casefold()


def normalize_easykey(raw: str) -> str:
    """Fold ``raw`` to the form used for matching."""
    folded = fold(raw)
    letters = "".join(ch for ch in folded if ch.isalpha())
    digits = "".join(ch for ch in folded if ch.isdigit())
    return letters + digits


def normalize_prefix(raw: str) -> str:
    """Fold a completion prefix, keeping the colon of the colon form."""
    return "".join(ch for ch in fold(raw) if ch.isalnum() or ch == ":")


def title_words(title: Optional[str]) -> list[str]:
    """Significant words of ``title`` in order, lowercased, stop words removed."""
    if not title:
        return []
    words = _WORD_RE.findall(unicodedata.normalize("NFC", title).lower())
    return [word for word in words if fold(word) not in STOP_WORDS]


def _family_token(family: str) -> str:
    return "".join(ch for ch in unicodedata.normalize("NFC", family).lower() if ch.isalpha())


def easykey_parts(item: Item) -> Optional[tuple[str, str, str]]:
    """Return ``(family, year, word)`` for ``item`` or ``None`` when underivable."""
    author = item.first_author()
    year = item.year
    if author is None or not year:
        return None
    family = _family_token(author.family)
    if not family:
        return None
    words = title_words(item.title)
    return family, year, words[0] if words else ""


def colon_easykey(item: Item) -> Optional[str]:
    parts = easykey_parts(item)
    if parts is None:
        return None
    family, year, word = parts
    return f"{family}:{year}{word}"


def camel_easykey(item: Item) -> Optional[str]:
    parts = easykey_parts(item)
    if parts is None:
        return None
    family, year, word = parts
    return f"{family.capitalize()}{word.capitalize()}{year}"


@dataclass(frozen=True)
class _Entry:
    easykey: str
    normalized: str
    colon_form: str
    key: str


class EasykeyIndex:
    """Immutable mapping from normalized easykeys to item keys.

    Three tables are consulted in order and the first one that knows the key
    answers: custom keys, canonical easykeys, then aliases (one per title word
    plus a word-less ``family:year``). An alias never shadows another item's
    canonical easykey.
    """

    def __init__(
        self,
        custom: Mapping[str, frozenset[str]],
        canonical: Mapping[str, frozenset[str]],
        aliases: Mapping[str, frozenset[str]],
        entries: Iterable[_Entry],
    ) -> None:
        self._layers = tuple(
            MappingProxyType(dict(table)) for table in (custom, canonical, aliases)
        )
        self._entries = tuple(sorted(entries, key=lambda entry: (entry.easykey, entry.key)))

    @classmethod
    def build(cls, items: Iterable[Item]) -> "EasykeyIndex":
        custom: dict[str, set[str]] = defaultdict(set)
        canonical: dict[str, set[str]] = defaultdict(set)
        aliases: dict[str, set[str]] = defaultdict(set)
        entries: list[_Entry] = []
        skipped = 0

        for item in items:
            parts = easykey_parts(item)
            normalized = None
            if parts is not None:
                family, year, word = parts
                easykey = f"{family}:{year}{word}"
                normalized = normalize_easykey(easykey)
                canonical[normalized].add(item.key)
                entries.append(_Entry(easykey, normalized, normalize_prefix(easykey), item.key))
                aliases[normalize_easykey(f"{family}:{year}")].add(item.key)
                for alias in title_words(item.title):
                    aliases[normalize_easykey(f"{family}:{year}{alias}")].add(item.key)
            else:
                skipped += 1

            custom_normalized = normalize_easykey(item.custom_key or "")
            if custom_normalized:
                custom[custom_normalized].add(item.key)
                # A custom key that only respells the canonical easykey is not listed twice.
                if custom_normalized != normalized:
                    entries.append(
                        _Entry(item.custom_key, custom_normalized, normalize_prefix(item.custom_key), item.key)
                    )

        logger.debug(
            "Built easykey index: %d canonical keys, %d aliases, %d custom keys, %d items without easykey",
            len(canonical),
            len(aliases),
            len(custom),
            skipped,
        )
        return cls(
            custom={key: frozenset(value) for key, value in custom.items()},
            canonical={key: frozenset(value) for key, value in canonical.items()},
            aliases={key: frozenset(value) for key, value in aliases.items()},
            entries=entries,
        )

    def lookup_exact(self, raw: str) -> frozenset[str]:
        normalized = normalize_easykey(raw)
        if not normalized:
            return frozenset()
        for table in self._layers:
            hit = table.get(normalized)
            if hit:
                return hit
        return frozenset()

    def lookup_prefix(self, raw: str) -> list[EasykeyCandidate]:
        """Canonical and custom easykeys starting with ``raw``.

        A prefix containing a colon is compared with the colon form, anything
        else with the normalized form. Results are sorted by easykey, then key.
        """
        if ":" in raw:
            prefix = normalize_prefix(raw)
            matches = [entry for entry in self._entries if entry.colon_form.startswith(prefix)]
        else:
            prefix = normalize_easykey(raw)
            matches = [entry for entry in self._entries if entry.normalized.startswith(prefix)]
        seen: set[tuple[str, str]] = set()
        candidates = []
        for entry in matches:
            marker = (entry.easykey, entry.key)
            if marker in seen:
                continue
            seen.add(marker)
            candidates.append(EasykeyCandidate(easykey=entry.easykey, key=entry.key))
        return candidates

    def __len__(self) -> int:
        return len(self._entries)
