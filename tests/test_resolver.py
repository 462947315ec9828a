import pytest

from easycite.engine import LibrarySnapshot
from easycite.errors import (
    AmbiguousReferenceError,
    MissingOrConflictingLocatorError,
    UnknownCollectionError,
    UnknownEasykeyError,
    UnknownKeyError,
)
from easycite.models import Author, Item
from easycite.services.easykeys import EasykeyIndex, colon_easykey
from easycite.services.resolver import KeyResolver, Locator
from easycite.services.store import LibraryContents


def keys_of(items):
    return [item.key for item in items]


def test_locator_requires_exactly_one_kind():
    with pytest.raises(MissingOrConflictingLocatorError):
        Locator.from_params({})
    with pytest.raises(MissingOrConflictingLocatorError):
        Locator.from_params({"key": "0_ZBZQ4KMP", "easykey": "DoeBook2005"})


def test_locator_accepts_singular_and_plural_names():
    assert Locator.from_params({"key": "a"}).kind == "keys"
    assert Locator.from_params({"easykeys": "a"}).kind == "easykeys"
    assert Locator.from_params({"all": "all", "format": "key"}).kind == "all"


def test_key_list_keeps_input_order(resolver):
    items = resolver.resolve(Locator(kind="keys", value="0_4T8MCITQ, 0_ZBZQ4KMP,0_4T8MCITQ"))
    assert keys_of(items) == ["0_4T8MCITQ", "0_ZBZQ4KMP", "0_4T8MCITQ"]


def test_unknown_key_fails_whole_request(resolver):
    with pytest.raises(UnknownKeyError):
        resolver.resolve(Locator(kind="keys", value="0_ZBZQ4KMP,0_NOPE"))


def test_empty_list_is_a_locator_error(resolver):
    with pytest.raises(MissingOrConflictingLocatorError):
        resolver.resolve(Locator(kind="easykeys", value=" , "))


def test_easykeys_resolve_in_order(resolver):
    items = resolver.resolve(Locator(kind="easykeys", value="DoeBook2005,DoeArticle2006"))
    assert keys_of(items) == ["0_ZBZQ4KMP", "0_4T8MCITQ"]


def test_ambiguous_easykey_returns_every_match(resolver):
    items = resolver.resolve(Locator(kind="easykeys", value="RoeCollected2010"))
    assert keys_of(items) == ["0_ROEESSAY", "0_ROELETTR"]


def test_unknown_easykey_is_never_an_empty_success(resolver):
    with pytest.raises(UnknownEasykeyError):
        resolver.resolve(Locator(kind="easykeys", value="XXX"))
    with pytest.raises(UnknownEasykeyError):
        resolver.resolve(Locator(kind="easykeys", value="DoeBook2005,FooBar0000"))


def test_selected_and_collection(resolver):
    assert keys_of(resolver.resolve(Locator(kind="selected", value="selected"))) == ["0_4T8MCITQ"]
    collection = resolver.resolve(Locator(kind="collection", value="My%20citations"))
    assert keys_of(collection) == ["0_ZBZQ4KMP", "0_4T8MCITQ"]
    with pytest.raises(UnknownCollectionError):
        resolver.resolve(Locator(kind="collection", value="Nothing here"))


def test_all_returns_every_item(resolver, library_items):
    items = resolver.resolve(Locator(kind="all", value="all"))
    assert keys_of(items) == sorted(item.key for item in library_items)


def test_resolve_one_requires_a_single_match(resolver):
    assert resolver.resolve_one(easykey="DoeBook2005").key == "0_ZBZQ4KMP"
    assert resolver.resolve_one(key="0_4T8MCITQ").title == "Article"
    with pytest.raises(AmbiguousReferenceError) as excinfo:
        resolver.resolve_one(easykey="RoeCollected2010")
    assert excinfo.value.candidates == ["0_ROEESSAY", "0_ROELETTR"]
    with pytest.raises(UnknownEasykeyError):
        resolver.resolve_one(easykey="FooBar0000")
    with pytest.raises(MissingOrConflictingLocatorError):
        resolver.resolve_one()


def test_canonical_easykey_cites_its_own_item():
    first = Item(key="A", type="book", title="First Book", authors=[Author(family="Doe")], issued=["2005"])
    songs = Item(key="B", type="book", title="Book of Songs", authors=[Author(family="Doe")], issued=["2005"])
    snapshot = LibrarySnapshot.build(LibraryContents(items=[first, songs], collections={}, selected=[]))
    resolver = KeyResolver(items=snapshot.items, easykeys=snapshot.easykeys)
    assert resolver.resolve_one(easykey=colon_easykey(songs)).key == "B"
    assert resolver.resolve_one(easykey=colon_easykey(first)).key == "A"


def test_collection_names_are_matched_literally_before_decoding(library_items):
    resolver = KeyResolver(
        items={item.key: item for item in library_items},
        easykeys=EasykeyIndex.build(library_items),
        collections={"50%25 off": ["0_ZBZQ4KMP"], "A B": ["0_4T8MCITQ"]},
    )
    assert keys_of(resolver.resolve(Locator(kind="collection", value="50%25 off"))) == ["0_ZBZQ4KMP"]
    assert keys_of(resolver.resolve(Locator(kind="collection", value="A%20B"))) == ["0_4T8MCITQ"]
    with pytest.raises(UnknownCollectionError):
        resolver.resolve(Locator(kind="collection", value="50% off"))
