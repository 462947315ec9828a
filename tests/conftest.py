import json

import pytest

from easycite.engine import LibrarySnapshot, ReferenceEngine
from easycite.models import Item
from easycite.services.resolver import KeyResolver
from easycite.services.store import InMemoryItemStore

LIBRARY = {
    "items": [
        {
            "key": "0_ZBZQ4KMP",
            "id": 2857,
            "type": "book",
            "title": "First Book",
            "publisher": "Cambridge University Press",
            "publisher-place": "Cambridge",
            "author": [{"family": "Doe", "given": "John"}],
            "issued": {"date-parts": [["2005"]]},
        },
        {
            "key": "0_4T8MCITQ",
            "id": 2858,
            "type": "article-journal",
            "title": "Article",
            "container-title": "Journal of Generic Studies",
            "page": "33-34",
            "volume": "6",
            "author": [{"family": "Doe", "given": "John"}],
            "issued": {"date-parts": [["2006"]]},
        },
        {
            "key": "0_HUNING12",
            "id": 2859,
            "type": "article-journal",
            "title": "De relatie tussen vorm en betekenis",
            "container-title": "Nederlandse Taalkunde",
            "volume": "17",
            "issue": "2",
            "page": "150-170",
            "author": [{"family": "Hüning", "given": "Matthias"}],
            "issued": {"date-parts": [[2012, 5]]},
            "note": "easykey: hüning:2012foo",
        },
        {
            "key": "0_ROEESSAY",
            "id": 2860,
            "type": "book",
            "title": "Collected Essays",
            "publisher": "Penguin",
            "author": [{"family": "Roe", "given": "Jane"}],
            "issued": {"date-parts": [["2010"]]},
            "note": "Citation Key: RoeCollected2010a",
        },
        {
            "key": "0_ROELETTR",
            "id": 2861,
            "type": "book",
            "title": "Collected Letters",
            "publisher": "Penguin",
            "author": [{"family": "Roe", "given": "Jane"}],
            "issued": {"date-parts": [["2010"]]},
        },
        {
            "key": "0_ANONPAGE",
            "id": 2862,
            "type": "webpage",
            "title": "Anonymous Page",
            "URL": "https://example.org/page",
            "issued": {"date-parts": [["2019"]]},
        },
    ],
    "collections": {"My citations": ["0_ZBZQ4KMP", "0_4T8MCITQ"]},
    "selected": ["0_4T8MCITQ"],
}


@pytest.fixture
def library_items() -> list[Item]:
    return [Item.from_csl(record) for record in LIBRARY["items"]]


@pytest.fixture
def store(library_items) -> InMemoryItemStore:
    return InMemoryItemStore(
        items=library_items,
        collections=LIBRARY["collections"],
        selected=LIBRARY["selected"],
    )


@pytest.fixture
def snapshot(store) -> LibrarySnapshot:
    return LibrarySnapshot.build(store.load(), store.version())


@pytest.fixture
def resolver(snapshot) -> KeyResolver:
    return KeyResolver(
        items=snapshot.items,
        easykeys=snapshot.easykeys,
        collections=snapshot.collections,
        selected=snapshot.selected,
    )


@pytest.fixture
def engine(store) -> ReferenceEngine:
    return ReferenceEngine(store=store)


@pytest.fixture
def library_file(tmp_path):
    path = tmp_path / "library.json"
    path.write_text(json.dumps(LIBRARY), encoding="utf-8")
    return path
