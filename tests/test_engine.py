import json
import os

import pytest

from easycite.config import Settings
from easycite.engine import ReferenceEngine, build_engine, build_store
from easycite.errors import UnknownEasykeyError
from easycite.models import Author, Item
from easycite.services.citations import BibliographyRequest
from easycite.services.resolver import KeyResolver, Locator
from easycite.services.store import JsonFileItemStore
from easycite.services.zotero import ZoteroItemStore


class CountingStore:
    """Wraps a store and counts full reads."""

    def __init__(self, inner, version=None):
        self.inner = inner
        self.reads = 0
        self._version = version

    def version(self):
        return self._version

    def load(self):
        self.reads += 1
        return self.inner.load()


def make_settings(**overrides) -> Settings:
    values = dict(
        store="json",
        library_path="library.json",
        zotero_base_url="http://localhost:23119/api",
        zotero_library="users/0",
        zotero_api_key=None,
        default_style="chicago-author-date",
        host="127.0.0.1",
        port=23120,
        log_level="INFO",
    )
    values.update(overrides)
    return Settings(**values)


def test_lookup_items(engine):
    locator = Locator.from_params({"easykey": "DoeBook2005"})
    [item] = engine.lookup_items(locator)
    assert item["type"] == "book"
    assert item["title"] == "First Book"
    assert item["author"][0]["family"] == "Doe"


def test_snapshot_is_reused_while_version_is_unchanged(store):
    counting = CountingStore(store, version=1)
    engine = ReferenceEngine(store=counting)
    first = engine.snapshot()
    assert engine.snapshot() is first
    assert counting.reads == 1

    counting._version = 2
    assert engine.snapshot() is not first
    assert counting.reads == 2


def test_unversioned_store_is_read_every_time(store):
    counting = CountingStore(store)
    engine = ReferenceEngine(store=counting)
    engine.snapshot()
    engine.snapshot()
    assert counting.reads == 2


def test_new_items_become_resolvable(engine, store):
    locator = Locator.from_params({"easykey": "PoeRaven1845"})
    with pytest.raises(UnknownEasykeyError):
        engine.lookup_items(locator, "key")

    store.add(Item(key="0_RAVEN", type="misc", title="The Raven", authors=[Author(family="Poe")], issued=["1845"]))
    assert engine.lookup_items(locator, "key") == ["0_RAVEN"]


def test_old_snapshot_is_untouched_by_rebuilds(engine, store):
    before = engine.snapshot()
    store.remove("0_ZBZQ4KMP")
    after = engine.snapshot()
    assert "0_ZBZQ4KMP" in before.items
    assert "0_ZBZQ4KMP" not in after.items
    assert before.easykeys.lookup_exact("DoeBook2005") == {"0_ZBZQ4KMP"}


def test_assemble_and_search(engine):
    request = BibliographyRequest.model_validate(
        {
            "styleId": "chicago-author-date",
            "citationGroups": [{"citationItems": [{"easyKey": "DoeBook2005"}], "properties": {"noteIndex": 0}}],
        }
    )
    assert engine.assemble(request).citation_clusters == ["(Doe 2005)"]
    assert engine.search("doe article", "key") == ["0_4T8MCITQ"]
    assert [c.easykey for c in engine.complete("DoeArticle2006")] == ["doe:2006article"]


def test_build_store_picks_backend(tmp_path):
    assert isinstance(build_store(make_settings(library_path=str(tmp_path / "lib.json"))), JsonFileItemStore)
    assert isinstance(build_store(make_settings(store="zotero")), ZoteroItemStore)


def test_build_engine_uses_default_style():
    engine = build_engine(make_settings())
    assert engine.default_style == "chicago-author-date"


def test_snapshot_memberships_survive_file_changes(library_file):
    engine = ReferenceEngine(store=JsonFileItemStore(library_file))
    before = engine.snapshot()

    library = json.loads(library_file.read_text(encoding="utf-8"))
    library["items"].append({"key": "0_NEWBOOK1", "type": "book", "title": "New Book"})
    library["collections"]["My citations"].append("0_NEWBOOK1")
    library["selected"] = ["0_NEWBOOK1"]
    library_file.write_text(json.dumps(library), encoding="utf-8")
    stat = library_file.stat()
    os.utime(library_file, ns=(stat.st_atime_ns, stat.st_mtime_ns + 1_000_000_000))

    resolver = KeyResolver(
        items=before.items,
        easykeys=before.easykeys,
        collections=before.collections,
        selected=before.selected,
    )
    collection = resolver.resolve(Locator(kind="collection", value="My citations"))
    assert [item.key for item in collection] == ["0_ZBZQ4KMP", "0_4T8MCITQ"]
    assert [item.key for item in resolver.resolve(Locator(kind="selected", value="selected"))] == ["0_4T8MCITQ"]

    collection = engine.lookup_items(Locator(kind="collection", value="My citations"), "key")
    assert collection == ["0_ZBZQ4KMP", "0_4T8MCITQ", "0_NEWBOOK1"]
    assert engine.lookup_items(Locator(kind="selected", value="selected"), "key") == ["0_NEWBOOK1"]
