"""Zotero API client and item store adapter."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx

from easycite.config import Settings
from easycite.errors import StoreError, UnknownCollectionError
from easycite.models import Item
from easycite.services.store import ItemStore

logger = logging.getLogger(__name__)

PAGE_SIZE = 100


@dataclass
class ZoteroClient:
    """Lightweight HTTP client wrapper around the Zotero web or local API."""

    base_url: str
    library: str = "users/0"
    api_key: Optional[str] = None
    timeout: float = 15.0
    transport: Optional[httpx.BaseTransport] = None
    _client: Optional[httpx.Client] = field(default=None, init=False, repr=False)

    @classmethod
    def from_settings(cls, settings: Settings) -> "ZoteroClient":
        return cls(
            base_url=settings.zotero_base_url,
            library=settings.zotero_library,
            api_key=settings.zotero_api_key,
        )

    @property
    def client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(
                base_url=f"{self.base_url.rstrip('/')}/{self.library.strip('/')}",
                headers=self._headers(),
                timeout=self.timeout,
                transport=self.transport,
            )
        return self._client

    def _headers(self) -> dict[str, str]:
        headers = {
            "Zotero-API-Version": "3",
            "Accept": "application/json",
        }
        if self.api_key:
            headers["Zotero-API-Key"] = self.api_key
        return headers

    def get(self, path: str, **params: Any) -> httpx.Response:
        try:
            response = self.client.get(path, params=params)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.error("Zotero API error: %s", exc)
            raise StoreError(str(exc)) from exc
        except httpx.HTTPError as exc:
            logger.error("Zotero API unreachable: %s", exc)
            raise StoreError(f"Zotero API unreachable: {exc}") from exc
        return response

    def get_json(self, path: str, **params: Any) -> Any:
        response = self.get(path, **params)
        try:
            return response.json()
        except ValueError as exc:
            raise StoreError("Zotero API returned invalid JSON") from exc

    def get_paged(self, path: str, **params: Any) -> list[dict[str, Any]]:
        results: list[dict[str, Any]] = []
        start = 0
        while True:
            page = self.get_json(path, start=start, limit=PAGE_SIZE, **params)
            if not isinstance(page, list):
                raise StoreError(f"Zotero API returned a non-list payload for {path}")
            results.extend(page)
            if len(page) < PAGE_SIZE:
                return results
            start += PAGE_SIZE


class ZoteroItemStore(ItemStore):
    """Exposes a Zotero library as an item store.

    Item keys take the form ``<library id>_<zotero key>``. The Zotero API does not
    publish the desktop selection, so ``get_selected`` is always empty.
    """

    def __init__(self, client: ZoteroClient) -> None:
        self._client = client

    def get_by_key(self, key: str) -> Optional[Item]:
        _, _, zotero_key = key.rpartition("_")
        try:
            payload = self._client.get_json(f"/items/{zotero_key}", include="csljson,data")
        except StoreError as exc:
            if isinstance(exc.__cause__, httpx.HTTPStatusError) and exc.__cause__.response.status_code == 404:
                return None
            raise
        return self._to_item(payload)

    def get_all(self) -> list[Item]:
        items = []
        for payload in self._client.get_paged("/items/top", include="csljson,data"):
            item = self._to_item(payload)
            if item is not None:
                items.append(item)
        logger.debug("Fetched %d items from Zotero", len(items))
        return items

    def get_collections(self) -> dict[str, list[str]]:
        return {
            (collection.get("data") or {}).get("name", collection["key"]): self._members(collection["key"])
            for collection in self._client.get_paged("/collections")
        }

    def get_collection(self, name: str) -> list[str]:
        for collection in self._client.get_paged("/collections"):
            data = collection.get("data") or {}
            if data.get("name") == name:
                return self._members(collection["key"])
        raise UnknownCollectionError(name)

    def _members(self, collection_key: str) -> list[str]:
        members = self._client.get_paged(f"/collections/{collection_key}/items/top")
        return [self._item_key(member) for member in members]

    def get_selected(self) -> list[str]:
        return []

    def version(self) -> Optional[str]:
        response = self._client.get("/items/top", limit=1, format="keys")
        return response.headers.get("Last-Modified-Version")

    @staticmethod
    def _item_key(payload: dict[str, Any]) -> str:
        library = payload.get("library") or {}
        return f"{library.get('id', 0)}_{payload['key']}"

    def _to_item(self, payload: dict[str, Any]) -> Optional[Item]:
        data = payload.get("data") or {}
        if data.get("itemType") in {"attachment", "note", "annotation"}:
            return None
        csl = dict(payload.get("csljson") or {})
        if not csl:
            logger.warning("Zotero item %s has no CSL-JSON representation", payload.get("key"))
            return None
        if data.get("extra") and not csl.get("note"):
            csl["note"] = data["extra"]
        return Item.from_csl(csl, key=self._item_key(payload))
