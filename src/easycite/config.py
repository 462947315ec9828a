"""Configuration loading for easycite."""

from __future__ import annotations

from dataclasses import dataclass
import os
from typing import Optional


@dataclass
class Settings:
    store: str
    library_path: Optional[str]
    zotero_base_url: str
    zotero_library: str
    zotero_api_key: Optional[str]
    default_style: str
    host: str
    port: int
    log_level: str


DEFAULT_ZOTERO_BASE_URL = "http://localhost:23119/api"
DEFAULT_STYLE = "chicago-note-bibliography"
STORE_BACKENDS = ("json", "zotero")


def load_settings() -> Settings:
    """Load configuration from environment variables."""
    store = os.getenv("EASYCITE_STORE", "json").strip().lower()
    library_path = os.getenv("EASYCITE_LIBRARY_PATH")

    if store not in STORE_BACKENDS:
        raise RuntimeError(
            f"EASYCITE_STORE must be one of {', '.join(STORE_BACKENDS)}, got {store!r}."
        )
    if store == "json" and not library_path:
        raise RuntimeError(
            "EASYCITE_LIBRARY_PATH must be set in the environment when EASYCITE_STORE=json."
        )

    port_raw = os.getenv("EASYCITE_PORT", "23120")
    try:
        port = int(port_raw)
    except ValueError as exc:
        raise RuntimeError(f"EASYCITE_PORT must be an integer, got {port_raw!r}.") from exc

    return Settings(
        store=store,
        library_path=library_path,
        zotero_base_url=os.getenv("EASYCITE_ZOTERO_BASE_URL", DEFAULT_ZOTERO_BASE_URL),
        zotero_library=os.getenv("EASYCITE_ZOTERO_LIBRARY", "users/0"),
        zotero_api_key=os.getenv("EASYCITE_ZOTERO_API_KEY"),
        default_style=os.getenv("EASYCITE_DEFAULT_STYLE", DEFAULT_STYLE),
        host=os.getenv("EASYCITE_HOST", "127.0.0.1"),
        port=port,
        log_level=os.getenv("EASYCITE_LOG_LEVEL", "INFO").upper(),
    )
