"""HTTP interface exposing the engine under ``/zotxt``."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from easycite.engine import ReferenceEngine
from easycite.errors import EasyciteError, StoreError
from easycite.services.citations import BibliographyRequest
from easycite.services.resolver import Locator

logger = logging.getLogger(__name__)


def _rendered(results: list, fmt: str) -> Response:
    if fmt == "bibtex":
        return PlainTextResponse("\n".join(results))
    return JSONResponse(results)


def create_app(engine: ReferenceEngine) -> FastAPI:
    app = FastAPI(title="easycite")
    router = APIRouter(prefix="/zotxt")

    @app.exception_handler(StoreError)
    async def store_error(request: Request, exc: StoreError) -> PlainTextResponse:
        logger.error("Item store failure on %s: %s", request.url.path, exc)
        return PlainTextResponse(str(exc), status_code=502)

    @app.exception_handler(EasyciteError)
    async def client_error(request: Request, exc: EasyciteError) -> PlainTextResponse:
        logger.info("Rejected %s: %s", request.url.path, exc)
        return PlainTextResponse(str(exc), status_code=400)

    @app.exception_handler(RequestValidationError)
    async def invalid_request(request: Request, exc: RequestValidationError) -> PlainTextResponse:
        return PlainTextResponse(str(exc), status_code=400)

    @router.get("/items")
    def items(
        key: Optional[str] = None,
        easykey: Optional[str] = None,
        selected: Optional[str] = None,
        collection: Optional[str] = None,
        all_: Optional[str] = Query(default=None, alias="all"),
        format: str = "json",
        style: Optional[str] = None,
    ) -> Response:
        locator = Locator.from_params(
            {"key": key, "easykey": easykey, "selected": selected, "collection": collection, "all": all_}
        )
        return _rendered(engine.lookup_items(locator, format, style), format)

    @router.post("/bibliography")
    def bibliography(request: BibliographyRequest) -> JSONResponse:
        cluster = engine.assemble(request)
        return JSONResponse(cluster.model_dump(by_alias=True))

    @router.get("/complete")
    def complete(easykey: str) -> JSONResponse:
        return JSONResponse([candidate.easykey for candidate in engine.complete(easykey)])

    @router.get("/search")
    def search(q: str, format: str = "json", style: Optional[str] = None) -> Response:
        return _rendered(engine.search(q, format, style), format)

    app.include_router(router)
    return app
