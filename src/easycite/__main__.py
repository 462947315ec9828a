"""Command-line entry point for easycite."""

from __future__ import annotations

import argparse
import json
import logging
import sys

import uvicorn

from easycite.config import load_settings
from easycite.engine import ReferenceEngine, build_engine
from easycite.errors import EasyciteError
from easycite.services.citations import BibliographyRequest, CitationGroup, CitationItem
from easycite.services.rendering import FORMATS
from easycite.services.resolver import Locator
from easycite.server import create_app


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="easycite",
        description="Resolve easykeys and format citations from a reference library.",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("serve", help="Run the HTTP server.")

    items = commands.add_parser("items", help="Look up items and render them.")
    locator = items.add_mutually_exclusive_group(required=True)
    locator.add_argument("--key", help="Comma-separated library keys.")
    locator.add_argument("--easykey", help="Comma-separated easykeys.")
    locator.add_argument("--collection", help="Name of a collection.")
    locator.add_argument("--selected", action="store_const", const="selected", help="Current selection.")
    locator.add_argument("--all", action="store_const", const="all", help="Every item in the library.")
    items.add_argument("--format", choices=FORMATS, default="json")
    items.add_argument("--style", help="Style for the bibliography format.")

    complete = commands.add_parser("complete", help="Complete an easykey prefix.")
    complete.add_argument("prefix")

    search = commands.add_parser("search", help="Free-text search.")
    search.add_argument("query")
    search.add_argument("--format", choices=FORMATS, default="key")
    search.add_argument("--style")

    cite = commands.add_parser("cite", help="Format one citation of the given easykeys.")
    cite.add_argument("easykeys", nargs="+")
    cite.add_argument("--style", default="chicago-author-date")
    cite.add_argument("--output-format", choices=("html", "text"), default="text")
    return parser


def _emit(results: list, fmt: str) -> None:
    if fmt == "bibtex":
        print("\n".join(results))
    else:
        print(json.dumps(results, indent=2, ensure_ascii=False))


def run_command(args: argparse.Namespace, engine: ReferenceEngine) -> None:
    if args.command == "items":
        locator = Locator.from_params(
            {
                "key": args.key,
                "easykey": args.easykey,
                "collection": args.collection,
                "selected": args.selected,
                "all": args.all,
            }
        )
        _emit(engine.lookup_items(locator, args.format, args.style), args.format)
    elif args.command == "complete":
        print("\n".join(candidate.easykey for candidate in engine.complete(args.prefix)))
    elif args.command == "search":
        _emit(engine.search(args.query, args.format, args.style), args.format)
    elif args.command == "cite":
        request = BibliographyRequest(
            style_id=args.style,
            citation_groups=[
                CitationGroup(citation_items=[CitationItem(easy_key=easykey) for easykey in args.easykeys])
            ],
            output_format=args.output_format,
        )
        cluster = engine.assemble(request)
        print(cluster.citation_clusters[0])
        for entry in cluster.bibliography:
            print(entry)


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = load_settings()
    logging.basicConfig(level=settings.log_level)
    engine = build_engine(settings)

    if args.command == "serve":
        uvicorn.run(create_app(engine), host=settings.host, port=settings.port)
        return 0

    try:
        run_command(args, engine)
    except EasyciteError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
