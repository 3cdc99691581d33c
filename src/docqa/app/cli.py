from __future__ import annotations

import argparse
import json
import logging
import sys
import tomllib
from typing import Any, Optional, Sequence

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from docqa.app.container import Container, build_container
from docqa.app.pipeline import answer_query, retrieve_matches
from docqa.domain.errors import DocQAError
from docqa.domain.models import Document, Query
from docqa.settings import Settings, load_settings

console = Console()
logger = logging.getLogger("docqa")


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)],
        force=True,
    )


def _metadata_arg(raw: Optional[str]) -> Optional[dict[str, Any]]:
    if raw is None:
        return None
    try:
        value = json.loads(raw)
    except json.JSONDecodeError as e:
        raise argparse.ArgumentTypeError(f"metadata must be a JSON object: {e}") from e
    if not isinstance(value, dict):
        raise argparse.ArgumentTypeError("metadata must be a JSON object")
    return value


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="docqa", description="Store documents and ask questions about them.")
    p.add_argument("--config", type=str, default=None, help="Path to settings.toml")
    p.add_argument("--log-level", type=str, default=None, help="Override service.log_level")
    sub = p.add_subparsers(dest="command", required=True)

    add = sub.add_parser("add", help="Store a document")
    add.add_argument("content", type=str, help="Document text ('-' reads stdin)")
    add.add_argument("--metadata", type=_metadata_arg, default=None, help='JSON object, e.g. \'{"lang": "en"}\'')

    get = sub.add_parser("get", help="Show one document")
    get.add_argument("id", type=str)

    upd = sub.add_parser("update", help="Change a document's content and/or metadata")
    upd.add_argument("id", type=str)
    upd.add_argument("--content", type=str, default=None)
    upd.add_argument("--metadata", type=_metadata_arg, default=None)

    rm = sub.add_parser("delete", help="Delete a document")
    rm.add_argument("id", type=str)
    rm.add_argument("--missing-ok", action="store_true", help="Succeed if the document is already gone")

    ls = sub.add_parser("list", help="List documents")
    ls.add_argument("--cursor", type=str, default=None)
    ls.add_argument("--limit", type=int, default=None)

    ask = sub.add_parser("search", help="Ask a question against the stored documents")
    ask.add_argument("question", type=str)
    ask.add_argument("--top-k", type=int, default=None)
    ask.add_argument("--min-score", type=float, default=None)
    ask.add_argument("--filter", type=_metadata_arg, default=None, help="JSON object of exact-match filters")
    ask.add_argument("--dry-run", action="store_true", help="Do retrieval only (no LLM generation)")

    serve = sub.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", type=str, default=None)
    serve.add_argument("--port", type=int, default=None)

    return p.parse_args(argv)


def _print_document(doc: Document) -> None:
    console.print(f"[bold]{doc.id}[/bold]  created={doc.created_at.isoformat()}  updated={doc.updated_at.isoformat()}")
    if doc.metadata:
        console.print(f"metadata: {json.dumps(dict(doc.metadata), sort_keys=True)}")
    console.print(doc.content)


def _serve(settings: Settings, container: Container, host: Optional[str], port: Optional[int]) -> None:
    import uvicorn

    from docqa.app.api import create_app

    uvicorn.run(
        create_app(container),
        host=host or settings.service.host,
        port=port or settings.service.port,
        log_config=None,
    )


def run(args: argparse.Namespace, container: Container) -> int:
    store = container.documents

    if args.command == "add":
        content = sys.stdin.read() if args.content == "-" else args.content
        doc = store.create(content, args.metadata, deadline=container.deadline())
        console.print(f"[green]Created[/green] {doc.id}")

    elif args.command == "get":
        _print_document(store.get(args.id))

    elif args.command == "update":
        doc = store.update(args.id, content=args.content, metadata=args.metadata, deadline=container.deadline())
        console.print(f"[green]Updated[/green] {doc.id}")

    elif args.command == "delete":
        store.delete(args.id, missing_ok=args.missing_ok)
        console.print(f"[green]Deleted[/green] {args.id}")

    elif args.command == "list":
        page = store.list(cursor=args.cursor, limit=args.limit)
        table = Table("id", "updated", "metadata", "content")
        for doc in page.items:
            preview = doc.content if len(doc.content) <= 60 else doc.content[:57] + "..."
            table.add_row(doc.id, doc.updated_at.isoformat(), json.dumps(dict(doc.metadata)), preview)
        console.print(table)
        if page.next_cursor:
            console.print(f"next cursor: {page.next_cursor}")

    elif args.command == "search":
        query = Query(text=args.question, filters=args.filter, top_k=args.top_k, min_score=args.min_score)
        if args.dry_run:
            matches = retrieve_matches(query, retriever=container.retriever, deadline=container.deadline())
            console.print("[yellow]Dry run enabled, skipping LLM generation[/yellow]")
        else:
            result = answer_query(
                query,
                retriever=container.retriever,
                synthesizer=container.synthesizer,
                tracer=container.tracer,
                deadline=container.deadline(),
            )
            matches = list(result.matches)
            console.print("\n=== ANSWER ===\n")
            console.print(result.answer.text)
            console.print("\n=== SOURCES ===")
            for i, source in enumerate(result.answer.sources, start=1):
                console.print(f"[{i}] {source}", markup=False)

        console.print("\n=== MATCHES ===")
        for m in matches:
            console.print(f"{m.score:.4f}  {m.document_id}", markup=False)

    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    try:
        settings = load_settings(args.config)
    except (DocQAError, FileNotFoundError, tomllib.TOMLDecodeError) as e:
        console.print(f"[red]Invalid configuration:[/red] {e}")
        return 2
    configure_logging(args.log_level or settings.service.log_level)

    try:
        container = build_container(settings)
        if args.command == "serve":
            _serve(settings, container, args.host, args.port)
            return 0
        return run(args, container)
    except DocQAError as e:
        console.print(f"[red]{type(e).__name__}:[/red] {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
