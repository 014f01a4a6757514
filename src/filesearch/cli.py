"""Command line interface for filesearch."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from filesearch.config import AppConfig
from filesearch.index.indexer import Scanner
from filesearch.index.search import QueryEngine
from filesearch.index.storage import SQLiteMetadataStore, StoreError
from filesearch.models import FileRecord
from filesearch.utils.files import display_path
from filesearch.utils.text import format_timestamp, human_size
from filesearch.web.app import app as web_app


console = Console()
app = typer.Typer(help="filesearch - local file metadata index")

MAX_ISSUES_SHOWN = 10


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="[%(levelname)s] %(message)s")


def _ensure_db_parent(db_path: Path) -> None:
    db_path.parent.mkdir(parents=True, exist_ok=True)


def _resolve_db(db: Optional[Path]) -> Path:
    config = AppConfig(db_path=db if db is not None else AppConfig().db_path)
    return config.resolve_db_path(Path.cwd())


def _open_existing_store(db: Optional[Path]) -> SQLiteMetadataStore:
    resolved_db = _resolve_db(db)
    if not resolved_db.exists():
        raise typer.BadParameter(f"Database not found: {resolved_db}")
    try:
        return SQLiteMetadataStore(resolved_db)
    except StoreError as exc:
        console.print(f"[red]Cannot open database: {escape(str(exc))}[/red]")
        raise typer.Exit(code=1) from exc


def _render_records(records: List[FileRecord], *, show_hash: bool = False) -> None:
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Name")
    table.add_column("Ext")
    table.add_column("Size", justify="right")
    table.add_column("Last Modified")
    table.add_column("Indexed At")
    if show_hash:
        table.add_column("SHA-256")
    table.add_column("Path")

    for record in records:
        row = [
            escape(record.name),
            record.extension,
            human_size(record.size),
            format_timestamp(record.last_modified),
            format_timestamp(record.indexed_at),
        ]
        if show_hash:
            row.append((record.sha256 or "")[:12])
        row.append(escape(str(record.path)))
        table.add_row(*row)

    console.print(table)


@app.command()
def scan(
    root: Path = typer.Argument(..., help="Directory to index.", resolve_path=True),
    db: Path = typer.Option(None, "--db", help="SQLite database path"),
    compute_hash: bool = typer.Option(
        AppConfig().compute_hash,
        "--hash/--no-hash",
        help="Compute SHA-256 (slower, needed for accurate duplicates)",
    ),
    workers: Optional[int] = typer.Option(None, "--workers", min=1, help="Worker threads"),
    fail_fast: bool = typer.Option(
        AppConfig().fail_fast, "--fail-fast", help="Abort on the first database write error"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Recursively index a directory."""
    _setup_logging(verbose)
    config = AppConfig(
        db_path=db if db is not None else AppConfig().db_path,
        compute_hash=compute_hash,
        max_workers=workers,
        fail_fast=fail_fast,
    )
    resolved_db = config.resolve_db_path(Path.cwd())
    _ensure_db_parent(resolved_db)

    try:
        store = SQLiteMetadataStore(resolved_db)
    except StoreError as exc:
        console.print(f"[red]Scan failed: {escape(str(exc))}[/red]")
        raise typer.Exit(code=1) from exc

    scanner = Scanner(
        store,
        compute_hash=config.compute_hash,
        commit_every=config.commit_every,
        progress_every=config.progress_every,
        max_workers=config.max_workers,
        fail_fast=config.fail_fast,
        hash_chunk_size=config.hash_chunk_size,
    )

    console.print(
        f"Indexing [bold]{escape(str(root))}[/bold] "
        f"into [bold]{escape(str(resolved_db))}[/bold]..."
    )
    try:
        summary = scanner.scan(
            root, progress=lambda count: console.print(f"Indexed {count} files...")
        )
    except (FileNotFoundError, NotADirectoryError, PermissionError) as exc:
        raise typer.BadParameter(str(exc)) from exc
    except StoreError as exc:
        console.print(f"[red]Scan failed: {exc}[/red]")
        raise typer.Exit(code=1) from exc
    finally:
        store.close()

    console.print(
        f"Scan finished. Files indexed: {summary.files_processed} in {summary.elapsed_ms} ms"
    )
    if summary.issues:
        console.print(
            f"[yellow]Skipped: {summary.skipped}, store failures: {summary.store_failures}, "
            f"issues: {len(summary.issues)}[/yellow]"
        )
        for issue in summary.issues[:MAX_ISSUES_SHOWN]:
            line = f"  [{issue.kind}] {display_path(issue.path)}: {issue.reason}"
            console.print(escape(line), soft_wrap=True)
    if summary.store_failures:
        raise typer.Exit(code=1)


@app.command()
def search(
    name: Optional[str] = typer.Option(None, "--name", help="Name contains (case-insensitive)"),
    ext: Optional[str] = typer.Option(None, "--ext", help="Extension, e.g. txt or .txt"),
    size_min: Optional[str] = typer.Option(None, "--size-min", help="Minimum size in bytes"),
    size_max: Optional[str] = typer.Option(None, "--size-max", help="Maximum size in bytes"),
    date_from: Optional[str] = typer.Option(None, "--from", help="Modified on/after (YYYY-MM-DD)"),
    date_to: Optional[str] = typer.Option(None, "--to", help="Modified on/before (YYYY-MM-DD)"),
    sort: str = typer.Option("name", "--sort", help="name, extension, size, last_modified, indexed_at"),
    desc: bool = typer.Option(False, "--desc", help="Sort descending"),
    limit: int = typer.Option(AppConfig().page_size, "--limit", help="Page size"),
    page: int = typer.Option(0, "--page", min=0, help="Zero-based page index"),
    db: Path = typer.Option(None, "--db", help="SQLite database path"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Search the index with optional filters."""
    _setup_logging(verbose)
    store = _open_existing_store(db)
    try:
        results = QueryEngine(store).search(
            name=name,
            extension=ext,
            size_min=size_min,
            size_max=size_max,
            date_from=date_from,
            date_to=date_to,
            sort_key=sort,
            descending=desc,
            limit=limit,
            page=page,
        )
    except StoreError as exc:
        console.print(f"[red]Search failed: {exc}[/red]")
        raise typer.Exit(code=1) from exc
    finally:
        store.close()

    if not results:
        console.print("[yellow]No matches found.[/yellow]")
        return
    _render_records(results)
    console.print(f"Page {page + 1}, results: {len(results)}")


@app.command()
def recent(
    limit: int = typer.Option(AppConfig().page_size, "--limit", help="Number of records"),
    db: Path = typer.Option(None, "--db", help="SQLite database path"),
) -> None:
    """Show the most recently indexed files."""
    store = _open_existing_store(db)
    try:
        results = QueryEngine(store).recent(limit)
    except StoreError as exc:
        console.print(f"[red]Query failed: {exc}[/red]")
        raise typer.Exit(code=1) from exc
    finally:
        store.close()

    if not results:
        console.print("[yellow]Index is empty.[/yellow]")
        return
    _render_records(results)


@app.command()
def duplicates(
    db: Path = typer.Option(None, "--db", help="SQLite database path"),
) -> None:
    """List files sharing identical content (requires a scan with --hash)."""
    store = _open_existing_store(db)
    try:
        results = QueryEngine(store).duplicates()
    except StoreError as exc:
        console.print(f"[red]Query failed: {exc}[/red]")
        raise typer.Exit(code=1) from exc
    finally:
        store.close()

    if not results:
        console.print("[yellow]No duplicates found. Tip: scan with --hash first.[/yellow]")
        return
    _render_records(results, show_hash=True)
    console.print(f"Duplicates: {len(results)}")


@app.command()
def web(
    host: str = typer.Option("127.0.0.1", help="Host interface"),
    port: int = typer.Option(8000, help="Server port"),
    db: Path = typer.Option(None, "--db", help="SQLite database path"),
) -> None:
    """Start the HTTP API."""
    try:
        import uvicorn
    except ImportError as exc:  # pragma: no cover
        raise typer.BadParameter(
            "uvicorn is not installed. Install the web extras with \"python -m pip install '.[web]'\""
        ) from exc

    resolved_db = _resolve_db(db)
    if not resolved_db.exists():
        console.print("[yellow]Warning: database not found, queries will fail until a scan runs.[/yellow]")

    console.print(f"Starting API on http://{host}:{port} (database: {resolved_db})")
    uvicorn.run(
        web_app,
        host=host,
        port=port,
        reload=False,
        log_level="info",
    )
