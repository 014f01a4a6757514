"""FastAPI application exposing the filesearch index over HTTP."""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path
from typing import Any, List

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from filesearch import __version__
from filesearch.config import AppConfig
from filesearch.index.indexer import Scanner
from filesearch.index.search import QueryEngine
from filesearch.index.storage import SQLiteMetadataStore, StoreError
from filesearch.models import FileRecord

LOGGER = logging.getLogger(__name__)

app = FastAPI(title="filesearch API", version=__version__)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


class ScanPayload(BaseModel):
    root: str
    db: str | None = None
    compute_hash: bool = False
    fail_fast: bool = False


class SearchPayload(BaseModel):
    name: str | None = None
    extension: str | None = None
    size_min: str | None = None
    size_max: str | None = None
    date_from: str | None = None
    date_to: str | None = None
    sort_key: str = "name"
    descending: bool = False
    limit: int = 50
    page: int = 0
    db: Path | None = None


def _resolve_db_path(db: Path | str | None) -> Path:
    config = AppConfig(db_path=Path(db) if db is not None else AppConfig().db_path)
    return config.resolve_db_path(Path.cwd())


def _ensure_db_parent(db_path: Path) -> None:
    db_path.parent.mkdir(parents=True, exist_ok=True)


def _open_existing_store(db: Path | str | None) -> SQLiteMetadataStore:
    resolved_db = _resolve_db_path(db)
    if not resolved_db.exists():
        raise HTTPException(
            status_code=404,
            detail=f"Database not found at {resolved_db}. Run a scan first.",
        )
    try:
        return SQLiteMetadataStore(resolved_db)
    except StoreError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc


def _serialize(records: List[FileRecord]) -> List[dict[str, Any]]:
    return [record.to_dict() for record in records]


@app.on_event("startup")
async def startup_event() -> None:
    logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")


def _validate_root(raw: str) -> Path:
    clean_path = raw.strip().replace("\r", "").replace("\n", "")
    if not clean_path:
        raise HTTPException(status_code=400, detail="No path provided")
    if "\0" in clean_path:
        raise HTTPException(status_code=400, detail="Invalid path: contains null byte")

    root = Path(os.path.realpath(os.path.expanduser(clean_path)))
    if not root.exists():
        raise HTTPException(status_code=404, detail=f"Path not found: {clean_path}")
    if not root.is_dir():
        raise HTTPException(status_code=400, detail=f"Path must be a directory: {clean_path}")
    return root


def _run_scan_job(root: Path, config: AppConfig, resolved_db: Path) -> dict[str, Any]:
    store = SQLiteMetadataStore(resolved_db)
    scanner = Scanner(
        store,
        compute_hash=config.compute_hash,
        commit_every=config.commit_every,
        progress_every=config.progress_every,
        max_workers=config.max_workers,
        fail_fast=config.fail_fast,
        hash_chunk_size=config.hash_chunk_size,
    )
    try:
        summary = scanner.scan(
            root, progress=lambda count: LOGGER.info("Indexed %d files...", count)
        )
    finally:
        store.close()
    return summary.to_dict()


@app.post("/scan")
async def scan_directory(payload: ScanPayload) -> dict[str, Any]:
    root = _validate_root(payload.root)

    config_defaults = AppConfig()
    config = AppConfig(
        db_path=Path(payload.db) if payload.db is not None else config_defaults.db_path,
        compute_hash=payload.compute_hash,
        fail_fast=payload.fail_fast,
    )
    resolved_db = config.resolve_db_path(Path.cwd())
    _ensure_db_parent(resolved_db)

    try:
        summary = await asyncio.to_thread(_run_scan_job, root, config, resolved_db)
    except PermissionError as exc:
        raise HTTPException(status_code=403, detail=str(exc)) from exc
    except (FileNotFoundError, NotADirectoryError) as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except StoreError as exc:
        LOGGER.error("Scan failed: %s", exc)
        raise HTTPException(status_code=500, detail=str(exc)) from exc

    return {"status": "ok", "db": str(resolved_db), "summary": summary}


@app.post("/search")
async def search_files(payload: SearchPayload) -> dict[str, Any]:
    store = _open_existing_store(payload.db)
    try:
        results = QueryEngine(store).search(
            name=payload.name,
            extension=payload.extension,
            size_min=payload.size_min,
            size_max=payload.size_max,
            date_from=payload.date_from,
            date_to=payload.date_to,
            sort_key=payload.sort_key,
            descending=payload.descending,
            limit=payload.limit,
            page=payload.page,
        )
    except StoreError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    finally:
        store.close()
    return {"results": _serialize(results)}


@app.get("/recent")
async def recent_files(limit: int = 50, db: Path | None = None) -> dict[str, Any]:
    store = _open_existing_store(db)
    try:
        results = QueryEngine(store).recent(limit)
    except StoreError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    finally:
        store.close()
    return {"results": _serialize(results)}


@app.get("/duplicates")
async def duplicate_files(db: Path | None = None) -> dict[str, Any]:
    store = _open_existing_store(db)
    try:
        results = QueryEngine(store).duplicates()
    except StoreError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    finally:
        store.close()
    return {"results": _serialize(results)}
