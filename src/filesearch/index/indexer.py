"""Concurrent directory scanning pipeline."""

from __future__ import annotations

import logging
import os
import threading
import time
from concurrent.futures import Executor, Future, ThreadPoolExecutor, wait
from pathlib import Path
from typing import Callable, Set

from filesearch.index.storage import SQLiteMetadataStore, StoreError
from filesearch.models import FileRecord, ScanIssue, ScanSummary
from filesearch.utils.files import (
    DEFAULT_CHUNK_SIZE,
    display_path,
    hash_file,
    iter_regular_files,
)

LOGGER = logging.getLogger(__name__)

ProgressCallback = Callable[[int], None]


def default_worker_count() -> int:
    """One worker per core minus one for the walking thread, at least two."""
    return max(2, (os.cpu_count() or 1) - 1)


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


def validate_root(root: Path) -> Path:
    """Check that root is an accessible directory before any work starts."""
    root = Path(root).expanduser()
    if not root.exists():
        raise FileNotFoundError(f"Path not found: {root}")
    if not root.is_dir():
        raise NotADirectoryError(f"Path must be a directory: {root}")
    if not os.access(root, os.R_OK | os.X_OK):
        raise PermissionError(f"Directory is not readable: {root}")
    return root.resolve()


class CommitBatcher:
    """Commits the store after every ``batch_size`` recorded writes."""

    def __init__(self, store: SQLiteMetadataStore, batch_size: int = 500) -> None:
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")
        self.store = store
        self.batch_size = batch_size
        self._count = 0
        self._lock = threading.Lock()

    def record(self) -> int:
        """Count one write, committing when the batch is full. Returns the total.

        The write that fills a batch is counted only after the batch commit
        succeeds. If that commit fails the StoreError propagates, the count is
        left unchanged and the next recorded write retries the commit.
        """
        with self._lock:
            count = self._count + 1
            if count % self.batch_size == 0:
                self.store.commit()
            self._count = count
        return count

    def flush(self) -> None:
        with self._lock:
            self.store.commit()

    @property
    def count(self) -> int:
        return self._count


class _ScanState:
    """Mutable per-scan bookkeeping shared by the worker threads."""

    def __init__(self, summary: ScanSummary, cancel: threading.Event) -> None:
        self.summary = summary
        self.cancel = cancel
        self.error: Exception | None = None
        self.lock = threading.Lock()

    def crashed(self, exc: Exception) -> None:
        """Record an unexpected worker failure; it aborts the scan."""
        with self.lock:
            if self.error is None:
                self.error = exc
        self.cancel.set()

    def add_issue(self, path: Path, reason: str, kind: str) -> None:
        with self.lock:
            self.summary.issues.append(ScanIssue(path=path, reason=reason, kind=kind))

    def store_failed(self, path: Path, exc: StoreError, *, fail_fast: bool) -> None:
        with self.lock:
            self.summary.issues.append(ScanIssue(path=path, reason=str(exc), kind="store"))
            self.summary.store_failures += 1
            if fail_fast and self.error is None:
                self.error = exc
                self.cancel.set()


class Scanner:
    """Walks a directory tree and indexes every regular file into the store."""

    def __init__(
        self,
        store: SQLiteMetadataStore,
        *,
        compute_hash: bool = False,
        commit_every: int = 500,
        progress_every: int = 200,
        max_workers: int | None = None,
        executor: Executor | None = None,
        fail_fast: bool = False,
        hash_chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        self.store = store
        self.compute_hash = compute_hash
        self.commit_every = commit_every
        self.progress_every = progress_every
        self.max_workers = max_workers or default_worker_count()
        self.executor = executor
        self.fail_fast = fail_fast
        self.hash_chunk_size = hash_chunk_size

    def scan(
        self,
        root: Path,
        *,
        progress: ProgressCallback | None = None,
        cancel: threading.Event | None = None,
    ) -> ScanSummary:
        """Index all regular files under root.

        Raises FileNotFoundError, NotADirectoryError or PermissionError before
        any work starts if root is unusable. With ``fail_fast`` the first store
        failure is re-raised once dispatched work has drained; an unexpected
        worker error always aborts the scan the same way.
        """
        root = validate_root(root)
        cancel = cancel if cancel is not None else threading.Event()
        summary = ScanSummary(root=root)
        state = _ScanState(summary, cancel)
        batcher = CommitBatcher(self.store, self.commit_every)

        LOGGER.info("Scanning %s (hash=%s, workers=%d)", root, self.compute_hash, self.max_workers)
        started = time.monotonic()

        owns_executor = self.executor is None
        executor = self.executor or ThreadPoolExecutor(
            max_workers=self.max_workers, thread_name_prefix="filesearch-scan"
        )
        slots = threading.BoundedSemaphore(self.max_workers * 4)
        pending: Set[Future] = set()
        pending_lock = threading.Lock()

        def _done(future: Future) -> None:
            with pending_lock:
                pending.discard(future)
            slots.release()

        def _on_walk_error(path: Path, exc: OSError) -> None:
            state.add_issue(path, str(exc), "walk")

        try:
            for path in iter_regular_files(
                root, on_error=_on_walk_error, should_stop=cancel.is_set
            ):
                if cancel.is_set():
                    break
                slots.acquire()
                future = executor.submit(self._index_one, path, state, batcher, progress)
                with pending_lock:
                    pending.add(future)
                future.add_done_callback(_done)
        finally:
            with pending_lock:
                outstanding = list(pending)
            wait(outstanding)
            if owns_executor:
                executor.shutdown(wait=True)

        batcher.flush()
        summary.files_processed = batcher.count
        summary.elapsed_ms = int((time.monotonic() - started) * 1000)
        summary.cancelled = cancel.is_set() and state.error is None

        if state.error is not None:
            LOGGER.error("Scan of %s aborted: %s", root, state.error)
            raise state.error

        LOGGER.info(
            "Scan finished. Files indexed: %d in %d ms (%d skipped, %d store failures)",
            summary.files_processed,
            summary.elapsed_ms,
            summary.skipped,
            summary.store_failures,
        )
        return summary

    def _index_one(
        self,
        path: Path,
        state: _ScanState,
        batcher: CommitBatcher,
        progress: ProgressCallback | None,
    ) -> None:
        if state.cancel.is_set():
            return
        try:
            self._index_file(path, state, batcher, progress)
        except Exception as exc:
            LOGGER.exception("Unexpected error while indexing %s", path)
            state.crashed(exc)

    def _index_file(
        self,
        path: Path,
        state: _ScanState,
        batcher: CommitBatcher,
        progress: ProgressCallback | None,
    ) -> None:
        try:
            stat = os.stat(path, follow_symlinks=False)
        except OSError as exc:
            LOGGER.debug("Skipping %s: %s", path, exc)
            state.add_issue(path, str(exc), "stat")
            return

        sha256 = None
        if self.compute_hash:
            sha256 = hash_file(
                path,
                chunk_size=self.hash_chunk_size,
                on_error=lambda p, exc: state.add_issue(p, str(exc), "hash"),
            )

        record = FileRecord.build(
            path.absolute(),
            size=stat.st_size,
            last_modified=stat.st_mtime_ns // 1_000_000,
            indexed_at=_now_ms(),
            sha256=sha256,
        )
        try:
            self.store.upsert(record)
        except StoreError as exc:
            LOGGER.warning("Failed to index %s: %s", display_path(path), exc)
            state.store_failed(path, exc, fail_fast=self.fail_fast)
            return

        try:
            count = batcher.record()
        except StoreError as exc:
            LOGGER.warning("Batch commit failed: %s", exc)
            state.store_failed(path, exc, fail_fast=self.fail_fast)
            return

        if progress is not None and self.progress_every > 0 and count % self.progress_every == 0:
            progress(count)
