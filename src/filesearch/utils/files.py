"""Utility helpers for working with files."""

from __future__ import annotations

import hashlib
import logging
import os
from pathlib import Path
from typing import Callable, Iterator

LOGGER = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 1 << 20

ErrorCallback = Callable[[Path, OSError], None]


def file_extension(name: str) -> str:
    """Return the lowercase text after the last dot, or "" if there is none."""
    idx = name.rfind(".")
    if idx == -1 or idx == len(name) - 1:
        return ""
    return name[idx + 1 :].lower()


def display_path(path: Path | str) -> str:
    """Printable form of a path; undecodable filename bytes become \\x escapes."""
    return os.fsencode(path).decode("utf-8", "backslashreplace")


def compute_sha256(path: Path, chunk_size: int = DEFAULT_CHUNK_SIZE) -> str:
    """Compute SHA256 hash for a file."""
    sha = hashlib.sha256()
    with Path(path).open("rb") as handle:
        for chunk in iter(lambda: handle.read(chunk_size), b""):
            sha.update(chunk)
    return sha.hexdigest()


def hash_file(
    path: Path,
    *,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    on_error: ErrorCallback | None = None,
) -> str | None:
    """Hash a file, returning None instead of raising when it cannot be read."""
    try:
        return compute_sha256(path, chunk_size)
    except OSError as exc:
        LOGGER.debug("Unable to hash %s: %s", path, exc)
        if on_error is not None:
            on_error(Path(path), exc)
        return None


def iter_regular_files(
    root: Path,
    *,
    on_error: ErrorCallback | None = None,
    should_stop: Callable[[], bool] | None = None,
) -> Iterator[Path]:
    """Yield regular files below root, depth first.

    Symlinks are neither followed nor yielded. Directories that cannot be
    listed and entries that cannot be inspected are reported through
    ``on_error`` and skipped.
    """
    stack = [Path(root)]
    while stack:
        if should_stop is not None and should_stop():
            return
        directory = stack.pop()
        try:
            with os.scandir(directory) as entries:
                children = list(entries)
        except OSError as exc:
            LOGGER.debug("Skipping directory %s: %s", directory, exc)
            if on_error is not None:
                on_error(directory, exc)
            continue

        subdirs = []
        for entry in sorted(children, key=lambda e: e.name):
            try:
                if entry.is_dir(follow_symlinks=False):
                    subdirs.append(Path(entry.path))
                elif entry.is_file(follow_symlinks=False):
                    yield Path(entry.path)
            except OSError as exc:
                LOGGER.debug("Skipping entry %s: %s", entry.path, exc)
                if on_error is not None:
                    on_error(Path(entry.path), exc)
        stack.extend(reversed(subdirs))
