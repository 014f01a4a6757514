"""Core filesearch data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List

from filesearch.utils.files import display_path, file_extension


@dataclass(slots=True)
class FileRecord:
    """Metadata describing one indexed file."""

    path: Path
    name: str
    extension: str
    size: int
    last_modified: int
    indexed_at: int
    sha256: str | None = None
    id: int | None = None

    @classmethod
    def build(
        cls,
        path: Path,
        *,
        size: int,
        last_modified: int,
        indexed_at: int,
        sha256: str | None = None,
    ) -> "FileRecord":
        """Create a record, deriving name and extension from the path."""
        path = Path(path)
        return cls(
            path=path,
            name=path.name,
            extension=file_extension(path.name),
            size=size,
            last_modified=last_modified,
            indexed_at=indexed_at,
            sha256=sha256,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "path": str(self.path),
            "name": self.name,
            "extension": self.extension,
            "size": self.size,
            "last_modified": self.last_modified,
            "indexed_at": self.indexed_at,
            "sha256": self.sha256,
        }


@dataclass(slots=True)
class SearchFilters:
    """Optional search constraints. Bounds are inclusive."""

    name: str | None = None
    extension: str | None = None
    size_min: int | None = None
    size_max: int | None = None
    modified_min: int | None = None
    modified_max: int | None = None


@dataclass(slots=True)
class ScanIssue:
    """A path the scanner could not fully process."""

    path: Path
    reason: str
    kind: str = "stat"


@dataclass(slots=True)
class ScanSummary:
    root: Path
    files_processed: int = 0
    elapsed_ms: int = 0
    issues: List[ScanIssue] = field(default_factory=list)
    store_failures: int = 0
    cancelled: bool = False

    @property
    def skipped(self) -> int:
        """Entries left out of the index (hash failures still get a record)."""
        return sum(1 for issue in self.issues if issue.kind != "hash")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "root": str(self.root),
            "files_processed": self.files_processed,
            "elapsed_ms": self.elapsed_ms,
            "skipped": self.skipped,
            "store_failures": self.store_failures,
            "cancelled": self.cancelled,
            "issues": [
                {"path": display_path(issue.path), "reason": issue.reason, "kind": issue.kind}
                for issue in self.issues
            ],
        }
