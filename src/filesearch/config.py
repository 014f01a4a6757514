"""Application configuration defaults."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from filesearch.utils.files import DEFAULT_CHUNK_SIZE


def _get_default_db_path() -> Path:
    """Get the default database path."""
    # When running from a checkout, prefer local data/ if it exists
    local_db = Path("data/filesearch.db")
    if local_db.exists():
        return local_db

    return Path.home() / "Documents" / "FileSearch" / "filesearch.db"


@dataclass(slots=True)
class AppConfig:
    db_path: Path | None = None
    compute_hash: bool = False
    commit_every: int = 500
    progress_every: int = 200
    max_workers: int | None = None
    fail_fast: bool = False
    page_size: int = 50
    hash_chunk_size: int = DEFAULT_CHUNK_SIZE

    def __post_init__(self) -> None:
        if self.db_path is None:
            self.db_path = _get_default_db_path()

    def resolve_db_path(self, base_dir: Path | None = None) -> Path:
        if self.db_path is None:
            self.db_path = _get_default_db_path()
        if Path(self.db_path).is_absolute() or base_dir is None:
            return Path(self.db_path)
        return base_dir / self.db_path
