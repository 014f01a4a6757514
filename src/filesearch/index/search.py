"""Query interface over the metadata store.

Raw caller input is normalized leniently: blank fields, unparsable numbers
and malformed dates simply drop the corresponding filter instead of raising.
That keeps interactive search responsive while the user is still typing.
Store failures are never hidden and propagate as StoreError.
"""

from __future__ import annotations

import logging
from typing import List

from filesearch.index.storage import SORT_COLUMNS, SQLiteMetadataStore
from filesearch.models import FileRecord, SearchFilters
from filesearch.utils.text import (
    INT64_MAX,
    normalize_extension,
    normalize_text,
    parse_date,
    parse_int,
)

LOGGER = logging.getLogger(__name__)

DEFAULT_SORT = "name"


def build_filters(
    name: str | None = None,
    extension: str | None = None,
    size_min: str | int | None = None,
    size_max: str | int | None = None,
    date_from: str | None = None,
    date_to: str | None = None,
) -> SearchFilters:
    return SearchFilters(
        name=normalize_text(name),
        extension=normalize_extension(extension),
        size_min=parse_int(size_min),
        size_max=parse_int(size_max),
        modified_min=parse_date(date_from),
        modified_max=parse_date(date_to, end_of_day=True),
    )


class QueryEngine:
    """High-level API to query the metadata store."""

    def __init__(
        self,
        store: SQLiteMetadataStore,
        *,
        default_limit: int = 50,
        max_limit: int = 5000,
    ) -> None:
        self.store = store
        self.default_limit = default_limit
        self.max_limit = max_limit

    def _clamp_limit(self, limit: str | int | None) -> int:
        value = parse_int(limit)
        if value is None:
            value = self.default_limit
        return max(1, min(value, self.max_limit))

    def search(
        self,
        *,
        name: str | None = None,
        extension: str | None = None,
        size_min: str | int | None = None,
        size_max: str | int | None = None,
        date_from: str | None = None,
        date_to: str | None = None,
        sort_key: str | None = DEFAULT_SORT,
        descending: bool = False,
        limit: str | int | None = None,
        page: int = 0,
        offset: int | None = None,
    ) -> List[FileRecord]:
        filters = build_filters(name, extension, size_min, size_max, date_from, date_to)

        key = normalize_text(sort_key) or DEFAULT_SORT
        if key not in SORT_COLUMNS:
            LOGGER.debug("Unknown sort key %r, using %s", sort_key, DEFAULT_SORT)
            key = DEFAULT_SORT

        page_size = self._clamp_limit(limit)
        if offset is None:
            offset = max(page, 0) * page_size
        offset = min(max(offset, 0), INT64_MAX)

        return self.store.search(
            filters,
            sort_key=key,
            descending=descending,
            limit=page_size,
            offset=offset,
        )

    def recent(self, limit: str | int | None = None) -> List[FileRecord]:
        return self.store.recent(self._clamp_limit(limit))

    def duplicates(self) -> List[FileRecord]:
        return self.store.duplicates()
