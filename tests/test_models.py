"""Tests for core data models."""

from __future__ import annotations

from pathlib import Path

from filesearch.models import FileRecord, ScanIssue, ScanSummary, SearchFilters


class TestFileRecord:
    def test_build_derives_name_and_extension(self) -> None:
        record = FileRecord.build(
            Path("/data/Report.Final.PDF"), size=10, last_modified=1, indexed_at=2
        )

        assert record.name == "Report.Final.PDF"
        assert record.extension == "pdf"
        assert record.sha256 is None
        assert record.id is None

    def test_build_accepts_strings(self) -> None:
        record = FileRecord.build("/data/notes", size=0, last_modified=0, indexed_at=0)

        assert record.path == Path("/data/notes")
        assert record.extension == ""

    def test_to_dict(self) -> None:
        record = FileRecord.build(
            Path("/data/a.txt"), size=3, last_modified=4, indexed_at=5, sha256="f" * 64
        )

        data = record.to_dict()

        assert data["path"] == "/data/a.txt"
        assert data["extension"] == "txt"
        assert data["sha256"] == "f" * 64
        assert data["size"] == 3

    def test_equality(self) -> None:
        a = FileRecord.build(Path("/a.txt"), size=1, last_modified=1, indexed_at=1)
        b = FileRecord.build(Path("/a.txt"), size=1, last_modified=1, indexed_at=1)
        assert a == b


class TestSearchFilters:
    def test_defaults_are_absent(self) -> None:
        filters = SearchFilters()
        assert filters.name is None
        assert filters.extension is None
        assert filters.size_min is None
        assert filters.size_max is None
        assert filters.modified_min is None
        assert filters.modified_max is None


class TestScanSummary:
    def test_skipped_ignores_hash_issues(self) -> None:
        summary = ScanSummary(root=Path("/r"))
        summary.issues.append(ScanIssue(Path("/r/a"), "denied", "walk"))
        summary.issues.append(ScanIssue(Path("/r/b"), "vanished", "stat"))
        summary.issues.append(ScanIssue(Path("/r/c"), "unreadable", "hash"))

        assert summary.skipped == 2

    def test_to_dict(self) -> None:
        summary = ScanSummary(root=Path("/r"), files_processed=3, elapsed_ms=12)
        summary.issues.append(ScanIssue(Path("/r/a"), "denied", "walk"))

        data = summary.to_dict()

        assert data["root"] == "/r"
        assert data["files_processed"] == 3
        assert data["skipped"] == 1
        assert data["issues"] == [{"path": "/r/a", "reason": "denied", "kind": "walk"}]

    def test_separate_issue_lists(self) -> None:
        first = ScanSummary(root=Path("/a"))
        second = ScanSummary(root=Path("/b"))
        first.issues.append(ScanIssue(Path("/a/x"), "r"))
        assert second.issues == []
