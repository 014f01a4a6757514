"""Tests for the FastAPI web application."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from filesearch.index.storage import StoreError
from filesearch.web.app import _ensure_db_parent, _resolve_db_path, app


client = TestClient(app)


@pytest.fixture
def tree(tmp_path: Path) -> Path:
    root = tmp_path / "tree"
    root.mkdir()
    (root / "a.txt").write_bytes(b"0123456789")
    (root / "b.txt").write_bytes(b"0123456789")
    (root / "c.log").write_bytes(b"x" * 20)
    return root


@pytest.fixture
def indexed_db(tmp_path: Path, tree: Path) -> Path:
    db_path = tmp_path / "index.db"
    response = client.post(
        "/scan", json={"root": str(tree), "db": str(db_path), "compute_hash": True}
    )
    assert response.status_code == 200
    return db_path


class TestHelperFunctions:
    def test_resolve_db_path_with_none(self) -> None:
        assert isinstance(_resolve_db_path(None), Path)

    def test_resolve_db_path_with_path(self, tmp_path: Path) -> None:
        db_path = tmp_path / "custom.db"
        assert _resolve_db_path(db_path) == db_path

    def test_ensure_db_parent_creates_directory(self, tmp_path: Path) -> None:
        db_path = tmp_path / "subdir" / "test.db"
        _ensure_db_parent(db_path)
        assert db_path.parent.exists()


class TestScanEndpoint:
    def test_scan_success(self, tmp_path: Path, tree: Path) -> None:
        db_path = tmp_path / "nested" / "index.db"

        response = client.post("/scan", json={"root": str(tree), "db": str(db_path)})

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["db"] == str(db_path)
        assert data["summary"]["files_processed"] == 3
        assert data["summary"]["issues"] == []

    def test_scan_empty_root(self) -> None:
        response = client.post("/scan", json={"root": "   "})
        assert response.status_code == 400
        assert "No path provided" in response.json()["detail"]

    def test_scan_null_byte(self) -> None:
        response = client.post("/scan", json={"root": "/tmp/\u0000evil"})
        assert response.status_code == 400
        assert "null byte" in response.json()["detail"]

    def test_scan_missing_root(self, tmp_path: Path) -> None:
        response = client.post("/scan", json={"root": str(tmp_path / "missing")})
        assert response.status_code == 404

    def test_scan_file_root(self, tmp_path: Path) -> None:
        file_path = tmp_path / "file.txt"
        file_path.write_text("x")

        response = client.post("/scan", json={"root": str(file_path)})

        assert response.status_code == 400
        assert "must be a directory" in response.json()["detail"]

    @patch("filesearch.web.app._run_scan_job")
    def test_scan_store_error(self, mock_job: MagicMock, tmp_path: Path, tree: Path) -> None:
        mock_job.side_effect = StoreError("disk full")

        response = client.post(
            "/scan", json={"root": str(tree), "db": str(tmp_path / "x.db"), "fail_fast": True}
        )

        assert response.status_code == 500
        assert "disk full" in response.json()["detail"]
        assert mock_job.call_args.args[1].fail_fast is True


class TestSearchEndpoint:
    def test_search_database_not_found(self, tmp_path: Path) -> None:
        response = client.post("/search", json={"db": str(tmp_path / "missing.db")})
        assert response.status_code == 404
        assert "Database not found" in response.json()["detail"]

    def test_search_by_extension(self, indexed_db: Path) -> None:
        response = client.post(
            "/search", json={"extension": "TXT", "sort_key": "size", "db": str(indexed_db)}
        )

        assert response.status_code == 200
        names = [r["name"] for r in response.json()["results"]]
        assert names == ["a.txt", "b.txt"]

    def test_search_size_min(self, indexed_db: Path) -> None:
        response = client.post("/search", json={"size_min": "15", "db": str(indexed_db)})

        results = response.json()["results"]
        assert [r["name"] for r in results] == ["c.log"]
        assert results[0]["size"] == 20

    def test_search_invalid_filters_are_ignored(self, indexed_db: Path) -> None:
        response = client.post(
            "/search",
            json={"size_min": "abc", "date_from": "not-a-date", "db": str(indexed_db)},
        )

        assert response.status_code == 200
        assert len(response.json()["results"]) == 3

    def test_search_pagination(self, indexed_db: Path) -> None:
        response = client.post(
            "/search", json={"limit": 2, "page": 1, "db": str(indexed_db)}
        )
        assert [r["name"] for r in response.json()["results"]] == ["c.log"]

    def test_search_oversized_numbers(self, indexed_db: Path) -> None:
        response = client.post(
            "/search",
            json={"size_min": "99999999999999999999", "page": 10**15, "db": str(indexed_db)},
        )
        assert response.status_code == 200
        assert response.json()["results"] == []

        response = client.post(
            "/search", json={"size_min": "99999999999999999999", "db": str(indexed_db)}
        )
        assert len(response.json()["results"]) == 3

    @patch("filesearch.web.app.QueryEngine")
    def test_search_store_error(self, mock_engine: MagicMock, indexed_db: Path) -> None:
        mock_engine.return_value.search.side_effect = StoreError("database is locked")

        response = client.post("/search", json={"db": str(indexed_db)})

        assert response.status_code == 500
        assert "locked" in response.json()["detail"]


class TestRecentAndDuplicatesEndpoints:
    def test_recent(self, indexed_db: Path) -> None:
        response = client.get("/recent", params={"limit": 2, "db": str(indexed_db)})

        assert response.status_code == 200
        results = response.json()["results"]
        assert len(results) == 2
        assert results[0]["indexed_at"] >= results[1]["indexed_at"]

    def test_recent_database_not_found(self, tmp_path: Path) -> None:
        response = client.get("/recent", params={"db": str(tmp_path / "missing.db")})
        assert response.status_code == 404

    def test_duplicates(self, indexed_db: Path) -> None:
        response = client.get("/duplicates", params={"db": str(indexed_db)})

        assert response.status_code == 200
        results = response.json()["results"]
        assert [r["name"] for r in results] == ["a.txt", "b.txt"]
        assert results[0]["sha256"] == results[1]["sha256"]
