"""Tests for the SQL statements behind the REST routes."""

import sqlite3

import pytest

from library_sanctum.core.database.repository import (
    NodeNotFoundError,
    StaleWriteError,
    delete_file,
    insert_file,
    list_files,
    update_file,
)


def _insert(conn: sqlite3.Connection, node_id: str, parent_id: str, kind: str = "FOLDER") -> None:
    insert_file(conn, {"id": node_id, "parentId": parent_id, "name": node_id, "type": kind})


def test_list_files_derives_children_in_insertion_order(db: sqlite3.Connection) -> None:
    _insert(db, "b", "root")
    _insert(db, "a", "root")
    _insert(db, "a1", "a", "MARKDOWN")

    files = list_files(db)
    assert files["root"]["children"] == ["file-welcome", "b", "a"]
    assert files["a"]["children"] == ["a1"]
    assert files["a1"]["children"] == []
    assert files["root"]["isOpen"] is True
    assert files["a"]["isOpen"] is False
    assert files["a"]["version"] == 1


def test_insert_duplicate_id_raises(db: sqlite3.Connection) -> None:
    with pytest.raises(sqlite3.IntegrityError):
        _insert(db, "root", "root")


def test_update_applies_partial_fields(db: sqlite3.Connection) -> None:
    assert update_file(db, "file-welcome", {"name": "Guide.md", "version": 2}) == 1
    row = db.execute(
        "SELECT name, content, version FROM files WHERE id = 'file-welcome'"
    ).fetchone()
    assert row[0] == "Guide.md"
    assert row[1].startswith("# Welcome")
    assert row[2] == 2


def test_update_rejects_stale_version(db: sqlite3.Connection) -> None:
    update_file(db, "file-welcome", {"content": "new", "version": 3})
    with pytest.raises(StaleWriteError):
        update_file(db, "file-welcome", {"content": "old", "version": 2})
    with pytest.raises(StaleWriteError):
        update_file(db, "file-welcome", {"content": "same", "version": 3})
    content = db.execute("SELECT content FROM files WHERE id = 'file-welcome'").fetchone()[0]
    assert content == "new"


def test_update_without_version_always_applies(db: sqlite3.Connection) -> None:
    update_file(db, "file-welcome", {"parentId": "root"})
    assert db.execute("SELECT version FROM files WHERE id = 'file-welcome'").fetchone()[0] == 1


def test_update_unknown_id_raises(db: sqlite3.Connection) -> None:
    with pytest.raises(NodeNotFoundError):
        update_file(db, "missing", {"name": "x"})


def test_delete_cascades_to_descendants(db: sqlite3.Connection) -> None:
    _insert(db, "a", "root")
    _insert(db, "a1", "a")
    _insert(db, "a1x", "a1", "MARKDOWN")
    _insert(db, "b", "root")

    assert delete_file(db, "a") == 3
    assert set(list_files(db)) == {"root", "file-welcome", "b"}
    assert delete_file(db, "missing") == 0


def test_delete_root_is_rejected(db: sqlite3.Connection) -> None:
    with pytest.raises(ValueError, match="root"):
        delete_file(db, "root")
