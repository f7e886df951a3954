"""SQL statements behind the library REST routes."""

import sqlite3
import time
from typing import Any

from loguru import logger

from library_sanctum.config import ROOT_ID

_COLUMNS = ("id", "parentId", "name", "type", "content", "url", "lastModified", "version")

# Fields a partial update may touch. lastModified is always set server side.
UPDATABLE_FIELDS = ("name", "content", "parentId", "type", "url")


class NodeNotFoundError(LookupError):
    """No stored record has the requested id."""


class StaleWriteError(RuntimeError):
    """An update carried a version older than (or equal to) the stored one."""


def list_files(conn: sqlite3.Connection) -> dict[str, dict[str, Any]]:
    """Return every record keyed by id, with children derived from parentId.

    Children keep insertion (rowid) order; only root is marked open.
    """
    rows = conn.execute(
        f"SELECT {', '.join(_COLUMNS)} FROM files ORDER BY rowid"
    ).fetchall()

    file_system: dict[str, dict[str, Any]] = {}
    children_map: dict[str, list[str]] = {}
    for row in rows:
        record = dict(zip(_COLUMNS, row, strict=True))
        record["isOpen"] = record["id"] == ROOT_ID
        record["children"] = []
        file_system[record["id"]] = record
        if record["parentId"]:
            children_map.setdefault(record["parentId"], []).append(record["id"])

    for parent_id, children in children_map.items():
        if parent_id in file_system:
            file_system[parent_id]["children"] = children
    return file_system


def insert_file(conn: sqlite3.Connection, record: dict[str, Any]) -> None:
    """Insert a full record. Raises sqlite3.IntegrityError on a duplicate id."""
    conn.execute(
        f"INSERT INTO files ({', '.join(_COLUMNS)}) VALUES ({', '.join('?' * len(_COLUMNS))})",
        (
            record["id"],
            record.get("parentId"),
            record.get("name"),
            record.get("type"),
            record.get("content"),
            record.get("url"),
            record.get("lastModified") or int(time.time() * 1000),
            record.get("version") or 1,
        ),
    )
    conn.commit()


def update_file(conn: sqlite3.Connection, node_id: str, fields: dict[str, Any]) -> int:
    """Apply the provided fields to a record.

    When fields carries a version, the write is applied only if it is newer
    than the stored one.

    Returns:
        Number of rows changed (always 1 on success).
    """
    row = conn.execute("SELECT version FROM files WHERE id = ?", (node_id,)).fetchone()
    if row is None:
        raise NodeNotFoundError(node_id)

    version = fields.get("version")
    if version is not None and int(version) <= int(row[0] or 0):
        msg = f"stale write for {node_id!r}: version {version} <= stored {row[0]}"
        raise StaleWriteError(msg)

    sql = "UPDATE files SET lastModified = ?"
    params: list[Any] = [int(time.time() * 1000)]
    for field in UPDATABLE_FIELDS:
        if field in fields:
            sql += f", {field} = ?"
            params.append(fields[field])
    if version is not None:
        sql += ", version = ?"
        params.append(int(version))
    sql += " WHERE id = ?"
    params.append(node_id)

    changes = conn.execute(sql, params).rowcount
    conn.commit()
    return changes


def delete_file(conn: sqlite3.Connection, node_id: str) -> int:
    """Delete a record and every descendant.

    Returns:
        Number of rows removed (0 when the id is unknown).
    """
    if node_id == ROOT_ID:
        msg = "the root folder cannot be deleted"
        raise ValueError(msg)

    changes = conn.execute(
        """WITH RECURSIVE subtree(id) AS (
               SELECT id FROM files WHERE id = ?
               UNION
               SELECT f.id FROM files f JOIN subtree s ON f.parentId = s.id
           )
           DELETE FROM files WHERE id IN (SELECT id FROM subtree)""",
        (node_id,),
    ).rowcount
    conn.commit()
    logger.debug("Deleted {} rows under {}", changes, node_id)
    return changes
