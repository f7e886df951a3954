"""SQLite schema creation, migration and seeding for the library backend."""

import sqlite3
import time

from library_sanctum.config import ROOT_ID, ROOT_NAME

SCHEMA_VERSION = 2

_SCHEMA_SQL = """\
CREATE TABLE IF NOT EXISTS files (
    id TEXT PRIMARY KEY,
    parentId TEXT,
    name TEXT,
    type TEXT,
    content TEXT,
    url TEXT,
    lastModified INTEGER,
    version INTEGER NOT NULL DEFAULT 1
);

CREATE INDEX IF NOT EXISTS idx_files_parent ON files(parentId);

CREATE TABLE IF NOT EXISTS metadata (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);
"""

WELCOME_NAME = "Library guide.md"
WELCOME_CONTENT = (
    "# Welcome\n\n"
    "This is your library. Create folders and documents from the tree, "
    "drop PDFs or Google Docs links into any folder, and import pages from Notion.\n"
)


def create_schema(conn: sqlite3.Connection) -> None:
    """Create all tables and indexes."""
    conn.executescript(_SCHEMA_SQL)
    set_metadata(conn, "schema_version", str(SCHEMA_VERSION))


def get_schema_version(conn: sqlite3.Connection) -> int | None:
    """Return the current schema version, or None if metadata table doesn't exist."""
    try:
        row = conn.execute(
            "SELECT value FROM metadata WHERE key = 'schema_version'"
        ).fetchone()
    except sqlite3.OperationalError:
        return None
    return int(row[0]) if row else None


def get_metadata(conn: sqlite3.Connection, key: str) -> str | None:
    row = conn.execute("SELECT value FROM metadata WHERE key = ?", (key,)).fetchone()
    return row[0] if row else None


def set_metadata(conn: sqlite3.Connection, key: str, value: str) -> None:
    conn.execute("INSERT OR REPLACE INTO metadata (key, value) VALUES (?, ?)", (key, value))
    conn.commit()


def _columns(conn: sqlite3.Connection, table: str) -> set[str]:
    return {row[1] for row in conn.execute(f"PRAGMA table_info({table})").fetchall()}


def migrate_schema(conn: sqlite3.Connection) -> None:
    """Create or migrate the database schema to the latest version.

    Version 1 databases (a bare files table, as written by the first
    backend) gain the url and version columns.
    """
    version = get_schema_version(conn)
    if version is None:
        existing = _columns(conn, "files")
        conn.executescript(_SCHEMA_SQL)
        if existing:
            if "url" not in existing:
                conn.execute("ALTER TABLE files ADD COLUMN url TEXT")
            if "version" not in existing:
                conn.execute("ALTER TABLE files ADD COLUMN version INTEGER NOT NULL DEFAULT 1")
        set_metadata(conn, "schema_version", str(SCHEMA_VERSION))
    seed_root(conn)


def seed_root(conn: sqlite3.Connection) -> bool:
    """Insert the root folder and a welcome document into an empty library.

    Returns:
        True if seeding happened.
    """
    row = conn.execute("SELECT id FROM files WHERE id = ?", (ROOT_ID,)).fetchone()
    if row is not None:
        return False

    now_ms = int(time.time() * 1000)
    conn.execute(
        "INSERT INTO files (id, parentId, name, type, content, url, lastModified, version) "
        "VALUES (?, NULL, ?, 'FOLDER', NULL, NULL, ?, 1)",
        (ROOT_ID, ROOT_NAME, now_ms),
    )
    conn.execute(
        "INSERT INTO files (id, parentId, name, type, content, url, lastModified, version) "
        "VALUES ('file-welcome', ?, ?, 'MARKDOWN', ?, NULL, ?, 1)",
        (ROOT_ID, WELCOME_NAME, WELCOME_CONTENT, now_ms),
    )
    conn.commit()
    return True
