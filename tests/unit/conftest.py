"""Shared test fixtures."""

import sqlite3
from collections.abc import Callable, Iterator
from itertools import count
from typing import Any

import pytest

from library_sanctum.core.database.schema import create_schema, seed_root
from library_sanctum.core.tree.navigation import build_file_system
from library_sanctum.core.tree.store import TreeStore
from tests.unit.fakes import FakePrompt, FakeRemote, FakeUploader

# root -> F1 (folder) -> D1 "notes.md"; root -> F2 (empty folder)
LIBRARY_RECORDS: list[dict[str, Any]] = [
    {"id": "root", "parentId": None, "name": "My Library", "type": "FOLDER", "lastModified": 1000},
    {"id": "F1", "parentId": "root", "name": "Folder 1", "type": "FOLDER", "lastModified": 1001},
    {
        "id": "D1",
        "parentId": "F1",
        "name": "notes.md",
        "type": "MARKDOWN",
        "content": "# Notes\n\nPython is great",
        "lastModified": 1002,
    },
    {"id": "F2", "parentId": "root", "name": "Folder 2", "type": "FOLDER", "lastModified": 1003},
]


@pytest.fixture
def remote() -> FakeRemote:
    return FakeRemote(LIBRARY_RECORDS)


@pytest.fixture
def prompt() -> FakePrompt:
    return FakePrompt()


@pytest.fixture
def uploader() -> FakeUploader:
    return FakeUploader()


@pytest.fixture
def make_store(
    remote: FakeRemote, prompt: FakePrompt, uploader: FakeUploader
) -> Callable[..., TreeStore]:
    """Return a factory building a loaded store with deterministic ids and clock."""

    def factory(**overrides: Any) -> TreeStore:
        ids = count(1)
        ticks = count(5000)
        source = overrides.pop("remote", remote)
        return TreeStore(
            build_file_system(source.list_nodes(), root_id="root"),
            remote=source,
            prompt=overrides.pop("prompt", prompt),
            uploader=overrides.pop("uploader", uploader),
            id_factory=lambda: f"n{next(ids)}",
            clock=lambda: next(ticks),
            **overrides,
        )

    return factory


@pytest.fixture
def store(make_store: Callable[..., TreeStore]) -> TreeStore:
    return make_store()


@pytest.fixture
def db() -> Iterator[sqlite3.Connection]:
    """Return an in-memory DB with the schema and seeded root."""
    conn = sqlite3.connect(":memory:")
    create_schema(conn)
    seed_root(conn)
    yield conn
    conn.close()
