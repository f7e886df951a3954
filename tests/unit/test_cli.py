"""Tests for the library CLI."""

from collections.abc import Callable, Iterator
from pathlib import Path
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from library_sanctum.cli import TyperPrompt, app
from library_sanctum.core.tree.store import TreeStore
from library_sanctum.models.node import NodeKind
from tests.unit.fakes import FakeLibrarian, FakeNotion, FakeRemote, FakeUploader

runner = CliRunner()


@pytest.fixture
def cli_store(make_store: Callable[..., TreeStore]) -> Iterator[TreeStore]:
    """Serve every command from one in-memory store with a terminal prompt."""
    store = make_store(prompt=TyperPrompt())
    with patch("library_sanctum.cli._open_store", return_value=store):
        yield store


def test_tree_prints_outline_with_ids(cli_store: TreeStore) -> None:
    result = runner.invoke(app, ["tree"])
    assert result.exit_code == 0, result.output
    assert "- My Library/ [folder]  (id=root)" in result.output
    assert "        - notes.md [md]  (id=D1)" in result.output
    assert "4 items in library" in result.output


def test_tree_unknown_node_exits(cli_store: TreeStore) -> None:
    result = runner.invoke(app, ["tree", "nope"])
    assert result.exit_code == 1
    assert "Node 'nope' not found." in result.output


def test_show_prints_location_and_text(cli_store: TreeStore) -> None:
    result = runner.invoke(app, ["show", "D1"])
    assert result.exit_code == 0, result.output
    assert "My Library > Folder 1 > notes.md" in result.output
    assert "Python is great" in result.output


def test_show_folder_exits(cli_store: TreeStore) -> None:
    assert runner.invoke(app, ["show", "F1"]).exit_code == 1


def test_mkdir_and_new(cli_store: TreeStore, remote: FakeRemote) -> None:
    result = runner.invoke(app, ["mkdir", "root"])
    assert result.exit_code == 0, result.output
    assert "Created folder 'New folder' (id=n1)" in result.output

    result = runner.invoke(app, ["new", "n1", "draft.md"])
    assert result.exit_code == 0, result.output
    node = cli_store.get("n2")
    assert node is not None
    assert node.parent_id == "n1"
    assert node.kind is NodeKind.MARKDOWN
    assert remote.names() == ["create", "create"]


def test_new_under_document_exits(cli_store: TreeStore) -> None:
    result = runner.invoke(app, ["new", "D1", "x.md"])
    assert result.exit_code == 1
    assert "Folder 'D1' not found." in result.output


def test_rename_and_edit(cli_store: TreeStore, tmp_path: Path) -> None:
    assert runner.invoke(app, ["rename", "D1", "ideas.md"]).exit_code == 0
    source = tmp_path / "ideas.md"
    source.write_text("# Ideas\n", encoding="utf-8")

    result = runner.invoke(app, ["edit", "D1", "--from", str(source)])
    assert result.exit_code == 0, result.output
    node = cli_store.get("D1")
    assert node is not None
    assert node.name == "ideas.md"
    assert node.content == "# Ideas\n"


def test_move_reports_outcome(cli_store: TreeStore) -> None:
    result = runner.invoke(app, ["move", "D1", "F2"])
    assert "Moved D1 into F2" in result.output
    result = runner.invoke(app, ["move", "D1", "F2"])
    assert "Nothing moved." in result.output


def test_move_duplicate_asks_before_replacing(cli_store: TreeStore) -> None:
    dup = cli_store.create_node("F2", NodeKind.MARKDOWN, "notes.md")

    result = runner.invoke(app, ["move", "D1", "F2"], input="n\n")
    assert "Overwrite it?" in result.output
    assert "Nothing moved." in result.output

    result = runner.invoke(app, ["move", "D1", "F2"], input="y\n")
    assert "Moved D1 into F2" in result.output
    assert dup not in cli_store


def test_rm_confirms_unless_yes(cli_store: TreeStore) -> None:
    result = runner.invoke(app, ["rm", "F1"], input="n\n")
    assert result.exit_code == 1
    assert "F1" in cli_store

    result = runner.invoke(app, ["rm", "F1", "--yes"])
    assert result.exit_code == 0, result.output
    assert "F1" not in cli_store
    assert "D1" not in cli_store


def test_rm_root_exits(cli_store: TreeStore) -> None:
    result = runner.invoke(app, ["rm", "root", "--yes"])
    assert result.exit_code == 1
    assert "root cannot be deleted" in result.output


def test_upload_overwrite_keeps_id(cli_store: TreeStore, tmp_path: Path) -> None:
    path = tmp_path / "notes.md"
    path.write_text("uploaded", encoding="utf-8")

    result = runner.invoke(app, ["upload", "F1", str(path)], input="y\n")

    assert result.exit_code == 0, result.output
    assert "Stored 'notes.md' as MARKDOWN (id=D1)" in result.output
    node = cli_store.get("D1")
    assert node is not None
    assert node.content == "uploaded"


def test_upload_failure_alerts(make_store: Callable[..., TreeStore], tmp_path: Path) -> None:
    store = make_store(prompt=TyperPrompt(), uploader=FakeUploader(fail=True))
    path = tmp_path / "paper.pdf"
    path.write_bytes(b"%PDF")

    with patch("library_sanctum.cli._open_store", return_value=store):
        result = runner.invoke(app, ["upload", "F2", str(path)])

    assert result.exit_code == 1
    assert "Upload failed: paper.pdf" in result.output


def test_unreachable_backend_exits() -> None:
    remote = FakeRemote()
    remote.fail_list = True
    remote.base_url = "http://nowhere"  # type: ignore[attr-defined]

    with patch("library_sanctum.cli.LibraryApi", return_value=remote):
        result = runner.invoke(app, ["tree"])

    assert result.exit_code == 1


def test_summarize_and_ask(cli_store: TreeStore) -> None:
    librarian = FakeLibrarian()
    with patch("library_sanctum.cli.Librarian", return_value=librarian):
        summary = runner.invoke(app, ["summarize", "D1"])
        answer = runner.invoke(app, ["ask", "D1", "What is great?"])

    assert summary.exit_code == 0, summary.output
    assert "(md)" in summary.output
    assert "answer to 'What is great?'" in answer.output
    assert librarian.calls[1] == ("ask", "What is great?", "# Notes\n\nPython is great")


def test_notion_pages_and_import(cli_store: TreeStore) -> None:
    notion = FakeNotion({"garden": "# Garden\n", "recipes": "# Recipes\n"})
    with patch("library_sanctum.cli.NotionClient", return_value=notion):
        listing = runner.invoke(app, ["notion-pages"])
        imported = runner.invoke(app, ["notion-import", "recipes"])

    assert "2 pages:" in listing.output
    assert "[id=garden]" in listing.output
    assert imported.exit_code == 0, imported.output
    assert "Imported 1 of 1 pages" in imported.output
    root = cli_store.get("root")
    assert root is not None and root.children is not None
    last = cli_store.get(root.children[-1])
    assert last is not None and last.name == "* Recipes.md"


def test_notion_without_key_exits(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.delenv("NOTION_API_KEY", raising=False)
    monkeypatch.setattr(
        "library_sanctum.core.importer.notion.NOTION_TOKEN_FILES", [tmp_path / "none.txt"]
    )
    assert runner.invoke(app, ["notion-pages"]).exit_code == 1
