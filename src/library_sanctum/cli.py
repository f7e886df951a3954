"""CLI for the document library (tree editing, uploads, AI, Notion, servers)."""

from pathlib import Path
from typing import Annotated

import typer
from loguru import logger

from library_sanctum.ai.librarian import Librarian, document_context
from library_sanctum.api import LibraryApi
from library_sanctum.config import (
    LOG_FILENAME,
    SERVER_HOST,
    SERVER_PORT,
    resolve_data_directory,
)
from library_sanctum.core.importer.notion import NotionClient, import_notion_pages
from library_sanctum.core.tree.markdown import render_document, render_tree_as_markdown
from library_sanctum.core.tree.navigation import get_breadcrumbs
from library_sanctum.core.tree.store import TreeStore
from library_sanctum.dispatch import InlineDispatcher
from library_sanctum.logging_config import configure_logging
from library_sanctum.models.node import NodeKind, SourceFile

app = typer.Typer(help="Library Sanctum: your personal document library.")

ApiUrlOption = Annotated[
    str | None,
    typer.Option("--api-url", "-u", help="Library backend URL", envvar="LIBRARY_API_URL"),
]


class TyperPrompt:
    """Terminal prompt for duplicate confirmations and upload failures."""

    def confirm(self, message: str) -> bool:
        return typer.confirm(message, default=False)

    def alert(self, message: str) -> None:
        typer.secho(message, err=True, fg=typer.colors.RED)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    configure_logging(verbose=verbose)


def _open_store(api_url: str | None) -> TreeStore:
    """Load the library from the backend, exiting if it is unreachable."""
    api = LibraryApi(api_url)
    store = TreeStore.load(
        api, prompt=TyperPrompt(), uploader=api, dispatcher=InlineDispatcher()
    )
    if not store.is_loaded:
        logger.error("Could not load the library from {}. Is 'serve' running?", api.base_url)
        raise typer.Exit(1)
    return store


def _require(store: TreeStore, node_id: str) -> None:
    if node_id not in store:
        typer.echo(f"Node '{node_id}' not found.")
        raise typer.Exit(1)


@app.command()
def serve(
    data_dir: Annotated[
        Path | None,
        typer.Option("--data-dir", "-d", help="Database and uploads directory"),
    ] = None,
    host: str = typer.Option(SERVER_HOST, "--host", help="Bind address"),
    port: int = typer.Option(SERVER_PORT, "--port", "-p", help="Bind port"),
) -> None:
    """Run the REST backend."""
    from library_sanctum.server.app import run_server

    dst = resolve_data_directory(data_dir)
    configure_logging(log_file=dst / LOG_FILENAME)
    run_server(dst, host=host, port=port)


@app.command()
def tree(
    node_id: str | None = typer.Argument(None, help="Folder to start from (default: root)"),
    max_depth: Annotated[
        int | None,
        typer.Option("--max-depth", "-m", help="Max depth levels to render"),
    ] = None,
    api_url: ApiUrlOption = None,
) -> None:
    """Print the library as an outline with node ids."""
    store = _open_store(api_url)
    start = node_id or store.root_id
    _require(store, start)
    typer.echo(
        render_tree_as_markdown(store.snapshot(), node_id=start, max_depth=max_depth, show_ids=True),
        nl=False,
    )
    typer.echo(f"\n{len(store)} items in library")


@app.command()
def show(
    node_id: str = typer.Argument(..., help="Document to print"),
    api_url: ApiUrlOption = None,
) -> None:
    """Print a document's text (or link) with its location."""
    store = _open_store(api_url)
    _require(store, node_id)
    node = store.get(node_id)
    assert node is not None
    if node.is_folder:
        typer.echo(f"'{node.name}' is a folder. Use 'tree {node_id}'.")
        raise typer.Exit(1)
    crumbs = " > ".join(c.name for c in get_breadcrumbs(store.snapshot(), node_id))
    typer.echo(f"{crumbs} > {node.name}" if crumbs else node.name)
    typer.echo()
    typer.echo(render_document(node))


@app.command()
def mkdir(
    parent_id: str = typer.Argument(..., help="Parent folder id"),
    name: str = typer.Argument("New folder", help="Folder name"),
    api_url: ApiUrlOption = None,
) -> None:
    """Create a folder."""
    store = _open_store(api_url)
    new_id = store.create_node(parent_id, NodeKind.FOLDER, name)
    if new_id is None:
        typer.echo(f"Folder '{parent_id}' not found.")
        raise typer.Exit(1)
    typer.echo(f"Created folder '{name}' (id={new_id})")


@app.command()
def new(
    parent_id: str = typer.Argument(..., help="Parent folder id"),
    name: str = typer.Argument(..., help="Document name, e.g. notes.md"),
    api_url: ApiUrlOption = None,
) -> None:
    """Create a markdown document from the starter template."""
    store = _open_store(api_url)
    new_id = store.create_node(parent_id, NodeKind.MARKDOWN, name)
    if new_id is None:
        typer.echo(f"Folder '{parent_id}' not found.")
        raise typer.Exit(1)
    typer.echo(f"Created document '{name}' (id={new_id})")


@app.command()
def rename(
    node_id: str = typer.Argument(..., help="Node to rename"),
    name: str = typer.Argument(..., help="New name"),
    api_url: ApiUrlOption = None,
) -> None:
    """Rename a folder or document."""
    store = _open_store(api_url)
    _require(store, node_id)
    store.rename_node(node_id, name)
    typer.echo(f"Renamed {node_id} to '{name}'")


@app.command()
def edit(
    node_id: str = typer.Argument(..., help="Markdown document to replace"),
    source: Path = typer.Option(
        ..., "--from", "-f", exists=True, dir_okay=False, help="File whose text becomes the content"
    ),
    api_url: ApiUrlOption = None,
) -> None:
    """Replace a markdown document's text with a local file's contents."""
    store = _open_store(api_url)
    _require(store, node_id)
    node = store.get(node_id)
    if node is None or node.kind is not NodeKind.MARKDOWN:
        typer.echo(f"'{node_id}' is not a markdown document.")
        raise typer.Exit(1)
    store.update_content(node_id, source.read_text(encoding="utf-8"))
    typer.echo(f"Updated {node.name}")


@app.command()
def move(
    node_id: str = typer.Argument(..., help="Node to move"),
    target_id: str = typer.Argument(..., help="Destination folder id"),
    api_url: ApiUrlOption = None,
) -> None:
    """Move a node into another folder."""
    store = _open_store(api_url)
    _require(store, node_id)
    _require(store, target_id)
    if store.move_node(node_id, target_id):
        typer.echo(f"Moved {node_id} into {target_id}")
    else:
        typer.echo("Nothing moved.")


@app.command()
def rm(
    node_id: str = typer.Argument(..., help="Node to delete (with everything inside it)"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
    api_url: ApiUrlOption = None,
) -> None:
    """Delete a node and its whole subtree."""
    store = _open_store(api_url)
    _require(store, node_id)
    node = store.get(node_id)
    assert node is not None
    if not yes and not typer.confirm(f"Delete '{node.name}'?", default=False):
        raise typer.Exit(1)
    if store.delete_node(node_id):
        typer.echo(f"Deleted '{node.name}'")
    else:
        typer.echo("The library root cannot be deleted.")
        raise typer.Exit(1)


@app.command()
def upload(
    parent_id: str = typer.Argument(..., help="Destination folder id"),
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="File to upload"),
    api_url: ApiUrlOption = None,
) -> None:
    """Upload a PDF, a Google Docs link file or a text/markdown file."""
    store = _open_store(api_url)
    _require(store, parent_id)
    node_id = store.upload_file(parent_id, SourceFile(name=path.name, data=path.read_bytes()))
    if node_id is None:
        raise typer.Exit(1)
    node = store.get(node_id)
    assert node is not None
    typer.echo(f"Stored '{node.name}' as {node.kind.value} (id={node_id})")


@app.command()
def summarize(
    node_id: str = typer.Argument(..., help="Document to summarize"),
    api_url: ApiUrlOption = None,
) -> None:
    """Ask the AI librarian for a summary of a document."""
    store = _open_store(api_url)
    _require(store, node_id)
    node = store.get(node_id)
    assert node is not None
    text, doc_type = document_context(node)
    typer.echo(Librarian().summarize(text, doc_type))


@app.command()
def ask(
    node_id: str = typer.Argument(..., help="Document to ask about"),
    question: str = typer.Argument(..., help="Your question"),
    api_url: ApiUrlOption = None,
) -> None:
    """Ask the AI librarian a question about a document."""
    store = _open_store(api_url)
    _require(store, node_id)
    node = store.get(node_id)
    assert node is not None
    text, _doc_type = document_context(node)
    typer.echo(Librarian().ask(question, text))


def _notion_client(api_key: str | None) -> NotionClient:
    try:
        return NotionClient(api_key)
    except RuntimeError as e:
        logger.error("{}", e)
        raise typer.Exit(1) from e


@app.command(name="notion-pages")
def notion_pages(
    api_key: Annotated[
        str | None, typer.Option("--api-key", "-k", help="Notion integration secret")
    ] = None,
) -> None:
    """List Notion pages available for import."""
    pages = _notion_client(api_key).search_pages()
    typer.echo(f"{len(pages)} pages:\n")
    for page in pages:
        typer.echo(f"  {page.icon} {page.title}  [id={page.id}]")


@app.command(name="notion-import")
def notion_import(
    page_ids: list[str] | None = typer.Argument(None, help="Page ids to import (default: all)"),
    api_key: Annotated[
        str | None, typer.Option("--api-key", "-k", help="Notion integration secret")
    ] = None,
    api_url: ApiUrlOption = None,
) -> None:
    """Import Notion pages as markdown documents under the library root."""
    client = _notion_client(api_key)
    pages = client.search_pages()
    if page_ids:
        wanted = set(page_ids)
        pages = [p for p in pages if p.id in wanted]
    if not pages:
        typer.echo("No matching Notion pages.")
        raise typer.Exit(1)

    store = _open_store(api_url)
    created = import_notion_pages(store, client, pages)
    typer.echo(f"Imported {len(created)} of {len(pages)} pages")


@app.command(name="mcp")
def mcp_cmd() -> None:
    """Start the MCP server (stdio transport)."""
    from library_sanctum.mcp.server import run_mcp_server

    run_mcp_server()
