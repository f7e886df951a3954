"""MCP server exposing the document library to agents."""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from loguru import logger
from mcp.server.fastmcp import Context, FastMCP

from library_sanctum.ai.librarian import Librarian, document_context
from library_sanctum.api import LibraryApi
from library_sanctum.core.tree.markdown import render_document, render_tree_as_markdown
from library_sanctum.core.tree.navigation import get_breadcrumbs, search_nodes
from library_sanctum.core.tree.store import TreeStore
from library_sanctum.dispatch import BackgroundDispatcher
from library_sanctum.models.node import NodeKind
from library_sanctum.protocols import LibrarianProtocol


class DecliningPrompt:
    """Non-interactive prompt: overwrites are always declined, alerts are logged."""

    def confirm(self, message: str) -> bool:
        logger.info("Declining overwrite without a user present: {}", message)
        return False

    def alert(self, message: str) -> None:
        logger.warning(message)


def _breadcrumbs_str(store: TreeStore, node_id: str) -> str:
    crumbs = get_breadcrumbs(store.snapshot(), node_id)
    return " > ".join(c.name for c in crumbs)


def _iso(ms: int) -> str:
    return datetime.fromtimestamp(ms / 1000, tz=UTC).isoformat()


# --- Core functions (testable without MCP context) ---


def library_list_tree(
    store: TreeStore,
    *,
    node_id: str | None = None,
    max_depth: int | None = None,
) -> dict[str, Any]:
    """Render the library (or a folder) as an outline with node ids."""
    start = node_id or store.root_id
    if start not in store:
        return {"error": f"Node '{start}' not found."}
    return {
        "content": render_tree_as_markdown(
            store.snapshot(), node_id=start, max_depth=max_depth, show_ids=True
        ),
        "node_id": start,
        "total_nodes": len(store),
    }


def library_read_document(store: TreeStore, *, node_id: str) -> dict[str, Any]:
    """Read a document's markdown text, or its link for PDFs and Google files."""
    node = store.get(node_id)
    if node is None:
        return {"error": f"Node '{node_id}' not found."}
    if node.is_folder:
        return {"error": f"'{node.name}' is a folder; use the tree tool to list it."}
    return {
        "node_id": node.id,
        "name": node.name,
        "kind": node.kind.value,
        "content": render_document(node),
        "url": node.url,
        "breadcrumbs": _breadcrumbs_str(store, node.id),
        "modified": _iso(node.modified_at),
    }


def library_search(store: TreeStore, *, query: str, limit: int = 20) -> dict[str, Any]:
    """Search node names and markdown text."""
    if not query.strip():
        return {"error": "No search query provided.", "results": [], "count": 0}
    limit = max(1, min(limit, 50))
    hits = search_nodes(store.snapshot(), query, limit=limit)
    return {
        "results": [
            {
                "node_id": n.id,
                "name": n.name,
                "kind": n.kind.value,
                "breadcrumbs": _breadcrumbs_str(store, n.id),
                "modified": _iso(n.modified_at),
            }
            for n in hits
        ],
        "count": len(hits),
    }


def library_create_document(
    store: TreeStore,
    *,
    parent_id: str,
    name: str,
    content: str | None = None,
) -> dict[str, Any]:
    """Create a markdown document under a folder, optionally with its text."""
    new_id = store.create_node(parent_id, NodeKind.MARKDOWN, name)
    if new_id is None:
        return {"success": False, "error": f"Folder '{parent_id}' not found."}
    if content is not None:
        store.update_content(new_id, content)
    return {"success": True, "node_id": new_id}


def library_ask(
    store: TreeStore,
    librarian: LibrarianProtocol,
    *,
    node_id: str,
    question: str | None = None,
) -> dict[str, Any]:
    """Ask the librarian about a document; without a question, summarize it."""
    node = store.get(node_id)
    if node is None or node.is_folder:
        return {"error": f"Document '{node_id}' not found."}
    text, doc_type = document_context(node)
    if question:
        return {"node_id": node_id, "answer": librarian.ask(question, text)}
    return {"node_id": node_id, "summary": librarian.summarize(text, doc_type)}


# --- MCP Server Setup ---


@dataclass
class ServerContext:
    """Shared resources for the MCP server lifetime."""

    store: TreeStore
    librarian: LibrarianProtocol
    dispatcher: BackgroundDispatcher
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)


@asynccontextmanager
async def server_lifespan(_server: FastMCP) -> AsyncIterator[ServerContext]:
    """Load the library on startup, drain pending writes on shutdown."""
    api = LibraryApi()
    dispatcher = BackgroundDispatcher()
    store = TreeStore.load(api, prompt=DecliningPrompt(), uploader=api, dispatcher=dispatcher)
    if not store.is_loaded:
        logger.warning("Library backend unreachable; tools will see an empty library")
    try:
        yield ServerContext(store=store, librarian=Librarian(), dispatcher=dispatcher)
    finally:
        dispatcher.close()


mcp_server = FastMCP(
    "library-sanctum",
    instructions="""\
The library is a folder tree of markdown notes, PDFs and Google Docs links.

1. Call library_tree_tool to see the outline with node ids.
2. Call library_read_tool with a node id to read a document.
3. Use library_search_tool to find documents by name or text.
4. library_ask_tool summarizes a document or answers a question about it.
""",
    lifespan=server_lifespan,
)


def _ctx(mcp_ctx: Context) -> ServerContext:
    return mcp_ctx.request_context.lifespan_context  # type: ignore[return-value]


# --- MCP Tool Wrappers ---


@mcp_server.tool()
async def library_tree_tool(
    ctx: Context,
    node_id: str | None = None,
    max_depth: int | None = None,
) -> dict[str, Any]:
    """List the library tree (or one folder) as a markdown outline with node ids.

    Args:
        node_id: Folder to start from (default: library root).
        max_depth: Max levels to include (None = unlimited).
    """
    return library_list_tree(_ctx(ctx).store, node_id=node_id, max_depth=max_depth)


@mcp_server.tool()
async def library_read_tool(ctx: Context, node_id: str) -> dict[str, Any]:
    """Read a document by node id.

    Markdown documents return their text; PDFs and Google files return a link.
    """
    return library_read_document(_ctx(ctx).store, node_id=node_id)


@mcp_server.tool()
async def library_search_tool(ctx: Context, query: str, limit: int = 20) -> dict[str, Any]:
    """Search document names and markdown text (case-insensitive substring).

    Args:
        query: Text to look for.
        limit: Max results (1-50, default 20).
    """
    return library_search(_ctx(ctx).store, query=query, limit=limit)


@mcp_server.tool()
async def library_create_document_tool(
    ctx: Context,
    parent_id: str,
    name: str,
    content: str | None = None,
) -> dict[str, Any]:
    """Create a markdown document under a folder.

    Args:
        parent_id: Folder node id.
        name: File name, e.g. "notes.md".
        content: Optional markdown text (default: starter template).
    """
    server = _ctx(ctx)
    async with server.lock:
        return library_create_document(
            server.store, parent_id=parent_id, name=name, content=content
        )


@mcp_server.tool()
async def library_ask_tool(
    ctx: Context,
    node_id: str,
    question: str | None = None,
) -> dict[str, Any]:
    """Ask the librarian about a document, or summarize it when no question is given."""
    server = _ctx(ctx)
    return await asyncio.to_thread(
        library_ask, server.store, server.librarian, node_id=node_id, question=question
    )


def run_mcp_server() -> None:
    """Run the MCP server with stdio transport."""
    from library_sanctum.logging_config import configure_logging

    configure_logging(verbose=False)
    mcp_server.run(transport="stdio")
