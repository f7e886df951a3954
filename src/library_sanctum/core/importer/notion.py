"""Notion page search, block-to-markdown conversion and library import."""

from collections.abc import Iterable, Iterator
from typing import Any

import requests
from loguru import logger

from library_sanctum.config import (
    HTTP_TIMEOUT,
    NOTION_API_BASE,
    NOTION_TOKEN_FILES,
    NOTION_VERSION,
    read_secret,
)
from library_sanctum.core.tree.store import TreeStore
from library_sanctum.models.node import NodeKind, NotionPage
from library_sanctum.protocols import NotionProtocol

PAGE_SIZE = 100
DEFAULT_ICON = "\U0001f4c4"  # page facing up
EXTERNAL_ICON = "\U0001f5bc\ufe0f"  # framed picture


def rich_text(items: list[dict[str, Any]] | None) -> str:
    """Concatenate the plain_text of a rich_text array."""
    if not items:
        return ""
    return "".join(t.get("plain_text", "") for t in items)


# Line prefixes for blocks that render as a single prefixed line.
_LINE_PREFIXES: dict[str, str] = {
    "heading_1": "# ",
    "heading_2": "## ",
    "heading_3": "### ",
    "paragraph": "",
    "bulleted_list_item": "- ",
    "numbered_list_item": "1. ",
    "quote": "> ",
}


def block_to_markdown(block: dict[str, Any]) -> str:
    """Convert one Notion block to a markdown line. Unknown types yield ""."""
    block_type = block.get("type", "")
    body = block.get(block_type) or {}
    text = rich_text(body.get("rich_text"))

    if block_type in _LINE_PREFIXES:
        return f"{_LINE_PREFIXES[block_type]}{text}\n"
    if block_type == "to_do":
        mark = "x" if body.get("checked") else " "
        return f"- [{mark}] {text}\n"
    if block_type == "code":
        return f"```{body.get('language', '')}\n{text}\n```\n"
    return ""


def blocks_to_markdown(blocks: Iterable[dict[str, Any]]) -> str:
    return "\n".join(block_to_markdown(b) for b in blocks)


def _page_title(page: dict[str, Any]) -> str:
    for prop in (page.get("properties") or {}).values():
        if prop.get("type") == "title":
            return rich_text(prop.get("title")) or "Untitled"
    return "Untitled"


def _page_icon(page: dict[str, Any]) -> str:
    icon = page.get("icon")
    if not icon:
        return DEFAULT_ICON
    if icon.get("type") == "emoji":
        return icon.get("emoji") or DEFAULT_ICON
    if icon.get("type") == "external":
        return EXTERNAL_ICON
    return DEFAULT_ICON


class NotionClient:
    """Minimal Notion API client for the import flow."""

    def __init__(self, api_key: str | None = None, *, timeout: float | None = None) -> None:
        key = api_key or read_secret(["NOTION_API_KEY"], NOTION_TOKEN_FILES)
        if not key:
            msg = (
                "Cannot find Notion API key: set NOTION_API_KEY or create one of "
                f"{[str(p) for p in NOTION_TOKEN_FILES]!r}"
            )
            raise RuntimeError(msg)
        self.timeout = timeout if timeout is not None else HTTP_TIMEOUT
        self.sess = requests.Session()
        self.sess.headers.update(
            {
                "Authorization": f"Bearer {key}",
                "Notion-Version": NOTION_VERSION,
                "Content-Type": "application/json",
            }
        )

    def _paginate(self, method: str, path: str, body: dict[str, Any]) -> Iterator[dict[str, Any]]:
        """Yield every result across next_cursor pages."""
        cursor: str | None = None
        while True:
            if method == "POST":
                payload = {**body, "page_size": PAGE_SIZE}
                if cursor:
                    payload["start_cursor"] = cursor
                r = self.sess.post(f"{NOTION_API_BASE}{path}", json=payload, timeout=self.timeout)
            else:
                params: dict[str, Any] = {"page_size": PAGE_SIZE}
                if cursor:
                    params["start_cursor"] = cursor
                r = self.sess.get(f"{NOTION_API_BASE}{path}", params=params, timeout=self.timeout)
            r.raise_for_status()
            data = r.json()
            yield from data.get("results", [])
            cursor = data.get("next_cursor")
            if not data.get("has_more") or not cursor:
                return

    def search_pages(self) -> list[NotionPage]:
        """List pages shared with the integration, most recently edited first."""
        body = {
            "filter": {"value": "page", "property": "object"},
            "sort": {"direction": "descending", "timestamp": "last_edited_time"},
        }
        pages = [
            NotionPage(id=page["id"], title=_page_title(page), icon=_page_icon(page))
            for page in self._paginate("POST", "/search", body)
        ]
        logger.debug("Notion search returned {} pages", len(pages))
        return pages

    def get_page_markdown(self, page_id: str) -> str:
        """Fetch a page's top-level blocks and convert them to markdown."""
        return blocks_to_markdown(self._paginate("GET", f"/blocks/{page_id}/children", {}))


def import_notion_pages(
    store: TreeStore,
    client: NotionProtocol,
    pages: Iterable[NotionPage],
) -> list[str]:
    """Import the given pages as markdown documents under the library root.

    A page whose content cannot be fetched is logged and skipped.

    Returns:
        Ids of the created nodes.
    """
    records: list[dict[str, Any]] = []
    for page in pages:
        try:
            content = client.get_page_markdown(page.id)
        except Exception:
            logger.exception("Failed to fetch Notion page {} ({})", page.title, page.id)
            continue
        records.append(
            {"name": f"{page.icon} {page.title}.md", "kind": NodeKind.MARKDOWN, "content": content}
        )

    return store.import_batch(records)
