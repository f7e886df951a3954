"""Domain models for the document library."""

from dataclasses import dataclass
from enum import Enum
from typing import Any

from loguru import logger


class NodeKind(str, Enum):
    """Closed set of node types stored in the library."""

    FOLDER = "FOLDER"
    MARKDOWN = "MARKDOWN"
    PDF = "PDF"
    GOOGLE_DOC = "GOOGLE_DOC"
    GOOGLE_SHEET = "GOOGLE_SHEET"
    GOOGLE_SLIDE = "GOOGLE_SLIDE"

    @property
    def is_linked(self) -> bool:
        """True for kinds whose payload is an external URL."""
        return self in (
            NodeKind.PDF,
            NodeKind.GOOGLE_DOC,
            NodeKind.GOOGLE_SHEET,
            NodeKind.GOOGLE_SLIDE,
        )


def coerce_kind(value: Any) -> NodeKind:
    """Parse a stored or imported kind, defaulting to markdown when absent or unknown."""
    if not value:
        return NodeKind.MARKDOWN
    try:
        return NodeKind(value)
    except ValueError:
        logger.warning("Unknown node kind {!r}, treating it as markdown", value)
        return NodeKind.MARKDOWN


@dataclass(frozen=True)
class Node:
    """A single entry in the document tree."""

    id: str
    parent_id: str | None
    name: str
    kind: NodeKind
    modified_at: int
    content: str | None = None
    url: str | None = None
    children: tuple[str, ...] | None = None
    expanded: bool = False
    version: int = 1

    @property
    def is_folder(self) -> bool:
        return self.kind is NodeKind.FOLDER

    def to_record(self) -> dict[str, Any]:
        """Serialize to the wire record used by the REST backend.

        Children and the expanded flag are derived or UI-only, so they are
        never sent.
        """
        record: dict[str, Any] = {
            "id": self.id,
            "parentId": self.parent_id,
            "name": self.name,
            "type": self.kind.value,
            "lastModified": self.modified_at,
            "version": self.version,
        }
        if self.content is not None:
            record["content"] = self.content
        if self.url is not None:
            record["url"] = self.url
        return record

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "Node":
        """Build a node from a wire record, tolerating missing optional fields."""
        kind = coerce_kind(record.get("type"))
        children: tuple[str, ...] | None = None
        if kind is NodeKind.FOLDER:
            children = tuple(record.get("children") or ())
        return cls(
            id=record["id"],
            parent_id=record.get("parentId"),
            name=record.get("name") or "",
            kind=kind,
            modified_at=int(record.get("lastModified") or 0),
            content=record.get("content"),
            url=record.get("url"),
            children=children,
            expanded=bool(record.get("isOpen", False)),
            version=int(record.get("version") or 1),
        )


@dataclass(frozen=True)
class Breadcrumb:
    """A single ancestor in a breadcrumb trail."""

    node_id: str
    name: str


@dataclass(frozen=True)
class SourceFile:
    """A file dropped or selected for upload."""

    name: str
    data: bytes


@dataclass(frozen=True)
class NotionPage:
    """A page candidate offered by the Notion import flow."""

    id: str
    title: str
    icon: str
