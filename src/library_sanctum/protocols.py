"""Protocols for dependency injection around the tree store."""

from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable

from library_sanctum.models.node import NotionPage


@runtime_checkable
class RemoteStoreProtocol(Protocol):
    """Protocol for the remote persistence collaborator."""

    def list_nodes(self) -> list[dict[str, Any]]:
        """Return every stored record."""
        ...

    def create_node(self, record: dict[str, Any]) -> None:
        """Persist a new full record."""
        ...

    def update_node(self, node_id: str, fields: dict[str, Any]) -> None:
        """Apply a partial update to a stored record."""
        ...

    def delete_node(self, node_id: str) -> None:
        """Delete a record by id."""
        ...


@runtime_checkable
class UploaderProtocol(Protocol):
    """Protocol for the binary upload side-channel."""

    def upload(self, filename: str, data: bytes) -> str:
        """Store a binary payload and return a durable URL for it."""
        ...


@runtime_checkable
class PromptProtocol(Protocol):
    """Protocol for user interaction needed by destructive operations."""

    def confirm(self, message: str) -> bool:
        """Ask the user a yes/no question."""
        ...

    def alert(self, message: str) -> None:
        """Show a failure the user must see."""
        ...


@runtime_checkable
class DispatcherProtocol(Protocol):
    """Protocol for running remote calls without blocking local state."""

    def submit(self, description: str, fn: Callable[[], Any]) -> None:
        """Run fn, logging (not raising) any failure."""
        ...


@runtime_checkable
class LibrarianProtocol(Protocol):
    """Protocol for the AI summarization/chat collaborator."""

    def summarize(self, content: str, doc_type: str) -> str:
        """Summarize a document."""
        ...

    def ask(self, question: str, context: str) -> str:
        """Answer a question about a document."""
        ...


@runtime_checkable
class NotionProtocol(Protocol):
    """Protocol for the Notion import collaborator."""

    def search_pages(self) -> list[NotionPage]:
        """List importable pages."""
        ...

    def get_page_markdown(self, page_id: str) -> str:
        """Return a page converted to markdown."""
        ...
