"""Personal document library: folder tree, uploads, Notion import and AI librarian."""

from library_sanctum.api import LibraryApi
from library_sanctum.core.tree.store import TreeStore
from library_sanctum.dispatch import BackgroundDispatcher, InlineDispatcher
from library_sanctum.models.node import Node, NodeKind, SourceFile
from library_sanctum.protocols import (
    DispatcherProtocol,
    PromptProtocol,
    RemoteStoreProtocol,
    UploaderProtocol,
)

__all__ = [
    "BackgroundDispatcher",
    "DispatcherProtocol",
    "InlineDispatcher",
    "LibraryApi",
    "Node",
    "NodeKind",
    "PromptProtocol",
    "RemoteStoreProtocol",
    "SourceFile",
    "TreeStore",
    "UploaderProtocol",
]
