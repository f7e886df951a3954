"""Authoritative in-memory document tree with optimistic remote propagation.

Every mutation builds a new mapping, commits it in one step and notifies
subscribers, then hands the matching remote write to a dispatcher. Remote
failures are logged by the dispatcher and never roll local state back; the
next ``reload()`` is the only reconciliation.
"""

import time
import uuid
from collections.abc import Callable, Mapping, Sequence
from dataclasses import replace
from functools import partial
from types import MappingProxyType
from typing import Any

from loguru import logger

from library_sanctum.config import ROOT_ID
from library_sanctum.core.tree.navigation import (
    build_file_system,
    find_sibling_by_name,
    is_descendant,
    iter_subtree,
)
from library_sanctum.core.upload.classifier import classify_upload
from library_sanctum.dispatch import InlineDispatcher
from library_sanctum.models.node import Node, NodeKind, SourceFile, coerce_kind
from library_sanctum.protocols import (
    DispatcherProtocol,
    PromptProtocol,
    RemoteStoreProtocol,
    UploaderProtocol,
)

MARKDOWN_TEMPLATE = "# New document\n\nStart writing here."
UNTITLED = "Untitled"

Snapshot = Mapping[str, Node]
Listener = Callable[[Snapshot], None]


def _now_ms() -> int:
    return int(time.time() * 1000)


def _new_id() -> str:
    return uuid.uuid4().hex[:12]


def _remove_subtree(nodes: dict[str, Node], node_id: str) -> list[str]:
    """Detach node_id from its parent and drop its whole subtree from nodes.

    Mutates the (already copied) mapping in place and returns the removed ids.
    """
    node = nodes[node_id]
    parent = nodes.get(node.parent_id) if node.parent_id else None
    if parent is not None and parent.children is not None:
        nodes[parent.id] = replace(
            parent, children=tuple(c for c in parent.children if c != node_id)
        )
    removed = iter_subtree(nodes, node_id)
    for removed_id in removed:
        del nodes[removed_id]
    return removed


class TreeStore:
    """Owns the node mapping, the selection and the open document."""

    def __init__(
        self,
        nodes: Mapping[str, Node],
        *,
        remote: RemoteStoreProtocol,
        prompt: PromptProtocol,
        uploader: UploaderProtocol | None = None,
        dispatcher: DispatcherProtocol | None = None,
        root_id: str = ROOT_ID,
        id_factory: Callable[[], str] = _new_id,
        clock: Callable[[], int] = _now_ms,
    ) -> None:
        self._nodes: dict[str, Node] = dict(nodes)
        self._remote = remote
        self._prompt = prompt
        self._uploader = uploader
        self._dispatcher: DispatcherProtocol = dispatcher or InlineDispatcher()
        self._id_factory = id_factory
        self._clock = clock
        self._listeners: list[Listener] = []
        self.root_id = root_id
        self.selected_id: str | None = None
        self.open_doc_id: str | None = None

    @classmethod
    def load(
        cls,
        remote: RemoteStoreProtocol,
        *,
        prompt: PromptProtocol,
        uploader: UploaderProtocol | None = None,
        dispatcher: DispatcherProtocol | None = None,
        root_id: str = ROOT_ID,
    ) -> "TreeStore":
        """Build a store from the remote collaborator's flat record list.

        A fetch failure is logged and yields an empty, unloaded store.
        """
        try:
            nodes = build_file_system(remote.list_nodes(), root_id=root_id)
        except Exception:
            logger.exception("Failed to fetch library from remote store")
            nodes = {}
        store = cls(
            nodes,
            remote=remote,
            prompt=prompt,
            uploader=uploader,
            dispatcher=dispatcher,
            root_id=root_id,
        )
        logger.debug("Loaded library with {} nodes", len(nodes))
        return store

    # --- Read side ---

    @property
    def is_loaded(self) -> bool:
        return self.root_id in self._nodes

    def snapshot(self) -> Snapshot:
        """Return a read-only view of the current mapping."""
        return MappingProxyType(self._nodes)

    def get(self, node_id: str | None) -> Node | None:
        if node_id is None:
            return None
        return self._nodes.get(node_id)

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call listener with the new snapshot after every state change.

        Returns a function that removes the subscription.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # --- Internals ---

    def _commit(self, nodes: dict[str, Node]) -> None:
        self._nodes = nodes
        view = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(view)
            except Exception:
                logger.exception("Tree listener failed")

    def _send(self, description: str, fn: Callable[[], Any]) -> None:
        self._dispatcher.submit(description, fn)

    def _folder(self, node_id: str) -> Node | None:
        node = self._nodes.get(node_id)
        return node if node is not None and node.is_folder else None

    def _forget(self, removed: Sequence[str]) -> None:
        if self.open_doc_id in removed:
            self.open_doc_id = None
        if self.selected_id in removed:
            self.selected_id = None

    def _confirm_overwrite(self, folder: Node, name: str) -> bool:
        return self._prompt.confirm(
            f"'{folder.name}' already contains '{name}'.\nOverwrite it?"
        )

    # --- Selection (UI state, never persisted) ---

    def select(self, node_id: str | None) -> None:
        if node_id is None or node_id in self._nodes:
            self.selected_id = node_id

    def toggle_folder(self, node_id: str) -> None:
        folder = self._folder(node_id)
        if folder is None:
            return
        nodes = dict(self._nodes)
        nodes[node_id] = replace(folder, expanded=not folder.expanded)
        self._commit(nodes)

    def open_document(self, node_id: str) -> None:
        """Open a document, or toggle a folder's expansion."""
        node = self._nodes.get(node_id)
        if node is None:
            return
        if node.is_folder:
            self.toggle_folder(node_id)
        else:
            self.open_doc_id = node_id

    def close_document(self) -> None:
        self.open_doc_id = None

    # --- Mutations ---

    def create_node(self, parent_id: str, kind: NodeKind, name: str) -> str | None:
        """Create a node under a folder and select it.

        Returns:
            The new id, or None when parent_id is not an existing folder.
        """
        parent = self._folder(parent_id)
        if parent is None:
            logger.debug("create_node: {} is not a folder", parent_id)
            return None

        new_id = self._id_factory()
        node = Node(
            id=new_id,
            parent_id=parent_id,
            name=name,
            kind=kind,
            modified_at=self._clock(),
            content=MARKDOWN_TEMPLATE if kind is NodeKind.MARKDOWN else None,
            children=() if kind is NodeKind.FOLDER else None,
            expanded=True,
        )
        nodes = dict(self._nodes)
        nodes[parent_id] = replace(parent, children=(*(parent.children or ()), new_id))
        nodes[new_id] = node
        self.selected_id = new_id
        self._commit(nodes)

        self._send(f"create {new_id}", partial(self._remote.create_node, node.to_record()))
        return new_id

    def delete_node(self, node_id: str) -> bool:
        """Delete a node and its whole subtree locally; ask the remote to delete the top id."""
        node = self._nodes.get(node_id)
        if node is None or node_id == self.root_id or node.parent_id is None:
            logger.debug("delete_node: ignoring {}", node_id)
            return False

        nodes = dict(self._nodes)
        removed = _remove_subtree(nodes, node_id)
        self._forget(removed)
        self.selected_id = None
        self._commit(nodes)

        self._send(f"delete {node_id}", partial(self._remote.delete_node, node_id))
        return True

    def rename_node(self, node_id: str, new_name: str) -> bool:
        """Rename a node. Sibling names are not checked."""
        node = self._nodes.get(node_id)
        if node is None:
            return False

        renamed = replace(
            node, name=new_name, modified_at=self._clock(), version=node.version + 1
        )
        nodes = dict(self._nodes)
        nodes[node_id] = renamed
        self._commit(nodes)

        fields = {"name": new_name, "version": renamed.version}
        self._send(f"rename {node_id}", partial(self._remote.update_node, node_id, fields))
        return True

    def update_content(self, node_id: str, text: str) -> bool:
        """Replace a document's markdown text. Callers should debounce."""
        node = self._nodes.get(node_id)
        if node is None:
            return False

        edited = replace(node, content=text, modified_at=self._clock(), version=node.version + 1)
        nodes = dict(self._nodes)
        nodes[node_id] = edited
        self._commit(nodes)

        fields = {"content": text, "version": edited.version}
        self._send(f"edit {node_id}", partial(self._remote.update_node, node_id, fields))
        return True

    def move_node(self, node_id: str, target_parent_id: str) -> bool:
        """Reparent a node, replacing a same-named sibling if the user agrees.

        Moves onto itself, of the root, into the current parent, into a
        non-folder or into the node's own subtree are ignored.
        """
        if node_id == target_parent_id:
            return False
        node = self._nodes.get(node_id)
        if node is None or node.parent_id is None:
            return False
        target = self._folder(target_parent_id)
        if target is None or node.parent_id == target_parent_id:
            return False
        if is_descendant(self._nodes, target_parent_id, node_id):
            logger.debug("move_node: {} is inside {}", target_parent_id, node_id)
            return False

        duplicate_id = find_sibling_by_name(
            self._nodes, target_parent_id, node.name, exclude_id=node_id
        )
        if duplicate_id is not None:
            if is_descendant(self._nodes, node_id, duplicate_id):
                logger.debug("move_node: {} lives inside duplicate {}", node_id, duplicate_id)
                return False
            if not self._confirm_overwrite(target, node.name):
                return False

        nodes = dict(self._nodes)
        if duplicate_id is not None:
            self._forget(_remove_subtree(nodes, duplicate_id))

        old_parent = nodes[node.parent_id]
        nodes[old_parent.id] = replace(
            old_parent, children=tuple(c for c in old_parent.children or () if c != node_id)
        )
        new_parent = nodes[target_parent_id]
        nodes[target_parent_id] = replace(
            new_parent, children=(*(new_parent.children or ()), node_id)
        )
        moved = replace(
            node,
            parent_id=target_parent_id,
            modified_at=self._clock(),
            version=node.version + 1,
        )
        nodes[node_id] = moved
        self._commit(nodes)

        if duplicate_id is not None:
            self._send(
                f"delete duplicate {duplicate_id}",
                partial(self._remote.delete_node, duplicate_id),
            )
        fields = {"parentId": target_parent_id, "version": moved.version}
        self._send(f"move {node_id}", partial(self._remote.update_node, node_id, fields))
        return True

    def import_batch(self, records: Sequence[Mapping[str, Any]]) -> list[str]:
        """Add partial records under root in one transition, then persist each.

        Records may carry ``name``, ``kind``, ``content`` and ``url``.
        """
        root = self._folder(self.root_id)
        if root is None or not records:
            return []

        now = self._clock()
        created: list[Node] = []
        for record in records:
            kind = coerce_kind(record.get("kind"))
            created.append(
                Node(
                    id=self._id_factory(),
                    parent_id=self.root_id,
                    name=record.get("name") or UNTITLED,
                    kind=kind,
                    modified_at=now,
                    content=(record.get("content") or "") if kind is NodeKind.MARKDOWN else None,
                    url=record.get("url") if kind.is_linked else None,
                    children=() if kind is NodeKind.FOLDER else None,
                )
            )

        nodes = dict(self._nodes)
        for node in created:
            nodes[node.id] = node
        nodes[self.root_id] = replace(
            root, children=(*(root.children or ()), *(n.id for n in created))
        )
        self._commit(nodes)
        logger.info("Imported {} documents into {}", len(created), root.name)

        for node in created:
            self._send(f"import {node.id}", partial(self._remote.create_node, node.to_record()))
        return [n.id for n in created]

    def upload_file(self, parent_id: str, source: SourceFile) -> str | None:
        """Create a node from an uploaded file, or overwrite a same-named sibling in place.

        Returns:
            The id of the created or overwritten node, or None when nothing changed.
        """
        parent = self._folder(parent_id)
        if parent is None:
            return None

        duplicate_id = find_sibling_by_name(self._nodes, parent_id, source.name)
        if duplicate_id is not None:
            if self._nodes[duplicate_id].is_folder:
                self._prompt.alert(f"'{parent.name}' already has a folder named '{source.name}'.")
                return None
            if not self._confirm_overwrite(parent, source.name):
                return None

        plan = classify_upload(source)
        url = plan.url
        if plan.needs_upload:
            try:
                if self._uploader is None:
                    msg = "no upload service configured"
                    raise RuntimeError(msg)
                url = self._uploader.upload(source.name, source.data)
            except Exception:
                logger.exception("Upload of {} failed", source.name)
                self._prompt.alert(f"Upload failed: {source.name}")
                return None

        if duplicate_id is not None:
            existing = self._nodes[duplicate_id]
            updated = replace(
                existing,
                name=source.name,
                kind=plan.kind,
                content=plan.content,
                url=url,
                modified_at=self._clock(),
                version=existing.version + 1,
            )
            nodes = dict(self._nodes)
            nodes[duplicate_id] = updated
            self._commit(nodes)

            fields = {
                "name": updated.name,
                "type": updated.kind.value,
                "content": updated.content,
                "url": updated.url,
                "version": updated.version,
            }
            self._send(
                f"overwrite {duplicate_id}",
                partial(self._remote.update_node, duplicate_id, fields),
            )
            return duplicate_id

        new_id = self._id_factory()
        node = Node(
            id=new_id,
            parent_id=parent_id,
            name=plan.name,
            kind=plan.kind,
            modified_at=self._clock(),
            content=plan.content,
            url=url,
        )
        nodes = dict(self._nodes)
        nodes[parent_id] = replace(parent, children=(*(parent.children or ()), new_id))
        nodes[new_id] = node
        self._commit(nodes)

        self._send(f"upload {new_id}", partial(self._remote.create_node, node.to_record()))
        return new_id

    def reload(self) -> bool:
        """Replace local state with the remote collaborator's current records."""
        try:
            nodes = build_file_system(self._remote.list_nodes(), root_id=self.root_id)
        except Exception:
            logger.exception("Failed to reload library from remote store")
            return False
        self._forget([i for i in (self.open_doc_id, self.selected_id) if i and i not in nodes])
        self._commit(nodes)
        return True
