"""Render library subtrees as markdown outlines."""

import io
from collections.abc import Mapping

from library_sanctum.models.node import Node, NodeKind

_KIND_LABELS: dict[NodeKind, str] = {
    NodeKind.FOLDER: "folder",
    NodeKind.MARKDOWN: "md",
    NodeKind.PDF: "pdf",
    NodeKind.GOOGLE_DOC: "gdoc",
    NodeKind.GOOGLE_SHEET: "gsheet",
    NodeKind.GOOGLE_SLIDE: "gslides",
}


def render_tree_as_markdown(
    nodes: Mapping[str, Node],
    *,
    node_id: str,
    max_depth: int | None = None,
    show_ids: bool = False,
) -> str:
    """Render a node and its descendants as an indented bullet list.

    Args:
        nodes: Node mapping (a store snapshot).
        node_id: The node to start rendering from.
        max_depth: Max levels below the start node to include (None = unlimited).
        show_ids: Append each node's id, for commands that take ids.

    Returns:
        Markdown string, or "" when node_id is unknown.
    """
    if node_id not in nodes:
        return ""

    out = io.StringIO()
    # Pre-order walk with an explicit stack of (id, relative depth).
    stack: list[tuple[str, int]] = [(node_id, 0)]
    while stack:
        current_id, depth = stack.pop()
        node = nodes.get(current_id)
        if node is None:
            continue

        indent = "    " * depth
        label = _KIND_LABELS[node.kind]
        suffix = f"  (id={node.id})" if show_ids else ""
        name = f"{node.name}/" if node.is_folder else node.name
        out.write(f"{indent}- {name} [{label}]{suffix}\n")

        children = [c for c in node.children or () if c in nodes]
        if not children:
            continue
        if max_depth is not None and depth >= max_depth:
            noun = "child" if len(children) == 1 else "children"
            out.write(f"{indent}    - ... ({len(children)} more {noun}, id={node.id})\n")
            continue
        stack.extend((c, depth + 1) for c in reversed(children))

    return out.getvalue()


def render_document(node: Node) -> str:
    """Render a single document for reading: markdown text or its link."""
    if node.kind is NodeKind.MARKDOWN:
        return node.content or ""
    if node.url:
        return f"[{node.name}]({node.url})\n"
    return ""
