"""Tree navigation over a node mapping: breadcrumbs, subtrees, lookups."""

from collections.abc import Iterable, Mapping
from typing import Any

from library_sanctum.models.node import Breadcrumb, Node, NodeKind


def build_file_system(records: Iterable[dict[str, Any]], *, root_id: str) -> dict[str, Node]:
    """Build a node mapping from flat records.

    Folder children are derived by grouping on parentId in record order;
    any children arrays already present in the records are ignored.
    Records whose parent is not a known folder are dropped.
    """
    raw = [dict(r) for r in records]
    children_map: dict[str, list[str]] = {}
    for record in raw:
        parent_id = record.get("parentId")
        if parent_id:
            children_map.setdefault(parent_id, []).append(record["id"])

    nodes: dict[str, Node] = {}
    for record in raw:
        record["children"] = children_map.get(record["id"], [])
        record["isOpen"] = record["id"] == root_id
        nodes[record["id"]] = Node.from_record(record)

    # Second pass: only keep nodes reachable from root.
    reachable = set(iter_subtree(nodes, root_id)) if root_id in nodes else set()
    return {node_id: node for node_id, node in nodes.items() if node_id in reachable}


def iter_subtree(nodes: Mapping[str, Node], node_id: str) -> list[str]:
    """Return node_id and all of its descendants, in pre-order.

    Uses an explicit stack so deep trees do not hit the recursion limit.
    """
    result: list[str] = []
    seen: set[str] = set()
    stack = [node_id]
    while stack:
        current = stack.pop()
        node = nodes.get(current)
        if node is None or current in seen:
            continue
        seen.add(current)
        result.append(current)
        if node.children:
            stack.extend(reversed(node.children))
    return result


def is_descendant(nodes: Mapping[str, Node], node_id: str, ancestor_id: str) -> bool:
    """Check whether node_id lies strictly below ancestor_id."""
    seen: set[str] = set()
    current = nodes.get(node_id)
    while current is not None and current.parent_id is not None:
        if current.parent_id == ancestor_id:
            return True
        if current.parent_id in seen:
            return False
        seen.add(current.parent_id)
        current = nodes.get(current.parent_id)
    return False


def get_breadcrumbs(nodes: Mapping[str, Node], node_id: str) -> tuple[Breadcrumb, ...]:
    """Get ancestor breadcrumbs for a node.

    Returns breadcrumbs in order from root to immediate parent (excludes the node itself).
    """
    crumbs: list[Breadcrumb] = []
    seen: set[str] = set()
    node = nodes.get(node_id)
    while node is not None and node.parent_id is not None and node.parent_id not in seen:
        seen.add(node.parent_id)
        parent = nodes.get(node.parent_id)
        if parent is None:
            break
        crumbs.append(Breadcrumb(node_id=parent.id, name=parent.name))
        node = parent
    return tuple(reversed(crumbs))


def get_children(nodes: Mapping[str, Node], folder_id: str) -> tuple[Node, ...]:
    """Get direct children of a folder, in stored order."""
    folder = nodes.get(folder_id)
    if folder is None or not folder.children:
        return ()
    return tuple(nodes[c] for c in folder.children if c in nodes)


def find_sibling_by_name(
    nodes: Mapping[str, Node],
    folder_id: str,
    name: str,
    *,
    exclude_id: str | None = None,
) -> str | None:
    """Return the id of a child of folder_id named name, other than exclude_id."""
    for child in get_children(nodes, folder_id):
        if child.name == name and child.id != exclude_id:
            return child.id
    return None


def search_nodes(
    nodes: Mapping[str, Node],
    query: str,
    *,
    limit: int = 20,
) -> list[Node]:
    """Case-insensitive substring search over names and markdown content.

    Name matches rank before content-only matches; ties keep newest first.
    """
    needle = query.strip().lower()
    if not needle:
        return []

    name_hits: list[Node] = []
    content_hits: list[Node] = []
    for node in nodes.values():
        if needle in node.name.lower():
            name_hits.append(node)
        elif node.kind is NodeKind.MARKDOWN and needle in (node.content or "").lower():
            content_hits.append(node)

    def by_recent(n: Node) -> int:
        return -n.modified_at

    ranked = sorted(name_hits, key=by_recent) + sorted(content_hits, key=by_recent)
    return ranked[: max(0, limit)]


def validate_tree(nodes: Mapping[str, Node], *, root_id: str) -> list[str]:
    """Return a list of well-formedness problems (empty when the tree is sound)."""
    problems: list[str] = []
    root = nodes.get(root_id)
    if root is None:
        return [f"root {root_id!r} missing"]
    if root.parent_id is not None:
        problems.append("root has a parent")

    membership: dict[str, list[str]] = {}
    for node in nodes.values():
        if node.children is not None and not node.is_folder:
            problems.append(f"{node.id!r} is not a folder but has children")
        for child_id in node.children or ():
            membership.setdefault(child_id, []).append(node.id)
            if child_id not in nodes:
                problems.append(f"{node.id!r} lists missing child {child_id!r}")

    for node in nodes.values():
        if node.id == root_id:
            continue
        owners = membership.get(node.id, [])
        if len(owners) != 1:
            problems.append(f"{node.id!r} listed by {len(owners)} folders")
        elif owners[0] != node.parent_id:
            problems.append(f"{node.id!r} parent is {node.parent_id!r}, listed by {owners[0]!r}")
        parent = nodes.get(node.parent_id) if node.parent_id else None
        if parent is None or not parent.is_folder:
            problems.append(f"{node.id!r} parent {node.parent_id!r} is not an existing folder")

    unreachable = set(nodes) - set(iter_subtree(nodes, root_id))
    if unreachable:
        problems.append(f"unreachable nodes: {sorted(unreachable)!r}")
    return problems
