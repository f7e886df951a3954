"""Tests for domain models."""

import dataclasses

import pytest

from library_sanctum.models.node import Node, NodeKind


def test_node_is_frozen() -> None:
    node = Node(id="a", parent_id=None, name="r", kind=NodeKind.FOLDER, modified_at=0)
    with pytest.raises(dataclasses.FrozenInstanceError):
        node.name = "x"  # type: ignore[misc]


def test_to_record_omits_ui_fields_and_empty_payload() -> None:
    node = Node(
        id="f",
        parent_id="root",
        name="Folder",
        kind=NodeKind.FOLDER,
        modified_at=42,
        children=("a", "b"),
        expanded=True,
        version=3,
    )
    assert node.to_record() == {
        "id": "f",
        "parentId": "root",
        "name": "Folder",
        "type": "FOLDER",
        "lastModified": 42,
        "version": 3,
    }


def test_from_record_defaults() -> None:
    node = Node.from_record({"id": "x", "parentId": "root", "children": ["ignored"]})
    assert node.kind is NodeKind.MARKDOWN
    assert node.children is None
    assert node.version == 1
    assert node.modified_at == 0
    assert not node.expanded



def test_from_record_unknown_type_falls_back_to_markdown() -> None:
    node = Node.from_record({"id": "x", "parentId": "root", "type": "note"})
    assert node.kind is NodeKind.MARKDOWN


def test_from_record_folder_children_and_open_flag() -> None:
    node = Node.from_record(
        {"id": "root", "type": "FOLDER", "children": ["a"], "isOpen": True, "version": 5}
    )
    assert node.children == ("a",)
    assert node.expanded
    assert node.version == 5


def test_linked_kinds() -> None:
    assert NodeKind.PDF.is_linked
    assert NodeKind.GOOGLE_SLIDE.is_linked
    assert not NodeKind.MARKDOWN.is_linked
    assert not NodeKind.FOLDER.is_linked
    assert NodeKind("GOOGLE_DOC") is NodeKind.GOOGLE_DOC
