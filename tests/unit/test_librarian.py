"""Tests for the AI librarian."""

from pathlib import Path
from typing import Any
from unittest.mock import MagicMock, patch

import pytest
import requests

from library_sanctum.ai.librarian import (
    ANSWER_EMPTY,
    ANSWER_FAILED,
    SUMMARY_FAILED,
    SUMMARY_LIMIT,
    UNAVAILABLE,
    Librarian,
    document_context,
)
from library_sanctum.models.node import Node, NodeKind


@pytest.fixture
def librarian_with_mock_session() -> tuple[Librarian, MagicMock]:
    with patch("library_sanctum.ai.librarian.requests.Session") as session_cls:
        session = MagicMock()
        session_cls.return_value = session
        librarian = Librarian("key", model="test-model")
    return librarian, session


def _reply(text: str) -> MagicMock:
    response = MagicMock()
    data: dict[str, Any] = {"candidates": [{"content": {"parts": [{"text": text}]}}]}
    response.json.return_value = data
    return response


def test_missing_key_is_unavailable(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.delenv("API_KEY", raising=False)
    monkeypatch.setattr(
        "library_sanctum.ai.librarian.GEMINI_TOKEN_FILES", [tmp_path / "none.txt"]
    )
    librarian = Librarian()
    assert librarian.summarize("text", "md") == UNAVAILABLE
    assert librarian.ask("why?", "text") == UNAVAILABLE


def test_summarize_truncates_and_returns_text(
    librarian_with_mock_session: tuple[Librarian, MagicMock],
) -> None:
    librarian, session = librarian_with_mock_session
    session.post.return_value = _reply("  A short summary.  ")

    assert librarian.summarize("x" * (SUMMARY_LIMIT + 50), "md") == "A short summary."

    call = session.post.call_args
    assert call.args[0].endswith("/models/test-model:generateContent")
    assert call.kwargs["headers"] == {"x-goog-api-key": "key"}
    prompt = call.kwargs["json"]["contents"][0]["parts"][0]["text"]
    assert "...(truncated)" in prompt
    assert "x" * (SUMMARY_LIMIT + 1) not in prompt


def test_failures_degrade_to_fallbacks(
    librarian_with_mock_session: tuple[Librarian, MagicMock],
) -> None:
    librarian, session = librarian_with_mock_session
    session.post.side_effect = requests.ConnectionError("offline")

    assert librarian.summarize("text", "md") == SUMMARY_FAILED
    assert librarian.ask("why?", "text") == ANSWER_FAILED


def test_empty_output_has_its_own_fallback(
    librarian_with_mock_session: tuple[Librarian, MagicMock],
) -> None:
    librarian, session = librarian_with_mock_session
    response = MagicMock()
    response.json.return_value = {"candidates": []}
    session.post.return_value = response

    assert librarian.ask("why?", "text") == ANSWER_EMPTY


def test_document_context() -> None:
    md = Node(id="a", parent_id="r", name="a.md", kind=NodeKind.MARKDOWN, modified_at=0,
              content="body")
    pdf = Node(id="b", parent_id="r", name="b.pdf", kind=NodeKind.PDF, modified_at=0,
               url="/uploads/b.pdf")
    doc = Node(id="c", parent_id="r", name="Plan", kind=NodeKind.GOOGLE_DOC, modified_at=0,
               url="https://docs.google.com/document/d/1")

    assert document_context(md) == ("body", "md")
    assert document_context(pdf) == ("b.pdf\n/uploads/b.pdf", "pdf")
    assert document_context(doc) == ("Plan\nhttps://docs.google.com/document/d/1", "link")
