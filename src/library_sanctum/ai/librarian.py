"""AI librarian: document summaries and Q&A backed by the Gemini REST API.

Every public call returns prose. Failures degrade to fixed fallback strings
so a viewer never sees an exception.
"""

from typing import Any

import requests
from loguru import logger

from library_sanctum.config import (
    GEMINI_API_BASE,
    GEMINI_MODEL,
    GEMINI_TOKEN_FILES,
    HTTP_TIMEOUT,
    read_secret,
)
from library_sanctum.models.node import Node, NodeKind

SUMMARY_LIMIT = 10_000
CONTEXT_LIMIT = 15_000

UNAVAILABLE = "The AI service is unavailable. (An API key must be configured.)"
SUMMARY_FAILED = "Something went wrong while summarizing this document."
SUMMARY_EMPTY = "A summary could not be generated."
ANSWER_FAILED = "The librarian is busy and cannot answer right now."
ANSWER_EMPTY = "An answer could not be generated."

_SUMMARY_PROMPT = """\
Summarize the following document so that a reader can understand it easily.
Document format: {doc_type}

Content:
{content}

Keep the summary clear and concise."""

_ASK_PROMPT = """\
You are the wise librarian of this old library.
Answer the user's question based on the document content below.
If the document does not contain enough to answer, draw on general knowledge
but say that the document does not cover it.

Document content:
{context}

User question: {question}

Answer in the courteous, learned tone of a librarian."""


def _truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + " ...(truncated)"


class Librarian:
    """Summarize and answer questions about library documents."""

    def __init__(
        self,
        api_key: str | None = None,
        *,
        model: str | None = None,
        timeout: float | None = None,
    ) -> None:
        self.api_key = api_key or read_secret(["GEMINI_API_KEY", "API_KEY"], GEMINI_TOKEN_FILES)
        self.model = model or GEMINI_MODEL
        self.timeout = timeout if timeout is not None else HTTP_TIMEOUT
        self.sess = requests.Session()
        if not self.api_key:
            logger.warning("Gemini API key is not set. AI features will be disabled.")

    def _generate(self, prompt: str) -> str:
        """Call generateContent and return the concatenated text parts."""
        r = self.sess.post(
            f"{GEMINI_API_BASE}/models/{self.model}:generateContent",
            headers={"x-goog-api-key": self.api_key or ""},
            json={"contents": [{"parts": [{"text": prompt}]}]},
            timeout=self.timeout,
        )
        r.raise_for_status()
        data: dict[str, Any] = r.json()
        candidates = data.get("candidates") or []
        if not candidates:
            return ""
        parts = (candidates[0].get("content") or {}).get("parts") or []
        return "".join(p.get("text", "") for p in parts).strip()

    def summarize(self, content: str, doc_type: str) -> str:
        """Summarize a document's text. doc_type is "md" or "pdf"."""
        if not self.api_key:
            return UNAVAILABLE
        prompt = _SUMMARY_PROMPT.format(
            doc_type=doc_type, content=_truncate(content, SUMMARY_LIMIT)
        )
        try:
            return self._generate(prompt) or SUMMARY_EMPTY
        except Exception:
            logger.exception("Gemini summarize failed")
            return SUMMARY_FAILED

    def ask(self, question: str, context: str) -> str:
        """Answer a question using a document as context."""
        if not self.api_key:
            return UNAVAILABLE
        prompt = _ASK_PROMPT.format(
            context=_truncate(context, CONTEXT_LIMIT), question=question
        )
        try:
            return self._generate(prompt) or ANSWER_EMPTY
        except Exception:
            logger.exception("Gemini ask failed")
            return ANSWER_FAILED


def document_context(node: Node) -> tuple[str, str]:
    """Return (text, doc_type) handed to the librarian for a document.

    Linked documents carry no text of their own, so their name and URL stand in.
    """
    if node.kind is NodeKind.MARKDOWN:
        return node.content or "", "md"
    doc_type = "pdf" if node.kind is NodeKind.PDF else "link"
    return f"{node.name}\n{node.url or ''}", doc_type
