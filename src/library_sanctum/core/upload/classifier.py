"""Classify an uploaded file into a library node kind."""

import json
import re
from dataclasses import dataclass

from library_sanctum.models.node import NodeKind, SourceFile

_EXTENSION_KINDS: dict[str, NodeKind] = {
    ".gdoc": NodeKind.GOOGLE_DOC,
    ".gsheet": NodeKind.GOOGLE_SHEET,
    ".gslides": NodeKind.GOOGLE_SLIDE,
}

_URL_KINDS: tuple[tuple[str, NodeKind], ...] = (
    ("docs.google.com/document", NodeKind.GOOGLE_DOC),
    ("docs.google.com/spreadsheets", NodeKind.GOOGLE_SHEET),
    ("docs.google.com/presentation", NodeKind.GOOGLE_SLIDE),
)

_GOOGLE_SUFFIX_RE = re.compile(r"\.g(doc|sheet|slides)$", re.IGNORECASE)
_JSON_SUFFIX_RE = re.compile(r"\.json$", re.IGNORECASE)


@dataclass(frozen=True)
class UploadPlan:
    """What an upload turns into, before any side-channel call is made."""

    kind: NodeKind
    name: str
    content: str | None = None
    url: str | None = None
    needs_upload: bool = False


def _kind_from_extension(name: str) -> NodeKind | None:
    lower = name.lower()
    for ext, kind in _EXTENSION_KINDS.items():
        if lower.endswith(ext):
            return kind
    return None


def _kind_from_url(url: str) -> NodeKind | None:
    for marker, kind in _URL_KINDS:
        if marker in url:
            return kind
    return None


def _linked_url(text: str) -> str | None:
    """Return the url field of a JSON link envelope, or None."""
    try:
        data = json.loads(text)
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None
    url = data.get("url")
    return url if isinstance(url, str) and url else None


def clean_linked_name(name: str) -> str:
    """Strip the .gdoc/.gsheet/.gslides sentinel, then a trailing .json."""
    return _JSON_SUFFIX_RE.sub("", _GOOGLE_SUFFIX_RE.sub("", name))


def classify_upload(source: SourceFile) -> UploadPlan:
    """Decide the node kind and payload for an uploaded file.

    PDFs go through the upload side-channel. Text that is a JSON envelope
    with a Google Docs url becomes a linked document (the extension hints
    the kind, the url decides when there is no hint). Everything else is
    stored as markdown verbatim.
    """
    if source.name.lower().endswith(".pdf"):
        return UploadPlan(kind=NodeKind.PDF, name=source.name, needs_upload=True)

    text = source.data.decode("utf-8", errors="replace")
    kind = _kind_from_extension(source.name)
    url = _linked_url(text)
    if url is not None and kind is None:
        kind = _kind_from_url(url)

    if kind is not None and url is not None:
        return UploadPlan(kind=kind, name=clean_linked_name(source.name), url=url)

    return UploadPlan(kind=NodeKind.MARKDOWN, name=source.name, content=text)
