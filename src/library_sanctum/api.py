"""HTTP client for the library REST backend and its upload side-channel."""

from typing import Any

import requests
from loguru import logger

from library_sanctum.config import API_URL, HTTP_TIMEOUT


class LibraryApi:
    """Encapsulated library backend API.

    Implements both the remote store and the uploader protocols.
    """

    def __init__(self, base_url: str | None = None, *, timeout: float | None = None) -> None:
        self.base_url = (base_url or API_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else HTTP_TIMEOUT
        self.sess = requests.Session()
        logger.debug("API ready: base_url {!r}, timeout {!r}", self.base_url, self.timeout)

    def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        url = f"{self.base_url}{path}"
        logger.debug("Making request: {} {}", method, path)
        r = self.sess.request(method, url, timeout=self.timeout, **kwargs)
        r.raise_for_status()
        rv: dict[str, Any] = r.json()
        return rv

    def list_nodes(self) -> list[dict[str, Any]]:
        """Fetch every stored record."""
        rv = self._request("GET", "/api/files")
        if rv.get("message") != "success":
            msg = f"API call failed: GET /api/files -> {rv.get('error')!r}"
            raise RuntimeError(msg)
        data = rv.get("data") or {}
        return list(data.values())

    def create_node(self, record: dict[str, Any]) -> None:
        self._request("POST", "/api/files", json=record)

    def update_node(self, node_id: str, fields: dict[str, Any]) -> None:
        self._request("PUT", f"/api/files/{node_id}", json=fields)

    def delete_node(self, node_id: str) -> None:
        self._request("DELETE", f"/api/files/{node_id}")

    def upload(self, filename: str, data: bytes) -> str:
        """Upload a binary file, returning the URL the backend serves it under."""
        rv = self._request("POST", "/api/upload", files={"file": (filename, data)})
        url = rv.get("url")
        if not isinstance(url, str) or not url:
            msg = f"Upload response carried no url: {rv!r}"
            raise RuntimeError(msg)
        return url
