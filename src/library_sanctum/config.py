"""Configuration constants for library-sanctum."""

import os
from pathlib import Path

# REST backend used by the CLI and the MCP server.
API_URL: str = os.environ.get("LIBRARY_API_URL", "http://localhost:3001").rstrip("/")

# Seconds before an HTTP call to any collaborator gives up.
HTTP_TIMEOUT: float = float(os.environ.get("LIBRARY_HTTP_TIMEOUT", "30"))

# Server-side data: SQLite database and uploaded binaries.
DATA_DIR: Path = Path(
    os.environ.get("LIBRARY_DATA_DIR", "~/.local/share/library-sanctum")
).expanduser()
DB_FILENAME = "library.db"
UPLOAD_DIRNAME = "uploads"
LOG_FILENAME = "server.log"

SERVER_HOST: str = os.environ.get("LIBRARY_HOST", "127.0.0.1")
SERVER_PORT: int = int(os.environ.get("LIBRARY_PORT", "3001"))

ROOT_ID = "root"
ROOT_NAME = "My Library"

# Notion credential. First file found is used when NOTION_API_KEY is unset.
NOTION_TOKEN_FILES: list[Path] = [
    Path("~/.config/library-sanctum/notion-token.txt").expanduser(),
    Path("~/.config/secret/notion-token.txt").expanduser(),
]
NOTION_API_BASE = "https://api.notion.com/v1"
NOTION_VERSION = "2022-06-28"

# Gemini credential. First file found is used when no env var is set.
GEMINI_TOKEN_FILES: list[Path] = [
    Path("~/.config/library-sanctum/gemini-key.txt").expanduser(),
    Path("~/.config/secret/gemini-key.txt").expanduser(),
]
GEMINI_API_BASE = "https://generativelanguage.googleapis.com/v1beta"
GEMINI_MODEL: str = os.environ.get("LIBRARY_GEMINI_MODEL", "gemini-2.5-flash")


def read_secret(env_vars: list[str], token_files: list[Path]) -> str | None:
    """Return the first credential found in env_vars, then token_files."""
    for name in env_vars:
        value = os.environ.get(name, "").strip()
        if value:
            return value
    for token_path in token_files:
        try:
            value = token_path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            continue
        if value:
            return value
    return None


def resolve_data_directory(data_dir: Path | None = None) -> Path:
    """Return the server data directory, creating it if needed."""
    path = (data_dir or DATA_DIR).expanduser()
    path.mkdir(parents=True, exist_ok=True)
    return path
