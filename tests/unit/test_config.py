"""Tests for configuration helpers."""

from pathlib import Path

import pytest

from library_sanctum.config import read_secret, resolve_data_directory


def test_read_secret_prefers_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    token = tmp_path / "token.txt"
    token.write_text("from-file\n")
    monkeypatch.setenv("LIBRARY_TEST_KEY", " from-env ")
    assert read_secret(["LIBRARY_TEST_KEY"], [token]) == "from-env"


def test_read_secret_uses_first_existing_file(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.delenv("LIBRARY_TEST_KEY", raising=False)
    token = tmp_path / "token.txt"
    token.write_text("from-file\n")
    assert read_secret(["LIBRARY_TEST_KEY"], [tmp_path / "missing.txt", token]) == "from-file"
    assert read_secret(["LIBRARY_TEST_KEY"], [tmp_path / "missing.txt"]) is None


def test_resolve_data_directory_creates_it(tmp_path: Path) -> None:
    target = tmp_path / "a" / "b"
    assert resolve_data_directory(target) == target
    assert target.is_dir()
