"""Unit tests for filesystem helpers."""

import errno
import os
from pathlib import Path

import pytest

from utils import local_path, path_exists, resolve_under_root


def test_path_exists_for_files_and_directories(tmp_path: Path) -> None:
    (tmp_path / "game.wasm.br").write_bytes(b"x")

    assert path_exists(str(tmp_path / "game.wasm.br")) is True
    assert path_exists(str(tmp_path)) is True
    assert path_exists(str(tmp_path / "game.wasm.gz")) is False


@pytest.mark.parametrize(
    "error",
    [
        PermissionError(errno.EACCES, "Permission denied"),
        OSError(errno.EIO, "Input/output error"),
    ],
)
def test_path_exists_treats_any_stat_failure_as_missing(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
    error: OSError,
) -> None:
    (tmp_path / "game.wasm.br").write_bytes(b"x")

    def failing_stat(*_args, **_kwargs):
        raise error

    monkeypatch.setattr(os, "stat", failing_stat)

    assert path_exists(str(tmp_path / "game.wasm.br")) is False


def test_path_exists_rejects_embedded_nul(tmp_path: Path) -> None:
    assert path_exists(str(tmp_path) + "/bad\x00name") is False


def test_local_path_concatenates_root_and_request_path() -> None:
    assert local_path(".", "/Build/game.wasm") == "./Build/game.wasm"
    assert local_path("/srv/www/", "/game.data") == "/srv/www/game.data"
    assert local_path(Path("/srv/www"), "/") == "/srv/www/"


def test_resolve_under_root_blocks_escape(tmp_path: Path) -> None:
    root = tmp_path / "public"
    root.mkdir()

    assert resolve_under_root(root, "/game.data") == root.resolve() / "game.data"
    assert resolve_under_root(root, "/../secret.txt") is None
