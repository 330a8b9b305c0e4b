"""Unit tests for the static file responder."""

from email.utils import formatdate
from pathlib import Path

import pytest

from handlers.file_responder import RangeNotSatisfiableError, parse_byte_range, serve_file
from request import HTTPRequest


def _build_request(
    path: str,
    *,
    method: str = "GET",
    headers: dict[str, str] | None = None,
    raw_target: str | None = None,
) -> HTTPRequest:
    request_headers = {"host": "localhost"}
    request_headers.update(headers or {})
    return HTTPRequest(
        method=method,
        path=path,
        http_version="HTTP/1.1",
        raw_target=raw_target or path,
        headers=request_headers,
        body=b"",
        query_params={},
    )


@pytest.fixture
def serve_root(tmp_path: Path) -> Path:
    (tmp_path / "index.html").write_text("<h1>home</h1>", encoding="utf-8")
    (tmp_path / "game.data").write_bytes(b"0123456789")
    (tmp_path / "Build").mkdir()
    (tmp_path / "Build" / "game.wasm.br").write_bytes(b"brotli")
    (tmp_path / "Build" / ".hidden").write_bytes(b"secret")
    (tmp_path / "Build" / "<b>.txt").write_bytes(b"x")
    (tmp_path / "Build" / "Assets").mkdir()
    return tmp_path


def test_serves_regular_file_with_validators(serve_root: Path) -> None:
    response = serve_file(_build_request("/game.data"), serve_root)

    assert response.status_code == 200
    assert response.headers["Accept-Ranges"] == "bytes"
    assert response.headers["ETag"].startswith('W/"')
    assert "Last-Modified" in response.headers
    raw = response.to_bytes()
    assert b"Content-Length: 10\r\n" in raw
    assert raw.endswith(b"\r\n\r\n0123456789")


def test_html_file_uses_guessed_content_type(serve_root: Path) -> None:
    response = serve_file(_build_request("/index.html"), serve_root)

    assert response.headers["Content-Type"] == "text/html"


def test_missing_file_returns_404(serve_root: Path) -> None:
    response = serve_file(_build_request("/does-not-exist.css"), serve_root)

    assert response.status_code == 404


def test_directory_traversal_attempt_returns_403(serve_root: Path) -> None:
    response = serve_file(_build_request("/../outside.txt"), serve_root / "Build")

    assert response.status_code == 403


def test_non_read_methods_return_405(serve_root: Path) -> None:
    response = serve_file(_build_request("/game.data", method="POST"), serve_root)

    assert response.status_code == 405
    assert response.headers["Allow"] == "GET, HEAD"


def test_directory_without_trailing_slash_redirects(serve_root: Path) -> None:
    response = serve_file(
        _build_request("/Build", raw_target="/Build?v=2"),
        serve_root,
        show_dir_listing=True,
    )

    assert response.status_code == 301
    assert response.headers["Location"] == "/Build/?v=2"


def test_directory_index_html_is_served(serve_root: Path) -> None:
    response = serve_file(_build_request("/"), serve_root)

    assert response.status_code == 200
    assert response.file_path == (serve_root / "index.html").resolve()


def test_directory_without_listing_returns_404(serve_root: Path) -> None:
    response = serve_file(_build_request("/Build/"), serve_root)

    assert response.status_code == 404


def test_directory_listing_hides_dotfiles_and_escapes_names(serve_root: Path) -> None:
    response = serve_file(_build_request("/Build/"), serve_root, show_dir_listing=True)

    assert response.status_code == 200
    assert response.headers["Content-Type"] == "text/html; charset=utf-8"
    body = response.body.decode("utf-8")
    assert "Index of /Build/" in body
    assert 'href="../"' in body
    assert 'href="Assets/"' in body
    assert "game.wasm.br" in body
    assert "&lt;b&gt;.txt" in body
    assert ".hidden" not in body
    assert body.index("Assets/") < body.index("game.wasm.br")


def test_range_request_returns_partial_content(serve_root: Path) -> None:
    response = serve_file(
        _build_request("/game.data", headers={"range": "bytes=2-5"}),
        serve_root,
    )

    assert response.status_code == 206
    assert response.headers["Content-Range"] == "bytes 2-5/10"
    raw = response.to_bytes()
    assert b"Content-Length: 4\r\n" in raw
    assert raw.endswith(b"\r\n\r\n2345")


def test_suffix_range_returns_tail(serve_root: Path) -> None:
    response = serve_file(
        _build_request("/game.data", headers={"range": "bytes=-3"}),
        serve_root,
    )

    assert response.status_code == 206
    assert response.to_bytes().endswith(b"\r\n\r\n789")


def test_unsatisfiable_range_returns_416(serve_root: Path) -> None:
    response = serve_file(
        _build_request("/game.data", headers={"range": "bytes=50-"}),
        serve_root,
    )

    assert response.status_code == 416
    assert response.headers["Content-Range"] == "bytes */10"


def test_reversed_range_returns_416(serve_root: Path) -> None:
    response = serve_file(
        _build_request("/game.data", headers={"range": "bytes=5-3"}),
        serve_root,
    )

    assert response.status_code == 416
    assert response.headers["Content-Range"] == "bytes */10"
    assert response.file_path is None


def test_multiple_ranges_are_ignored(serve_root: Path) -> None:
    response = serve_file(
        _build_request("/game.data", headers={"range": "bytes=0-1,4-5"}),
        serve_root,
    )

    assert response.status_code == 200
    assert "Content-Range" not in response.headers


def test_if_none_match_returns_304(serve_root: Path) -> None:
    first = serve_file(_build_request("/game.data"), serve_root)
    etag = first.headers["ETag"]

    second = serve_file(
        _build_request("/game.data", headers={"if-none-match": etag}),
        serve_root,
    )

    assert second.status_code == 304
    assert second.body == b""
    assert second.headers["ETag"] == etag


def test_if_modified_since_returns_304(serve_root: Path) -> None:
    mtime = (serve_root / "game.data").stat().st_mtime
    since = formatdate(mtime + 60, usegmt=True)

    response = serve_file(
        _build_request("/game.data", headers={"if-modified-since": since}),
        serve_root,
    )

    assert response.status_code == 304


def test_stale_etag_serves_full_file(serve_root: Path) -> None:
    response = serve_file(
        _build_request("/game.data", headers={"if-none-match": 'W/"stale"'}),
        serve_root,
    )

    assert response.status_code == 200


@pytest.mark.parametrize(
    ("header", "expected"),
    [
        ("bytes=0-0", (0, 0)),
        ("bytes=3-", (3, 9)),
        ("bytes=5-100", (5, 9)),
        ("bytes=-4", (6, 9)),
        ("bytes=-40", (0, 9)),
        ("items=0-1", None),
        ("bytes=-", None),
        ("bytes=1-2, 4-5", None),
    ],
)
def test_parse_byte_range(header: str, expected: tuple[int, int] | None) -> None:
    assert parse_byte_range(header, 10) == expected


@pytest.mark.parametrize("header", ["bytes=10-", "bytes=-0", "bytes=6-2"])
def test_parse_byte_range_rejects_out_of_bounds(header: str) -> None:
    with pytest.raises(RangeNotSatisfiableError):
        parse_byte_range(header, 10)
