"""Static file responder: files, directory listings, byte ranges and validators."""

from __future__ import annotations

import html
import os
import re
import stat
from dataclasses import dataclass
from email.utils import formatdate, parsedate_to_datetime
from pathlib import Path
from urllib.parse import quote, urlsplit

from request import HTTPRequest
from response import HTTPResponse
from utils import get_content_type, resolve_under_root

INDEX_FILE = "index.html"
SERVABLE_METHODS = frozenset({"GET", "HEAD"})

_RANGE_SPEC = re.compile(r"bytes=(\d*)-(\d*)", re.ASCII | re.IGNORECASE)


class RangeNotSatisfiableError(ValueError):
    """Raised when a well-formed byte range is reversed or starts past the end of the file."""


@dataclass(slots=True)
class ListingEntry:
    name: str
    is_dir: bool
    size: int


def serve_file(
    request: HTTPRequest,
    root: str | os.PathLike[str],
    *,
    show_dir_listing: bool = False,
) -> HTTPResponse:
    """Serve the file or directory named by the request path under ``root``."""
    if request.method not in SERVABLE_METHODS:
        return HTTPResponse(
            status_code=405,
            headers={"Allow": "GET, HEAD"},
            body="Method Not Allowed",
        )

    decoded_path = request.decoded_path
    target = resolve_under_root(root, decoded_path)
    if target is None:
        return HTTPResponse(status_code=403, body="Forbidden")

    try:
        target_stat = target.stat()
    except (OSError, ValueError):
        return HTTPResponse(status_code=404, body="Not Found")

    if stat.S_ISDIR(target_stat.st_mode):
        return _serve_directory(request, decoded_path, target, show_dir_listing)
    return _serve_regular_file(request, target, target_stat)


def parse_byte_range(range_header: str, size: int) -> tuple[int, int] | None:
    """Parse a single ``bytes=`` range into inclusive offsets.

    Returns None for headers that should be ignored (other units, multiple
    ranges, malformed specs).
    """
    match = _RANGE_SPEC.fullmatch(range_header.strip())
    if match is None:
        return None

    first, last = match.groups()
    if not first:
        if not last:
            return None
        suffix_length = int(last)
        if suffix_length == 0 or size == 0:
            raise RangeNotSatisfiableError(range_header)
        return max(0, size - suffix_length), size - 1

    start = int(first)
    end = int(last) if last else size - 1
    if end < start or start >= size:
        raise RangeNotSatisfiableError(range_header)
    return start, min(end, size - 1)


def _serve_directory(
    request: HTTPRequest,
    decoded_path: str,
    directory: Path,
    show_dir_listing: bool,
) -> HTTPResponse:
    if not request.path.endswith("/"):
        location = f"{request.path}/"
        query = urlsplit(request.raw_target).query
        if query:
            location = f"{location}?{query}"
        return HTTPResponse(
            status_code=301,
            headers={"Location": location},
            body="Moved Permanently",
        )

    index_path = directory / INDEX_FILE
    try:
        index_stat = index_path.stat()
    except OSError:
        index_stat = None
    if index_stat is not None and stat.S_ISREG(index_stat.st_mode):
        return _serve_regular_file(request, index_path, index_stat)

    if not show_dir_listing:
        return HTTPResponse(status_code=404, body="Not Found")
    return _render_listing(decoded_path, directory)


def _serve_regular_file(
    request: HTTPRequest,
    file_path: Path,
    file_stat: os.stat_result,
) -> HTTPResponse:
    etag = f'W/"{file_stat.st_mtime_ns:x}-{file_stat.st_size:x}"'
    validators = {
        "ETag": etag,
        "Last-Modified": formatdate(file_stat.st_mtime, usegmt=True),
    }
    if _is_not_modified(request, etag, file_stat.st_mtime):
        return HTTPResponse(status_code=304, headers=validators, body=b"")

    size = file_stat.st_size
    headers = {
        "Content-Type": get_content_type(file_path),
        "Accept-Ranges": "bytes",
        **validators,
    }

    range_header = request.headers.get("range")
    if range_header is not None:
        try:
            byte_range = parse_byte_range(range_header, size)
        except RangeNotSatisfiableError:
            return HTTPResponse(
                status_code=416,
                headers={"Content-Range": f"bytes */{size}", **validators},
                body="Range Not Satisfiable",
            )
        if byte_range is not None:
            start, end = byte_range
            headers["Content-Range"] = f"bytes {start}-{end}/{size}"
            return HTTPResponse(
                status_code=206,
                headers=headers,
                file_path=file_path,
                file_offset=start,
                file_length=end - start + 1,
            )

    return HTTPResponse(
        status_code=200,
        headers=headers,
        file_path=file_path,
        file_length=size,
    )


def _is_not_modified(request: HTTPRequest, etag: str, mtime: float) -> bool:
    if_none_match = request.headers.get("if-none-match")
    if if_none_match is not None:
        candidates = {token.strip() for token in if_none_match.split(",")}
        return "*" in candidates or etag in candidates

    if_modified_since = request.headers.get("if-modified-since")
    if if_modified_since is None:
        return False
    try:
        since_ts = parsedate_to_datetime(if_modified_since).timestamp()
    except (TypeError, ValueError, OverflowError):
        return False
    return int(mtime) <= int(since_ts)


def _render_listing(decoded_path: str, directory: Path) -> HTTPResponse:
    entries: list[ListingEntry] = []
    try:
        with os.scandir(directory) as scanner:
            for entry in scanner:
                if entry.name.startswith("."):
                    continue
                try:
                    is_dir = entry.is_dir()
                    size = 0 if is_dir else entry.stat().st_size
                except OSError:
                    continue
                entries.append(ListingEntry(name=entry.name, is_dir=is_dir, size=size))
    except OSError:
        return HTTPResponse(status_code=404, body="Not Found")

    entries.sort(key=lambda item: (not item.is_dir, item.name.lower()))

    rows = []
    if decoded_path != "/":
        rows.append('<li><a href="../">../</a></li>')
    for entry in entries:
        href = quote(entry.name) + ("/" if entry.is_dir else "")
        label = entry.name + ("/" if entry.is_dir else "")
        size_text = "-" if entry.is_dir else _format_size(entry.size)
        rows.append(
            f'<li><a href="{html.escape(href)}">{html.escape(label)}</a>'
            f" <span>{size_text}</span></li>"
        )

    title = html.escape(f"Index of {decoded_path}")
    body = (
        "<!DOCTYPE html>\n"
        f"<html><head><meta charset=\"utf-8\"><title>{title}</title></head>\n"
        f"<body><h1>{title}</h1>\n<ul>\n" + "\n".join(rows) + "\n</ul></body></html>\n"
    )
    return HTTPResponse(
        status_code=200,
        headers={"Content-Type": "text/html; charset=utf-8"},
        body=body,
    )


def _format_size(size: int) -> str:
    if size < 1024:
        return f"{size} B"
    value = size / 1024
    for unit in ("KB", "MB"):
        if value < 1024:
            return f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} GB"
