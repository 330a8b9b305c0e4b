"""Serve precompressed ``.br``/``.gz`` siblings in place of the requested path.

Requests are checked in a fixed order:

1. the path names an existing ``.br`` file: serve it as-is with
   ``Content-Encoding: br``;
2. the same for ``.gz`` and ``gzip``;
3. a ``.unityweb`` path is looked up by its stem when the stem has a
   compressed sibling;
4. ``<path>.br`` exists: serve that file instead;
5. ``<path>.gz`` exists: serve that file instead;
6. otherwise hand the request to the file responder untouched, with
   directory listing enabled.

Explicit requests (1, 2) take their Content-Type from the suffix left after
dropping the encoding suffix. Fallbacks (4, 5) look for ``.wasm``, ``.js`` or
``.data`` anywhere in the original request path. Paths that escape the
serving root go straight to rule 6 without any sibling lookup.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

from handlers.file_responder import serve_file
from request import HTTPRequest
from response import HTTPResponse
from utils import local_path, path_exists, resolve_under_root

logger = logging.getLogger(__name__)

ENCODING_SUFFIXES: tuple[tuple[str, str], ...] = (
    (".br", "br"),
    (".gz", "gzip"),
)
LEGACY_ALIAS_SUFFIX = ".unityweb"
CONTENT_TYPES: tuple[tuple[str, str], ...] = (
    (".wasm", "application/wasm"),
    (".js", "application/javascript"),
    (".data", "application/octet-stream"),
)

RULE_EXPLICIT = "explicit"
RULE_FALLBACK = "fallback"
RULE_DEFAULT = "default"


@dataclass(frozen=True, slots=True)
class Resolution:
    """Which request to hand to the file responder and what to overlay on its response."""

    request: HTTPRequest
    rule: str
    show_dir_listing: bool = False
    content_encoding: str | None = None
    content_type: str | None = None

    @property
    def header_overlay(self) -> dict[str, str]:
        overlay: dict[str, str] = {}
        if self.content_encoding is not None:
            overlay["Content-Encoding"] = self.content_encoding
        if self.content_type is not None:
            overlay["Content-Type"] = self.content_type
        return overlay


def infer_content_type(path: str) -> str | None:
    for suffix, content_type in CONTENT_TYPES:
        if path.endswith(suffix):
            return content_type
    return None


def sniff_content_type(path: str) -> str | None:
    for marker, content_type in CONTENT_TYPES:
        if marker in path:
            return content_type
    return None


def resolve(request: HTTPRequest, root: str | os.PathLike[str]) -> Resolution:
    """Decide which file backs ``request``. Reads file status only, never writes.

    A path that escapes ``root`` is not looked up at all and takes the default
    rule, so the file responder refuses it without any overlay.
    """
    decoded_path = request.decoded_path
    if resolve_under_root(root, decoded_path) is None:
        return _default(request)

    requested = local_path(root, decoded_path)

    for suffix, encoding in ENCODING_SUFFIXES:
        if decoded_path.endswith(suffix) and path_exists(requested):
            resolution = Resolution(
                request=request,
                rule=RULE_EXPLICIT,
                content_encoding=encoding,
                content_type=infer_content_type(request.path[: -len(suffix)]),
            )
            _log_resolution(request, resolution)
            return resolution

    if decoded_path.endswith(LEGACY_ALIAS_SUFFIX):
        stem = decoded_path[: -len(LEGACY_ALIAS_SUFFIX)]
        stem_local = local_path(root, stem)
        for suffix, encoding in ENCODING_SUFFIXES:
            # The first stem sibling found is also the one the fallback would pick.
            if path_exists(stem_local + suffix):
                return _fallback(request, stem + suffix, encoding)

    for suffix, encoding in ENCODING_SUFFIXES:
        if path_exists(requested + suffix):
            return _fallback(request, decoded_path + suffix, encoding)

    return _default(request)


def serve_precompressed(request: HTTPRequest, root: str | os.PathLike[str]) -> HTTPResponse:
    """Resolve ``request``, delegate to the file responder and overlay the headers."""
    resolution = resolve(request, root)
    response = serve_file(
        resolution.request,
        root,
        show_dir_listing=resolution.show_dir_listing,
    )
    response.headers.update(resolution.header_overlay)
    return response


def _fallback(request: HTTPRequest, backing_path: str, encoding: str) -> Resolution:
    resolution = Resolution(
        request=request.with_path(backing_path),
        rule=RULE_FALLBACK,
        content_encoding=encoding,
        content_type=sniff_content_type(request.path),
    )
    _log_resolution(request, resolution)
    return resolution


def _default(request: HTTPRequest) -> Resolution:
    resolution = Resolution(request=request, rule=RULE_DEFAULT, show_dir_listing=True)
    _log_resolution(request, resolution)
    return resolution


def _log_resolution(request: HTTPRequest, resolution: Resolution) -> None:
    logger.debug(
        "resolved path=%s rule=%s backing=%s encoding=%s content_type=%s",
        request.path,
        resolution.rule,
        resolution.request.path,
        resolution.content_encoding or "-",
        resolution.content_type or "-",
    )
