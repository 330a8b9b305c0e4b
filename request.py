"""HTTP request model, parser and request-path decoding."""

import re
from dataclasses import dataclass, field
from urllib.parse import parse_qs, quote, unquote, urlsplit

from config import MAX_BODY_BYTES, MAX_TARGET_LENGTH

ALLOWED_HTTP_VERSIONS = {"HTTP/1.1", "HTTP/1.0"}
KNOWN_METHODS = {
    "GET",
    "HEAD",
    "POST",
    "PUT",
    "DELETE",
    "OPTIONS",
    "PATCH",
    "TRACE",
    "CONNECT",
}

_MALFORMED_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")


class HTTPRequestParseError(ValueError):
    """Request parse error carrying an HTTP status code."""

    def __init__(self, message: str, *, status_code: int = 400) -> None:
        super().__init__(message)
        self.status_code = status_code


class PathDecodeError(ValueError):
    """Raised when a request path is not valid percent-encoded UTF-8."""


def decode_request_path(path: str) -> str:
    """Percent-decode a request path, failing on malformed escapes."""
    if _MALFORMED_ESCAPE.search(path):
        raise PathDecodeError(f"Malformed percent-escape in path: {path!r}")
    try:
        return unquote(path, encoding="utf-8", errors="strict")
    except UnicodeDecodeError as exc:
        raise PathDecodeError(f"Path is not valid UTF-8: {path!r}") from exc


@dataclass(slots=True)
class HTTPRequest:
    method: str
    path: str
    http_version: str
    raw_target: str = "/"
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    query_params: dict[str, list[str]] = field(default_factory=dict)
    keep_alive: bool = False

    @property
    def decoded_path(self) -> str:
        return decode_request_path(self.path)

    def with_path(self, decoded_path: str) -> "HTTPRequest":
        """Copy this request onto another path, keeping method, headers and body.

        The query string is not carried over.
        """
        wire_path = quote(decoded_path)
        return HTTPRequest(
            method=self.method,
            path=wire_path,
            http_version=self.http_version,
            raw_target=wire_path,
            headers=dict(self.headers),
            body=self.body,
            query_params={},
            keep_alive=self.keep_alive,
        )

    @classmethod
    def from_bytes(cls, raw: bytes) -> "HTTPRequest":
        """Parse raw HTTP request bytes into a structured request object."""
        try:
            header_bytes, body = raw.split(b"\r\n\r\n", 1)
        except ValueError as exc:
            raise HTTPRequestParseError("Missing CRLF CRLF request separator") from exc

        lines = header_bytes.decode("iso-8859-1").split("\r\n")
        if not lines or not lines[0]:
            raise HTTPRequestParseError("Missing request line")

        request_line = lines[0].split(" ")
        if len(request_line) != 3:
            raise HTTPRequestParseError("Invalid request line")

        method, target, http_version = request_line
        if not method or not target or not http_version:
            raise HTTPRequestParseError("Request line contains empty tokens")

        method = method.upper()
        if method not in KNOWN_METHODS:
            raise HTTPRequestParseError("Method not implemented", status_code=501)
        if http_version not in ALLOWED_HTTP_VERSIONS:
            raise HTTPRequestParseError("Unsupported HTTP version", status_code=505)
        if len(target) > MAX_TARGET_LENGTH:
            raise HTTPRequestParseError("Request target too long", status_code=414)

        if target.startswith("/"):
            # Origin form: "//name" is a path here, not a network location.
            path, _sep, query = target.partition("?")
        else:
            split_target = urlsplit(target)
            path, query = split_target.path, split_target.query
        headers = _parse_header_lines(lines[1:])

        if http_version == "HTTP/1.1" and "host" not in headers:
            raise HTTPRequestParseError("Host header required for HTTP/1.1")
        if "transfer-encoding" in headers:
            raise HTTPRequestParseError(
                "Transfer-Encoding on requests is not supported",
                status_code=501,
            )

        if "content-length" in headers:
            try:
                expected_length = int(headers["content-length"])
            except ValueError as exc:
                raise HTTPRequestParseError("Invalid Content-Length") from exc
            if expected_length < 0:
                raise HTTPRequestParseError("Negative Content-Length is invalid")
            if len(body) != expected_length:
                raise HTTPRequestParseError("Body length does not match Content-Length")

        if len(body) > MAX_BODY_BYTES:
            raise HTTPRequestParseError("Body exceeded MAX_BODY_BYTES", status_code=413)

        return cls(
            method=method,
            path=path or "/",
            http_version=http_version,
            raw_target=target,
            headers=headers,
            body=body,
            query_params=parse_qs(query, keep_blank_values=True),
            keep_alive=_is_keep_alive(http_version, headers.get("connection", "")),
        )


def _parse_header_lines(lines: list[str]) -> dict[str, str]:
    headers: dict[str, str] = {}
    for line in lines:
        if not line:
            continue
        if ":" not in line:
            raise HTTPRequestParseError("Malformed header line")
        name, value = line.split(":", 1)
        header_name = name.strip().lower()
        if not header_name:
            raise HTTPRequestParseError("Header name cannot be empty")
        headers[header_name] = value.strip()
    return headers


def _is_keep_alive(http_version: str, connection_header: str) -> bool:
    token = connection_header.lower()
    if http_version == "HTTP/1.1":
        return "close" not in token
    return "keep-alive" in token
