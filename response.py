"""HTTP response model and serializer."""

from dataclasses import dataclass, field
from email.utils import formatdate
from pathlib import Path

from config import SERVER_NAME

REASON_PHRASES: dict[int, str] = {
    200: "OK",
    206: "Partial Content",
    301: "Moved Permanently",
    304: "Not Modified",
    400: "Bad Request",
    403: "Forbidden",
    404: "Not Found",
    405: "Method Not Allowed",
    408: "Request Timeout",
    413: "Payload Too Large",
    414: "URI Too Long",
    416: "Range Not Satisfiable",
    431: "Request Header Fields Too Large",
    500: "Internal Server Error",
    501: "Not Implemented",
    503: "Service Unavailable",
    505: "HTTP Version Not Supported",
}


@dataclass(slots=True)
class PreparedResponse:
    head: bytes
    body: bytes | None = None
    file_path: Path | None = None
    file_offset: int = 0
    file_length: int = 0


@dataclass(slots=True)
class HTTPResponse:
    """A response with either an in-memory body or a slice of a file on disk.

    ``file_length`` defaults to the remainder of the file after ``file_offset``.
    """

    status_code: int
    reason_phrase: str | None = None
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes | str = b""
    file_path: Path | None = None
    file_offset: int = 0
    file_length: int | None = None
    content_length_override: int | None = None

    def __post_init__(self) -> None:
        if isinstance(self.body, str):
            self.body = self.body.encode("utf-8")
        if self.file_path is not None and self.body:
            raise ValueError("Response cannot set both body and file_path")

    def body_length(self) -> int:
        if self.file_path is None:
            return len(self.body)
        if self.file_length is not None:
            return self.file_length
        return max(0, self.file_path.stat().st_size - self.file_offset)

    def to_bytes(self) -> bytes:
        """Serialize the response into HTTP/1.1 wire format bytes."""
        prepared = prepare_response(self)
        payload = bytearray(prepared.head)
        if prepared.body is not None:
            payload.extend(prepared.body)
        elif prepared.file_path is not None:
            with prepared.file_path.open("rb") as file_obj:
                file_obj.seek(prepared.file_offset)
                payload.extend(file_obj.read(prepared.file_length))
        return bytes(payload)


def prepare_response(response: HTTPResponse) -> PreparedResponse:
    reason = response.reason_phrase or REASON_PHRASES.get(response.status_code, "Unknown")
    headers = dict(response.headers)
    headers.setdefault("Date", formatdate(timeval=None, localtime=False, usegmt=True))
    headers.setdefault("Server", SERVER_NAME)
    headers.setdefault("Content-Type", "text/plain; charset=utf-8")

    content_length = response.content_length_override
    if content_length is None:
        content_length = response.body_length()
    headers["Content-Length"] = str(content_length)

    header_lines = [f"HTTP/1.1 {response.status_code} {reason}"]
    header_lines.extend(f"{key}: {value}" for key, value in headers.items())
    head = "\r\n".join(header_lines).encode("iso-8859-1") + b"\r\n\r\n"

    if response.file_path is not None:
        return PreparedResponse(
            head=head,
            file_path=response.file_path,
            file_offset=response.file_offset,
            file_length=response.body_length(),
        )
    return PreparedResponse(head=head, body=response.body)
