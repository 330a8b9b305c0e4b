"""Filesystem and content-type helpers shared across server modules."""

import mimetypes
import os
from pathlib import Path


def get_content_type(file_path: Path) -> str:
    content_type, _encoding = mimetypes.guess_type(file_path.name)
    return content_type or "application/octet-stream"


def path_exists(path: str) -> bool:
    """Return True when a status query for ``path`` succeeds.

    Every failure is reported as non-existence: missing files, permission
    errors, I/O errors and paths the OS rejects outright (embedded NUL).
    """
    try:
        os.stat(path)
    except (OSError, ValueError):
        return False
    return True


def local_path(root: str | os.PathLike[str], decoded_path: str) -> str:
    """Join the serving root and a decoded request path by concatenation."""
    return os.fspath(root).rstrip("/") + decoded_path


def resolve_under_root(root: str | os.PathLike[str], decoded_path: str) -> Path | None:
    """Resolve a decoded request path inside ``root`` or return None if it escapes."""
    serve_root = Path(root).resolve()
    try:
        candidate = (serve_root / decoded_path.lstrip("/")).resolve()
    except (OSError, ValueError, RuntimeError):
        return None

    try:
        candidate.relative_to(serve_root)
    except ValueError:
        return None

    return candidate
