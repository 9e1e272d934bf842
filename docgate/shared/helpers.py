"""Shared helper functions."""

import re
from pathlib import Path
from urllib.parse import quote

import httpx


_TOKEN_SAFE_FILENAME = re.compile(r"^[A-Za-z0-9._\-]+$")


def get_file_extension(filename: str) -> str:
    """Get file extension from filename, lowercase with the leading dot."""
    return Path(filename).suffix.lower()


def strip_extension(filename: str) -> str:
    """Drop the final extension; names without one (or dot-files) are returned unchanged."""
    last_dot = filename.rfind(".")
    if last_dot < 1:
        return filename
    return filename[:last_dot]


def bytes_to_mb(size_bytes: int) -> float:
    """Convert bytes to megabytes."""
    return round(size_bytes / (1024 * 1024), 2)


def validate_file_size(size_bytes: int, max_size_mb: int = 100) -> bool:
    """Check if file size is within allowed limit."""
    return size_bytes <= max_size_mb * 1024 * 1024


def attachment_disposition(filename: str) -> str:
    """Build a Content-Disposition header value for a download."""
    if _TOKEN_SAFE_FILENAME.match(filename):
        return f"attachment; filename={filename}"
    return f"attachment; filename*=utf-8''{quote(filename, safe='')}"


async def read_limited(response: httpx.Response, limit: int) -> bytes:
    """Read a streamed response body, refusing to buffer more than ``limit`` bytes."""
    chunks = []
    received = 0
    async for chunk in response.aiter_bytes():
        received += len(chunk)
        if received > limit:
            raise ValueError(f"response body exceeds {limit} bytes")
        chunks.append(chunk)
    return b"".join(chunks)
