"""Content digests and exact byte-range comparisons.

Manifests identify files by their MD5 digest, lowercase hex. MD5 is kept for
compatibility with manifests already consumed by the game launcher; it is not
used as a security boundary.
"""

from __future__ import annotations

import hashlib
from pathlib import Path
from typing import Iterable

_CHUNK_SIZE = 1024 * 1024


def file_hash(path: Path | str) -> str:
    """Return the lowercase hex MD5 digest of ``path``."""
    digest = hashlib.md5()
    with Path(path).open("rb") as handle:
        for chunk in iter(lambda: handle.read(_CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


def read_range(path: Path | str, offset: int, length: int) -> bytes:
    """Read up to ``length`` bytes at ``offset``; short reads return fewer bytes."""
    with Path(path).open("rb") as handle:
        handle.seek(offset)
        return handle.read(length)


def verify_range(path: Path | str, offset: int, expected: bytes) -> bool:
    """Return ``True`` when the bytes at ``offset`` equal ``expected`` exactly."""
    if offset < 0:
        return False
    try:
        actual = read_range(path, offset, len(expected))
    except OSError:
        return False
    return actual == bytes(expected)


def format_offset(offset: int) -> str:
    """Render an offset the way manifests store it: ``0x`` plus eight hex digits."""
    return f"0x{offset:08x}"


def format_bytes(data: Iterable[int]) -> list[str]:
    """Render bytes as a list of ``0x``-prefixed lowercase hex pairs."""
    return [f"0x{value:02x}" for value in bytes(data)]


__all__ = ["file_hash", "format_bytes", "format_offset", "read_range", "verify_range"]
