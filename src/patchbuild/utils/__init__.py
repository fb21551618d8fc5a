"""Low-level helpers shared across patchbuild components."""

from .hashing import file_hash, format_bytes, format_offset, read_range, verify_range

__all__ = ["file_hash", "format_bytes", "format_offset", "read_range", "verify_range"]
