"""Patch passes run by the package builder, in build order."""

from .archive import apply_archive_patches
from .binary import apply_binary_patches
from .config_merge import apply_document_patches, apply_record_patches

__all__ = [
    "apply_archive_patches",
    "apply_binary_patches",
    "apply_document_patches",
    "apply_record_patches",
]
