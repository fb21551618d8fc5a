"""Parsers and serializers for the game's text configuration formats."""

from .multirecord import MultiRecordDocument, parse_records, serialize_records
from .sectioned import ConfigDocument, Repeated, Scalar, parse_document, serialize_document

__all__ = [
    "ConfigDocument",
    "MultiRecordDocument",
    "Repeated",
    "Scalar",
    "parse_document",
    "parse_records",
    "serialize_document",
    "serialize_records",
]
