"""Public interface for the zip/XML feed adapter."""

from __future__ import annotations

from .archive import (
    FeedArchive,
    ZipFeedReader,
    describe_archive,
    infer_format,
    list_archives,
    parse_document,
)
from .schema import FeedRecordPayload

__all__ = [
    "FeedArchive",
    "FeedRecordPayload",
    "ZipFeedReader",
    "describe_archive",
    "infer_format",
    "list_archives",
    "parse_document",
]
