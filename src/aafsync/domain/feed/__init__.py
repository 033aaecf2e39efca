"""Feed-side records, normalization and per-run caches."""

from __future__ import annotations

from .cache import CachedFeed
from .ids import SyntheticIds
from .normalize import (
    FeedEntity,
    FeedPerson,
    GroupClaim,
    LinkClaim,
    ProfileClaim,
    RecordNormalizer,
)
from .records import CATEGORY_PATTERNS, RawRecord

__all__ = [
    "CATEGORY_PATTERNS",
    "CachedFeed",
    "FeedEntity",
    "FeedPerson",
    "GroupClaim",
    "LinkClaim",
    "ProfileClaim",
    "RawRecord",
    "RecordNormalizer",
    "SyntheticIds",
]
