"""Per-run cache over a feed reader."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from .records import CATEGORY_PATTERNS

if TYPE_CHECKING:
    from aafsync.domain.model import Category
    from aafsync.domain.ports.feed import FeedReader

    from .records import RawRecord

log = getLogger(__name__)


class CachedFeed:
    """Read each category file family at most once per run.

    Several stages need the same documents (guardian scope is derived from the
    student file, for instance). The cache lives on the run context and is
    discarded with it.
    """

    def __init__(self, reader: FeedReader) -> None:
        self._reader = reader
        self._records: dict[Category, tuple[RawRecord, ...]] = {}

    def records(self, category: Category) -> tuple[RawRecord, ...]:
        cached = self._records.get(category)
        if cached is None:
            cached = tuple(self._reader.read(CATEGORY_PATTERNS[category]))
            log.info("Read %s %s records from feed", len(cached), category.value)
            self._records[category] = cached
        return cached
