"""Feed reader port."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence

    from aafsync.domain.feed.records import RawRecord


@runtime_checkable
class FeedReader(Protocol):
    """Yield raw attribute records from documents whose name matches ``pattern``."""

    def read(self, pattern: str) -> Sequence[RawRecord]: ...
