"""Run-level lease port."""

from __future__ import annotations

from typing import TYPE_CHECKING, Final, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Collection
    from datetime import timedelta

# lease key covering every structure; taken by runs without a structure list
# and by runs touching shared reference data
ALL_STRUCTURES: Final[str] = "*"


@runtime_checkable
class ScopeLease(Protocol):
    """Mutual exclusion between runs over overlapping structure scopes."""

    def acquire(self, keys: Collection[str], *, owner: str, ttl: timedelta) -> None:
        """Take every key for ``owner`` or raise ``RunInProgressError``."""
        ...

    def release(self, owner: str) -> None: ...
