"""Audit record of one synchronisation run."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .enums import FeedFormat, RunMode

if TYPE_CHECKING:
    from datetime import datetime

    from .enums import Category


@dataclass(slots=True, kw_only=True)
class SyncRun:
    started_at: datetime
    finished_at: datetime | None = None
    id: int | None = None
    source: str | None = None
    source_date: datetime | None = None
    format: FeedFormat = FeedFormat.FULL
    mode: RunMode = RunMode.MANUAL
    categories: frozenset[Category] = field(default_factory=frozenset)
    structure_ids: tuple[str, ...] = ()
    applied: bool = False
    added: int = 0
    changed: int = 0
    removed: int = 0
    error_count: int = 0
    exception: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.exception is None
