"""Run results, per-stage statistics and their JSON rendering."""

from __future__ import annotations

from collections.abc import Mapping
from contextlib import contextmanager
from dataclasses import dataclass, field, fields, is_dataclass
from datetime import date, datetime
from enum import Enum
from time import perf_counter
from typing import TYPE_CHECKING, Literal

from aafsync.domain.model import Category

if TYPE_CHECKING:
    from collections.abc import Iterator

    from aafsync.domain.errors import SyncIssue
    from aafsync.domain.model import Grade, Subject
    from aafsync.domain.reconciliation import (
        GarbageDiff,
        PersonsDiff,
        ReferenceDiff,
        StructuresDiff,
    )

    from .context import SyncRequest

GARBAGE_STAGE = "garbage"

type Phase = Literal["load", "diff", "apply"]


@dataclass(slots=True, kw_only=True)
class StageStats:
    """Counts and timings (seconds) of one stage."""

    count: int = 0
    load: float = 0.0
    diff: float = 0.0
    apply: float = 0.0
    added: int = 0
    changed: int = 0
    removed: int = 0

    def merge(self, other: StageStats) -> None:
        self.count += other.count
        self.load += other.load
        self.diff += other.diff
        self.apply += other.apply
        self.added += other.added
        self.changed += other.changed
        self.removed += other.removed


@contextmanager
def timed(stats: StageStats, phase: Phase) -> Iterator[None]:
    start = perf_counter()
    try:
        yield
    finally:
        setattr(stats, phase, getattr(stats, phase) + perf_counter() - start)


@dataclass(slots=True, kw_only=True)
class RunResult:
    """Outcome of one run.

    A diff left to ``None`` means its stage was not requested; an empty diff
    means the stage ran and found nothing to do.
    """

    request: SyncRequest
    started_at: datetime
    finished_at: datetime | None = None
    applied: bool = False
    scope: tuple[str, ...] = ()
    subjects: ReferenceDiff[Subject] | None = None
    grades: ReferenceDiff[Grade] | None = None
    structures: StructuresDiff | None = None
    staff: PersonsDiff | None = None
    guardians: PersonsDiff | None = None
    students: PersonsDiff | None = None
    garbage: GarbageDiff | None = None
    stats: dict[str, StageStats] = field(default_factory=dict)
    issues: list[SyncIssue] = field(default_factory=list)

    @property
    def errors(self) -> list[str]:
        return [str(issue) for issue in self.issues]

    @property
    def total(self) -> StageStats:
        total = StageStats()
        for stats in self.stats.values():
            total.merge(stats)
        return total

    def stats_for(self, stage: str) -> StageStats:
        stats = self.stats.get(stage)
        if stats is None:
            stats = self.stats[stage] = StageStats()
        return stats

    def set_persons(self, diff: PersonsDiff) -> None:
        if diff.category is Category.STAFF:
            self.staff = diff
        elif diff.category is Category.GUARDIAN:
            self.guardians = diff
        else:
            self.students = diff

    def diff_for(
        self, category: Category
    ) -> ReferenceDiff[Subject] | ReferenceDiff[Grade] | StructuresDiff | PersonsDiff | None:
        return {
            Category.SUBJECT: self.subjects,
            Category.GRADE: self.grades,
            Category.STRUCTURE: self.structures,
            Category.STAFF: self.staff,
            Category.GUARDIAN: self.guardians,
            Category.STUDENT: self.students,
        }[category]

    def to_dict(self) -> dict[str, object]:
        payload = {
            "request": to_jsonable(self.request),
            "started_at": to_jsonable(self.started_at),
            "finished_at": to_jsonable(self.finished_at),
            "applied": self.applied,
            "scope": list(self.scope),
            "diff": {
                category.value: to_jsonable(self.diff_for(category)) for category in Category
            },
            "garbage": to_jsonable(self.garbage),
            "stats": {stage: to_jsonable(stats) for stage, stats in self.stats.items()},
            "total": to_jsonable(self.total),
            "errors": self.errors,
        }
        return payload


def to_jsonable(value: object) -> object:
    """Convert dataclasses, enums, dates and collections to JSON-ready values."""

    if value is None or isinstance(value, bool | int | float | str):
        return value
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime | date):
        return value.isoformat()
    if is_dataclass(value) and not isinstance(value, type):
        return {item.name: to_jsonable(getattr(value, item.name)) for item in fields(value)}
    if isinstance(value, Mapping):
        return {str(key): to_jsonable(item) for key, item in value.items()}
    if isinstance(value, set | frozenset):
        items = [to_jsonable(item) for item in value]
        return sorted(items, key=repr)
    if isinstance(value, list | tuple):
        return [to_jsonable(item) for item in value]
    return str(value)
