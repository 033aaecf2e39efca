"""Run request, run state machine and the per-run context shared by stages."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from logging import getLogger
from typing import TYPE_CHECKING, Final

from aafsync.domain.errors import IssueLog
from aafsync.domain.feed import FeedPerson, RecordNormalizer, SyntheticIds
from aafsync.domain.model import (
    PERSON_CATEGORIES,
    Category,
    FeedFormat,
    Grade,
    RunMode,
    Structure,
    Subject,
)
from aafsync.domain.ports import ALL_STRUCTURES
from aafsync.domain.reconciliation import GroupIndex, PersonIndex, PersonMatcher, Scope

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping
    from datetime import datetime

    from aafsync.domain.feed import CachedFeed
    from aafsync.domain.ports import DirectoryRepositories

    from .results import RunResult, StageStats

log = getLogger(__name__)


class RunState(StrEnum):
    IDLE = "idle"
    SCOPE_RESOLVED = "scope_resolved"
    REFERENCE_SYNC = "reference_sync"
    PERSON_SYNC = "person_sync"
    GARBAGE_COLLECT = "garbage_collect"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


_TRANSITIONS: Final[Mapping[RunState, frozenset[RunState]]] = {
    RunState.IDLE: frozenset({RunState.SCOPE_RESOLVED, RunState.ROLLED_BACK}),
    RunState.SCOPE_RESOLVED: frozenset(
        {
            RunState.REFERENCE_SYNC,
            RunState.PERSON_SYNC,
            RunState.COMMITTED,
            RunState.ROLLED_BACK,
        }
    ),
    RunState.REFERENCE_SYNC: frozenset(
        {
            RunState.REFERENCE_SYNC,
            RunState.PERSON_SYNC,
            RunState.COMMITTED,
            RunState.ROLLED_BACK,
        }
    ),
    RunState.PERSON_SYNC: frozenset(
        {
            RunState.PERSON_SYNC,
            RunState.GARBAGE_COLLECT,
            RunState.COMMITTED,
            RunState.ROLLED_BACK,
        }
    ),
    RunState.GARBAGE_COLLECT: frozenset({RunState.COMMITTED, RunState.ROLLED_BACK}),
    RunState.COMMITTED: frozenset(),
    RunState.ROLLED_BACK: frozenset(),
}


class InvalidTransitionError(RuntimeError):
    """Raised when a stage runs out of order."""


@dataclass(frozen=True, slots=True, kw_only=True)
class SyncRequest:
    """What a run should synchronise.

    ``apply=False`` computes the diff and rolls back (dry run). ``structure_ids``
    restricts the run to those structures; ``None`` means every structure
    flagged for synchronisation.
    """

    categories: frozenset[Category] = frozenset(Category)
    structure_ids: tuple[str, ...] | None = None
    apply: bool = False
    format: FeedFormat = FeedFormat.FULL
    mode: RunMode = RunMode.MANUAL
    source: str | None = None
    source_date: datetime | None = None

    @property
    def person_categories(self) -> frozenset[Category]:
        return frozenset(category for category in PERSON_CATEGORIES if category in self.categories)

    def wants(self, category: Category) -> bool:
        return category in self.categories

    def lease_keys(self) -> tuple[str, ...]:
        """Return the lease keys covering this run's scope.

        Subjects and grades are shared by every structure, so runs touching them
        lock everything.
        """

        if (
            self.structure_ids is None
            or Category.SUBJECT in self.categories
            or Category.GRADE in self.categories
        ):
            return (ALL_STRUCTURES,)
        return tuple(sorted(set(self.structure_ids)))


@dataclass(slots=True, kw_only=True)
class RunContext:
    """Mutable state of one run, discarded when the run ends."""

    request: SyncRequest
    feed: CachedFeed
    repositories: DirectoryRepositories
    result: RunResult
    now: datetime
    issues: IssueLog = field(default_factory=IssueLog)
    ids: SyntheticIds = field(default_factory=SyntheticIds)
    state: RunState = RunState.IDLE
    scope: Scope = field(default_factory=Scope)
    target_structures: list[Structure] = field(default_factory=list)
    groups: GroupIndex = field(default_factory=GroupIndex)
    seen: set[str] = field(default_factory=set)
    feed_subjects: list[Subject] = field(default_factory=list)
    feed_grades: list[Grade] = field(default_factory=list)
    guardian_ids: dict[str, str] = field(default_factory=dict)
    normalizer: RecordNormalizer = field(init=False)
    _feed_persons: dict[Category, list[FeedPerson]] = field(default_factory=dict)
    _person_index: PersonIndex | None = None
    _matcher: PersonMatcher | None = None
    _subject_ids: dict[str, str] | None = None
    _grade_ids: dict[str, str] | None = None
    _guardian_scope: dict[str, set[str]] | None = None

    def __post_init__(self) -> None:
        self.normalizer = RecordNormalizer(ids=self.ids, issues=self.issues)

    @property
    def apply(self) -> bool:
        return self.request.apply

    @property
    def allow_remove(self) -> bool:
        return self.request.format is FeedFormat.FULL

    def advance(self, state: RunState) -> None:
        if state not in _TRANSITIONS[self.state]:
            raise InvalidTransitionError(f"Cannot move run from {self.state} to {state}")
        log.debug("Run state %s -> %s", self.state, state)
        self.state = state

    def stats_for(self, stage: str) -> StageStats:
        return self.result.stats_for(stage)

    # Feed side -------------------------------------------------------------------

    def feed_persons(self, category: Category) -> list[FeedPerson]:
        """Normalized persons of ``category``, computed once per run.

        Guardians are always normalized before students so parent links can be
        checked against them.
        """

        cached = self._feed_persons.get(category)
        if cached is None:
            if category is Category.STUDENT:
                self.feed_persons(Category.GUARDIAN)
            records = self.feed.records(category)
            cached = [
                entity
                for entity in self.normalizer.normalize_all(records, category)
                if isinstance(entity, FeedPerson)
            ]
            self._feed_persons[category] = cached
        return cached

    def guardian_scope(self) -> dict[str, set[str]]:
        """Guardian feed id -> in-scope structures of their linked students."""

        if self._guardian_scope is None:
            scope: dict[str, set[str]] = {}
            for student in self.feed_persons(Category.STUDENT):
                structures = self.resolve_structures(
                    claim.structure_external_id for claim in student.profile_claims
                )
                if not structures:
                    continue
                for link in student.link_claims:
                    scope.setdefault(link.guardian_external_id, set()).update(structures)
            self._guardian_scope = scope
        return self._guardian_scope

    def resolve_structures(self, external_ids: Iterable[str]) -> set[str]:
        resolved: set[str] = set()
        for external_id in external_ids:
            structure_id = self.scope.resolve(external_id)
            if structure_id is not None:
                resolved.add(structure_id)
        return resolved

    # Target side -----------------------------------------------------------------

    def person_index(self) -> PersonIndex:
        if self._person_index is None:
            self._person_index = PersonIndex(self.repositories.persons.load())
        return self._person_index

    def matcher(self) -> PersonMatcher:
        if self._matcher is None:
            self._matcher = PersonMatcher(self.person_index(), self.issues)
        return self._matcher

    def reload_structures(self) -> None:
        self.target_structures = self.repositories.structures.load()
        self.groups = GroupIndex(
            structure
            for structure in self.target_structures
            if structure.id in self.scope.structure_ids
        )

    def subject_ids(self) -> dict[str, str]:
        """Subject code (external id or id) -> stored or pending subject id."""

        if self._subject_ids is None:
            self._subject_ids = _reference_ids(
                self.repositories.subjects.load(), [] if self.apply else self.feed_subjects
            )
        return self._subject_ids

    def grade_ids(self) -> dict[str, str]:
        if self._grade_ids is None:
            self._grade_ids = _reference_ids(
                self.repositories.grades.load(), [] if self.apply else self.feed_grades
            )
        return self._grade_ids

    def managed_group_ids(self) -> frozenset[int]:
        return self.groups.group_ids_in(self.scope.structure_ids)


def _reference_ids(
    stored: Iterable[Subject | Grade], pending: Iterable[Subject | Grade]
) -> dict[str, str]:
    ids: dict[str, str] = {}
    for item in stored:
        ids[item.id] = item.id
        if item.external_id:
            ids.setdefault(item.external_id, item.id)
    for item in pending:
        ids.setdefault(item.external_id or item.id, item.id)
    return ids
