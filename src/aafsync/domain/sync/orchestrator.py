"""Run orchestrator: sequence the synchronisation stages inside one transaction."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from logging import getLogger
from typing import TYPE_CHECKING, Protocol
from uuid import uuid4

from aafsync.domain.feed import CachedFeed
from aafsync.domain.model import PERSON_CATEGORIES, Category, FeedFormat, Structure
from aafsync.domain.model.audit import SyncRun
from aafsync.domain.reconciliation import resolve_scope

from .context import RunContext, RunState
from .garbage import GarbageStage
from .persons import PersonStage
from .reference import ReferenceStage
from .results import RunResult, timed
from .structures import StructureStage

if TYPE_CHECKING:
    from collections.abc import Sequence

    from aafsync.domain.ports import DirectoryUnitOfWork, FeedReader, ScopeLease

    from .context import SyncRequest

log = getLogger(__name__)

DEFAULT_LEASE_TTL = timedelta(hours=2)
SCOPE_STAGE = "scope"

UnitOfWorkFactory = Callable[[], "DirectoryUnitOfWork"]


class SyncStage(Protocol):
    """Contract implemented by each synchronisation stage."""

    @property
    def name(self) -> str: ...

    def run(self, context: RunContext) -> None: ...


def build_stages(request: SyncRequest) -> tuple[SyncStage, ...]:
    """Return the stages ``request`` asks for, in execution order.

    Subjects and grades come before structures (group grade attachments need
    grades); guardians come before students (parent links need guardians).
    """

    stages: list[SyncStage] = [
        ReferenceStage(category)
        for category in (Category.SUBJECT, Category.GRADE)
        if request.wants(category)
    ]
    if request.wants(Category.STRUCTURE):
        stages.append(StructureStage())
    stages.extend(
        PersonStage(category) for category in PERSON_CATEGORIES if request.wants(category)
    )
    if request.person_categories and request.format is FeedFormat.FULL:
        stages.append(GarbageStage())
    return tuple(stages)


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(slots=True, kw_only=True)
class Synchronizer:
    """Run synchronisations of one feed against the directory.

    Each run opens a single unit of work; it commits only when every requested
    stage and the garbage collection pass succeeded and ``apply`` was asked
    for, and rolls back otherwise. The run is recorded in the audit table in a
    separate unit of work, so failed runs are recorded too.
    """

    unit_of_work_factory: UnitOfWorkFactory
    feed: FeedReader
    lease: ScopeLease | None = None
    lease_ttl: timedelta = DEFAULT_LEASE_TTL
    clock: Callable[[], datetime] = field(default=_utcnow)

    def synchronize(self, request: SyncRequest) -> RunResult:
        result = RunResult(request=request, started_at=self.clock())
        owner = f"run-{uuid4().hex}"
        log.info(
            "Starting sync: categories=%s, structures=%s, apply=%s, format=%s",
            ",".join(sorted(category.value for category in request.categories)),
            ",".join(request.structure_ids) if request.structure_ids is not None else "*",
            request.apply,
            request.format.value,
        )
        try:
            if self.lease is not None:
                self.lease.acquire(request.lease_keys(), owner=owner, ttl=self.lease_ttl)
            try:
                self._run(request, result)
            finally:
                if self.lease is not None:
                    self.lease.release(owner)
        except Exception as exc:
            result.finished_at = self.clock()
            self._record(result, exception=exc)
            raise

        result.finished_at = self.clock()
        self._record(result)
        total = result.total
        log.info(
            "Finished sync: added=%s, changed=%s, removed=%s, errors=%s, applied=%s",
            total.added,
            total.changed,
            total.removed,
            len(result.issues),
            result.applied,
        )
        return result

    def _run(self, request: SyncRequest, result: RunResult) -> None:
        stages = build_stages(request)
        with self.unit_of_work_factory() as uow:
            context = RunContext(
                request=request,
                feed=CachedFeed(self.feed),
                repositories=uow.repositories,
                result=result,
                now=result.started_at,
            )
            result.issues = context.issues.issues
            try:
                _resolve_scope(context)
                for stage in stages:
                    log.info("Running %s stage", stage.name)
                    stage.run(context)
            except Exception:
                context.advance(RunState.ROLLED_BACK)
                uow.rollback()
                raise
            if request.apply:
                uow.commit()
                context.advance(RunState.COMMITTED)
                result.applied = True
            else:
                uow.rollback()
                context.advance(RunState.ROLLED_BACK)

    def _record(self, result: RunResult, *, exception: BaseException | None = None) -> None:
        request = result.request
        total = result.total
        run = SyncRun(
            started_at=result.started_at,
            finished_at=result.finished_at,
            source=request.source,
            source_date=request.source_date,
            format=request.format,
            mode=request.mode,
            categories=request.categories,
            structure_ids=result.scope,
            applied=result.applied,
            added=total.added,
            changed=total.changed,
            removed=total.removed,
            error_count=len(result.issues),
            exception=repr(exception) if exception is not None else None,
        )
        try:
            with self.unit_of_work_factory() as uow:
                uow.repositories.runs.add(run)
                uow.commit()
        except Exception:
            if exception is None:
                raise
            log.exception("Could not record failed sync run")


def _resolve_scope(context: RunContext) -> None:
    """Pair feed structures with stored ones and fix the run's structure scope."""

    stats = context.stats_for(SCOPE_STAGE)
    with timed(stats, "load"):
        context.target_structures = context.repositories.structures.load()
        records = context.feed.records(Category.STRUCTURE)
        feed_structures: Sequence[Structure] = [
            entity
            for entity in context.normalizer.normalize_all(records, Category.STRUCTURE)
            if isinstance(entity, Structure)
        ]
    with timed(stats, "diff"):
        context.scope = resolve_scope(
            targets=context.target_structures,
            feed=feed_structures,
            requested=context.request.structure_ids,
        )
    stats.count = len(context.scope)
    context.reload_structures()
    context.result.scope = tuple(sorted(context.scope.structure_ids))
    context.advance(RunState.SCOPE_RESOLVED)
