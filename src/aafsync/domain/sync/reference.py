"""Subject and grade synchronisation stages."""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from aafsync.domain.model import GRADE_FIELDS, SUBJECT_FIELDS, Category, Grade, Subject
from aafsync.domain.reconciliation import apply_reference_diff, diff_reference

from .context import RunState
from .results import timed

if TYPE_CHECKING:
    from aafsync.domain.ports import ReferenceRepository

    from .context import RunContext

log = getLogger(__name__)


@dataclass(slots=True)
class ReferenceStage:
    """Synchronise one flat reference category (subjects or grades).

    Stored items absent from the feed are removed unless still referenced; in
    delta runs nothing is removed.
    """

    category: Category

    @property
    def name(self) -> str:
        return self.category.value

    def run(self, context: RunContext) -> None:
        context.advance(RunState.REFERENCE_SYNC)
        stats = context.stats_for(self.name)
        repository = self._repository(context)

        with timed(stats, "load"):
            current = repository.load()
            records = context.feed.records(self.category)
            desired = [
                entity
                for entity in context.normalizer.normalize_all(records, self.category)
                if isinstance(entity, Subject | Grade)
            ]
            in_use = repository.in_use() if context.allow_remove else set()
        stats.count = len(desired)

        with timed(stats, "diff"):
            diff = diff_reference(
                current,
                desired,
                fields=SUBJECT_FIELDS if self.category is Category.SUBJECT else GRADE_FIELDS,
                in_use=in_use,
                allow_remove=context.allow_remove,
            )
        stats.added = len(diff.add)
        stats.changed = len(diff.change)
        stats.removed = len(diff.remove)
        if diff.protected:
            log.info(
                "Kept %s %s item(s) absent from feed but still in use",
                len(diff.protected),
                self.name,
            )

        if context.apply:
            with timed(stats, "apply"):
                apply_reference_diff(diff, repository)

        if self.category is Category.SUBJECT:
            context.result.subjects = diff
            context.feed_subjects = list(diff.add)
        else:
            context.result.grades = diff
            context.feed_grades = list(diff.add)
        log.info(
            "%s: %s added, %s changed, %s removed",
            self.name,
            stats.added,
            stats.changed,
            stats.removed,
        )

    def _repository(
        self, context: RunContext
    ) -> ReferenceRepository[Subject] | ReferenceRepository[Grade]:
        if self.category is Category.SUBJECT:
            return context.repositories.subjects
        return context.repositories.grades
