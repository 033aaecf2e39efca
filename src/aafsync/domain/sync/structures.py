"""Structure synchronisation stage: structure fields, groups and grade attachments.

Responsibilities of this stage:
- resolve the grade attachments of feed groups against known grades
- diff in-scope structures and their feed-managed groups
- refresh the group index so person stages can resolve group claims

Out of scope for this stage:
- creating or deleting structures (reported only)
"""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from aafsync.domain.errors import IssueKind
from aafsync.domain.model import Category, GradeAttachment
from aafsync.domain.reconciliation import apply_structures_diff, diff_structures

from .context import RunState
from .results import timed

if TYPE_CHECKING:
    from aafsync.domain.model import Structure

    from .context import RunContext

log = getLogger(__name__)


@dataclass(slots=True)
class StructureStage:
    name: str = Category.STRUCTURE.value

    def run(self, context: RunContext) -> None:
        context.advance(RunState.REFERENCE_SYNC)
        stats = context.stats_for(self.name)

        with timed(stats, "load"):
            targets = {structure.id: structure for structure in context.target_structures}
            for structure in context.scope.feed_structures.values():
                self._resolve_grades(context, structure)
        stats.count = len(context.scope)

        with timed(stats, "diff"):
            diff = diff_structures(
                targets,
                context.scope,
                now=context.now,
                allow_remove=context.allow_remove,
            )
        for change in diff.change:
            stats.added += len(change.groups.add)
            stats.changed += len(change.groups.change) + (1 if change.fields else 0)
            stats.removed += len(change.groups.remove)
        for structure in diff.add:
            log.info("Feed structure %s is unknown to the directory", structure.code)

        if context.apply:
            with timed(stats, "apply"):
                apply_structures_diff(diff, context.repositories)
                context.reload_structures()
        else:
            for change in diff.change:
                for group in change.groups.add:
                    context.groups.add(group)

        context.result.structures = diff
        log.info(
            "structure: %s group(s) added, %s change(s), %s group(s) removed",
            stats.added,
            stats.changed,
            stats.removed,
        )

    @staticmethod
    def _resolve_grades(context: RunContext, structure: Structure) -> None:
        known = context.grade_ids()
        for group in structure.groups:
            resolved: set[GradeAttachment] = set()
            for attachment in group.grades:
                grade_id = known.get(attachment.grade_id)
                if grade_id is None:
                    context.issues.record(
                        IssueKind.REFERENCE,
                        f"class {group.feed_name!r} refers to unknown grade "
                        f"{attachment.grade_id}; attachment dropped",
                        category=Category.STRUCTURE,
                        external_id=structure.external_id,
                    )
                    continue
                resolved.add(GradeAttachment(grade_id=grade_id))
            group.grades = resolved
