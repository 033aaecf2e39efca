"""Garbage collection stage."""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from aafsync.domain.reconciliation import apply_garbage, collect_garbage

from .context import RunState
from .results import GARBAGE_STAGE, timed

if TYPE_CHECKING:
    from .context import RunContext

log = getLogger(__name__)


@dataclass(slots=True)
class GarbageStage:
    """Revoke in-scope profiles and memberships of persons the feed dropped.

    Runs only after person stages of a full feed; a delta feed lists changed
    records only, so absence means nothing there.
    """

    name: str = GARBAGE_STAGE

    def run(self, context: RunContext) -> None:
        context.advance(RunState.GARBAGE_COLLECT)
        stats = context.stats_for(self.name)

        with timed(stats, "load"):
            persons = list(context.person_index())
            group_structures = context.groups.structures_by_group(context.scope.structure_ids)
        stats.count = len(persons)

        with timed(stats, "diff"):
            diff = collect_garbage(
                persons,
                seen=context.seen,
                scope=context.scope.structure_ids,
                categories=context.request.person_categories,
                group_structures=group_structures,
            )
        stats.removed = sum(
            len(revocation.profiles) + len(revocation.memberships)
            for revocation in diff.revocations
        )

        if context.apply:
            with timed(stats, "apply"):
                apply_garbage(diff, context.repositories.persons)

        context.result.garbage = diff
        log.info(
            "garbage: %s person(s) lost %s profile(s) or membership(s)",
            len(diff.revocations),
            stats.removed,
        )
