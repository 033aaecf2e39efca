"""Person synchronisation stages (staff, guardians, students).

Responsibilities of this stage:
- decide which feed persons are in play for the resolved scope
- match them against stored persons and build their desired state
  (profiles, memberships, grade and parent links resolved to directory ids)
- diff matched persons within their category's slice and insert new ones

Out of scope for this stage:
- revoking profiles of persons the feed no longer lists (garbage stage)
"""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from aafsync.domain.errors import IssueKind
from aafsync.domain.model import Category, Membership, ParentLink, Profile, ProfileType
from aafsync.domain.reconciliation import (
    MatchStatus,
    PersonsDiff,
    apply_person_add,
    apply_person_change,
    diff_person,
)

from .context import RunState
from .results import timed

if TYPE_CHECKING:
    from aafsync.domain.feed import FeedPerson
    from aafsync.domain.model import Person

    from .context import RunContext

log = getLogger(__name__)


@dataclass(slots=True)
class PersonStage:
    category: Category

    @property
    def name(self) -> str:
        return self.category.value

    def run(self, context: RunContext) -> None:
        context.advance(RunState.PERSON_SYNC)
        stats = context.stats_for(self.name)

        with timed(stats, "load"):
            feed_persons = [
                feed_person
                for feed_person in context.feed_persons(self.category)
                if self._in_play(context, feed_person)
            ]
            matcher = context.matcher()
            managed_groups = context.managed_group_ids()
        stats.count = len(feed_persons)

        diff = PersonsDiff(category=self.category)
        with timed(stats, "diff"):
            for feed_person in feed_persons:
                match = matcher.match(feed_person)
                if match.status is MatchStatus.AMBIGUOUS:
                    diff.skipped.append(feed_person.external_id)
                    continue
                desired = build_desired(context, feed_person)
                if match.is_new or match.target is None:
                    diff.add.append(desired)
                    continue
                target = match.target
                desired.id = target.id
                context.seen.add(target.id)
                if self.category is Category.GUARDIAN:
                    context.guardian_ids[feed_person.external_id] = target.id
                change = diff_person(
                    target,
                    desired,
                    category=self.category,
                    scope=context.scope.structure_ids,
                    managed_groups=managed_groups,
                    compare_phones=feed_person.carries_phones,
                    compare_emails=feed_person.carries_emails,
                )
                if not change.is_empty:
                    diff.change.append(change)

        if context.apply:
            repository = context.repositories.persons
            with timed(stats, "apply"):
                for person in diff.add:
                    apply_person_add(person, repository)
                for change in diff.change:
                    apply_person_change(change, repository)
        for person in diff.add:
            context.seen.add(person.id)
            if self.category is Category.GUARDIAN and person.external_id is not None:
                context.guardian_ids[person.external_id] = person.id

        stats.added = len(diff.add)
        stats.changed = len(diff.change)
        context.result.set_persons(diff)
        log.info(
            "%s: %s in play, %s added, %s changed, %s skipped",
            self.name,
            stats.count,
            stats.added,
            stats.changed,
            len(diff.skipped),
        )

    def _in_play(self, context: RunContext, feed_person: FeedPerson) -> bool:
        if self.category is Category.GUARDIAN:
            return feed_person.external_id in context.guardian_scope()
        if context.resolve_structures(feed_person.structure_external_ids()):
            return True
        if self.category is Category.STAFF:
            stored = context.person_index().by_external_id(feed_person.external_id)
            return stored is not None and any(
                structure_id in context.scope for structure_id in stored.structure_ids()
            )
        return False


def build_desired(context: RunContext, feed_person: FeedPerson) -> Person:
    """Resolve the claims of ``feed_person`` to directory ids.

    Unknown groups, subjects, grades and guardians are recorded as reference
    issues; the membership or link is dropped and the subject or grade left
    unset.
    """

    person = feed_person.person
    category = feed_person.category

    if category is Category.GUARDIAN:
        person.profiles = {
            Profile(structure_id=structure_id, type=ProfileType.GUARDIAN)
            for structure_id in context.guardian_scope().get(feed_person.external_id, ())
        }
    else:
        person.profiles = {
            Profile(structure_id=structure_id, type=claim.type)
            for claim in feed_person.profile_claims
            if (structure_id := context.scope.resolve(claim.structure_external_id)) is not None
        }

    memberships: set[Membership] = set()
    for claim in feed_person.group_claims:
        structure_id = context.scope.resolve(claim.structure_external_id)
        if structure_id is None:
            continue
        group = context.groups.find(structure_id, claim.type, claim.feed_name)
        if group is None:
            context.issues.record(
                IssueKind.REFERENCE,
                f"unknown {claim.type.value} {claim.feed_name!r} in structure {structure_id}; "
                "membership dropped",
                category=category,
                external_id=feed_person.external_id,
            )
            continue
        subject_id = None
        if claim.subject_code is not None:
            subject_id = context.subject_ids().get(claim.subject_code)
            if subject_id is None:
                context.issues.record(
                    IssueKind.REFERENCE,
                    f"unknown subject {claim.subject_code} for {claim.feed_name!r}; "
                    "subject left unset",
                    category=category,
                    external_id=feed_person.external_id,
                )
        memberships.add(Membership(group_id=group.id, role=claim.role, subject_id=subject_id))
    person.memberships = memberships

    if feed_person.grade_code is not None:
        person.grade_id = context.grade_ids().get(feed_person.grade_code)
        if person.grade_id is None:
            context.issues.record(
                IssueKind.REFERENCE,
                f"unknown grade {feed_person.grade_code}; grade left unset",
                category=category,
                external_id=feed_person.external_id,
            )

    if category is Category.STUDENT:
        person.parent_links = _parent_links(context, feed_person)
    return person


def _parent_links(context: RunContext, feed_person: FeedPerson) -> set[ParentLink]:
    links: set[ParentLink] = set()
    for claim in feed_person.link_claims:
        guardian_id = context.guardian_ids.get(claim.guardian_external_id)
        if guardian_id is None:
            stored = context.person_index().by_external_id(claim.guardian_external_id)
            guardian_id = stored.id if stored is not None else None
        if guardian_id is None:
            context.issues.record(
                IssueKind.REFERENCE,
                f"guardian {claim.guardian_external_id} is not in the directory; link dropped",
                category=Category.STUDENT,
                external_id=feed_person.external_id,
            )
            continue
        links.add(
            ParentLink(
                guardian_id=guardian_id,
                type=claim.type,
                financial=claim.financial,
                legal=claim.legal,
                contact=claim.contact,
            )
        )
    return links
