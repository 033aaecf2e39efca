"""Apply computed diffs through the repositories of an open unit of work.

Nothing here commits: the run orchestrator owns the transaction and commits
only once every requested stage and the garbage collection pass succeeded.
"""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from aafsync.domain.model import Grade, Person, Subject
    from aafsync.domain.ports import (
        DirectoryRepositories,
        GroupRepository,
        PersonRepository,
        ReferenceRepository,
    )

    from .contracts import (
        GarbageDiff,
        GroupChange,
        PersonChange,
        ReferenceDiff,
        StructuresDiff,
    )

log = getLogger(__name__)


def apply_reference_diff[T: (Subject, Grade)](
    diff: ReferenceDiff[T], repository: ReferenceRepository[T]
) -> None:
    for item in diff.add:
        repository.add(item)
    for change in diff.change:
        repository.update(
            change.current.id, {field.name: field.new for field in change.fields}
        )
    for item in diff.remove:
        repository.remove(item.id)


def apply_structures_diff(diff: StructuresDiff, repositories: DirectoryRepositories) -> None:
    """Apply nested group changes; top-level structure add/remove are never applied."""

    for change in diff.change:
        if change.fields:
            repositories.structures.update(
                change.current.id, {field.name: field.new for field in change.fields}
            )
        for group in change.groups.add:
            group_id = repositories.groups.add(group)
            log.debug("Created group %s (%s) in %s", group_id, group.feed_name, group.structure_id)
        for group_change in change.groups.change:
            _apply_group_change(group_change, repositories.groups)
        for group in change.groups.remove:
            repositories.groups.remove(group.id)


def _apply_group_change(change: GroupChange, groups: GroupRepository) -> None:
    group_id = change.current.id
    if change.fields:
        groups.update(group_id, {field.name: field.new for field in change.fields})
    for attachment in change.grades.add:
        groups.add_grade(group_id, attachment.grade_id)
    for attachment in change.grades.remove:
        groups.remove_grade(group_id, attachment.grade_id)


def apply_person_add(person: Person, persons: PersonRepository) -> Person:
    """Insert ``person``; returns it carrying its allocated id."""

    person.id = persons.add(person)
    return person


def apply_person_change(change: PersonChange, persons: PersonRepository) -> None:
    person_id = change.current.id
    if change.fields:
        persons.update(person_id, {field.name: field.new for field in change.fields})

    for phone in change.phones.remove:
        persons.remove_phone(person_id, phone)
    for phone in change.phones.add:
        persons.add_phone(person_id, phone)

    for email in change.emails.remove:
        persons.remove_email(person_id, email)
    for email in change.emails.add:
        persons.add_email(person_id, email)

    for profile in change.profiles.remove:
        persons.remove_profile(person_id, profile)
    for profile in change.profiles.add:
        persons.add_profile(person_id, profile)

    for membership in change.memberships.remove:
        persons.remove_membership(person_id, membership)
    for membership in change.memberships.add:
        persons.add_membership(person_id, membership)

    for link in change.parent_links.remove:
        persons.remove_parent_link(person_id, link)
    for old, new in change.parent_links.change:
        persons.remove_parent_link(person_id, old)
        persons.add_parent_link(person_id, new)
    for link in change.parent_links.add:
        persons.add_parent_link(person_id, link)


def apply_garbage(diff: GarbageDiff, persons: PersonRepository) -> None:
    for revocation in diff.revocations:
        person_id = revocation.person.id
        for profile in revocation.profiles:
            persons.remove_profile(person_id, profile)
        for membership in revocation.memberships:
            persons.remove_membership(person_id, membership)
