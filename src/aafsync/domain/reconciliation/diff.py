"""Per-entity diff functions.

Every function compares a stored snapshot against its feed counterpart and
returns a diff record; none of them mutate either side. Scope restrictions are
applied to the stored side before comparing, so profiles and memberships
outside the run's structures, administrative profiles and hand-made groups are
never part of a diff.
"""

from __future__ import annotations

from dataclasses import replace
from typing import TYPE_CHECKING

from aafsync.domain.model import (
    EMAIL_TYPES,
    GROUP_FIELDS,
    MEMBERSHIP_ROLES,
    PERSON_FIELDS,
    PROFILE_TYPES,
    STRUCTURE_FIELDS,
    Category,
    ProfileType,
)

from .contracts import (
    CollectionDiff,
    GroupChange,
    GroupsDiff,
    ItemChange,
    PersonChange,
    ReferenceDiff,
    StructureChange,
    StructuresDiff,
)
from .diffing import diff_collection, diff_fields

if TYPE_CHECKING:
    from collections.abc import Collection, Iterable, Mapping
    from datetime import datetime

    from aafsync.domain.model import Grade, Group, ParentLink, Person, Structure, Subject

    from .scope import Scope

GROUP_NAME_TIMESTAMP = "%Y-%m-%d %H:%M:%S"


def reference_key(item: Subject | Grade) -> str:
    return item.external_id or item.id


def diff_reference[T: (Subject, Grade)](
    current: Iterable[T],
    desired: Iterable[T],
    *,
    fields: tuple[str, ...],
    in_use: Collection[str] = frozenset(),
    allow_remove: bool = True,
) -> ReferenceDiff[T]:
    """Diff flat reference data keyed by external id (or id when unbound).

    Stored items still referenced (``in_use`` ids) are never removed; they are
    listed as ``protected`` instead.
    """

    collection = diff_collection(
        current,
        desired,
        key=reference_key,
        same=lambda old, new: not diff_fields(old, new, fields),
    )
    diff: ReferenceDiff[T] = ReferenceDiff(add=list(collection.add))
    for old, new in collection.change:
        diff.change.append(
            ItemChange(current=old, desired=new, fields=diff_fields(old, new, fields))
        )
    if allow_remove:
        for item in collection.remove:
            if item.id in in_use:
                diff.protected.append(item)
            else:
                diff.remove.append(item)
    return diff


def diff_structures(
    targets: Mapping[str, Structure],
    scope: Scope,
    *,
    now: datetime,
    allow_remove: bool = True,
) -> StructuresDiff:
    diff = StructuresDiff(
        add=list(scope.unknown_feed_structures),
        remove=list(scope.absent_structures),
    )
    for structure_id in sorted(scope.structure_ids):
        change = diff_structure(
            targets[structure_id],
            scope.feed_structures[structure_id],
            now=now,
            allow_remove=allow_remove,
        )
        if not change.is_empty:
            diff.change.append(change)
    return diff


def diff_structure(
    current: Structure,
    desired: Structure,
    *,
    now: datetime,
    allow_remove: bool = True,
) -> StructureChange:
    return StructureChange(
        current=current,
        desired=desired,
        fields=diff_fields(current, desired, STRUCTURE_FIELDS),
        groups=diff_groups(current, desired, now=now, allow_remove=allow_remove),
    )


def diff_groups(
    current: Structure,
    desired: Structure,
    *,
    now: datetime,
    allow_remove: bool = True,
) -> GroupsDiff:
    """Diff the feed-managed groups of one structure by ``(type, feed-name)``."""

    stored = {group.feed_key: group for group in current.groups if group.feed_managed}
    diff = GroupsDiff()
    seen: set[tuple[object, str | None]] = set()
    for group in desired.groups:
        seen.add(group.feed_key)
        existing = stored.get(group.feed_key)
        if existing is None:
            diff.add.append(_new_group(group, structure_id=current.id, now=now))
            continue
        grades = diff_collection(existing.grades, group.grades)
        if not allow_remove:
            grades.remove.clear()
        change = GroupChange(
            current=existing,
            desired=group,
            fields=diff_fields(existing, group, GROUP_FIELDS),
            grades=grades,
        )
        if not change.is_empty:
            diff.change.append(change)
    if allow_remove:
        diff.remove.extend(group for key, group in stored.items() if key not in seen)
    return diff


def _new_group(group: Group, *, structure_id: str, now: datetime) -> Group:
    return replace(
        group,
        structure_id=structure_id,
        name=f"{group.feed_name} {now.strftime(GROUP_NAME_TIMESTAMP)}",
        grades=set(group.grades),
    )


def diff_person(
    current: Person,
    desired: Person,
    *,
    category: Category,
    scope: Collection[str],
    managed_groups: Collection[int],
    compare_phones: bool = False,
    compare_emails: bool = False,
) -> PersonChange:
    """Diff one matched person within the slice owned by ``category``."""

    profile_types = PROFILE_TYPES[category]
    roles = MEMBERSHIP_ROLES[category]
    email_types = EMAIL_TYPES[category]

    current_profiles = {
        profile
        for profile in current.profiles
        if profile.type is not ProfileType.ADMIN
        and profile.type in profile_types
        and profile.structure_id in scope
    }
    desired_profiles = {
        profile
        for profile in desired.profiles
        if profile.type in profile_types and profile.structure_id in scope
    }
    current_memberships = {
        membership
        for membership in current.memberships
        if membership.role in roles and membership.group_id in managed_groups
    }
    desired_memberships = {
        membership
        for membership in desired.memberships
        if membership.role in roles and membership.group_id in managed_groups
    }

    change = PersonChange(
        current=current,
        desired=desired,
        fields=diff_fields(current, desired, PERSON_FIELDS),
        profiles=diff_collection(current_profiles, desired_profiles),
        memberships=diff_collection(current_memberships, desired_memberships),
    )
    if compare_emails and email_types:
        change.emails = diff_collection(
            {email for email in current.emails if email.type in email_types},
            {email for email in desired.emails if email.type in email_types},
        )
    if compare_phones:
        change.phones = diff_collection(current.phones, desired.phones)
    if category is Category.STUDENT:
        change.parent_links = diff_parent_links(current.parent_links, desired.parent_links)
    return change


def diff_parent_links(
    current: Iterable[ParentLink], desired: Iterable[ParentLink]
) -> CollectionDiff[ParentLink]:
    """Diff guardian links keyed by guardian; the feed list replaces the stored one."""

    return diff_collection(current, desired, key=lambda link: link.guardian_id)
