"""Garbage collection of profiles and memberships for persons the feed dropped.

Two-stage rule, per stored person bound to the feed but not seen this run:

1. revoke profiles in in-scope structures whose type belongs to the requested
   person categories;
2. revoke memberships (of the requested categories' roles) in in-scope
   feed-managed groups whose structure no longer holds any profile of the
   person once stage 1 is applied.

A person keeping another profile in a structure therefore keeps their groups
there.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from aafsync.domain.model import membership_roles_for, profile_types_for

from .contracts import GarbageDiff, PersonRevocation

if TYPE_CHECKING:
    from collections.abc import Collection, Iterable, Mapping

    from aafsync.domain.model import Category, Person


def collect_garbage(
    persons: Iterable[Person],
    *,
    seen: Collection[str],
    scope: Collection[str],
    categories: Collection[Category],
    group_structures: Mapping[int, str],
) -> GarbageDiff:
    """Compute revocations; ``group_structures`` maps in-scope groups to structures."""

    profile_types = profile_types_for(set(categories))
    roles = membership_roles_for(set(categories))
    diff = GarbageDiff()
    if not profile_types:
        return diff

    for person in persons:
        if person.external_id is None or person.id in seen:
            continue
        revoked = tuple(
            profile
            for profile in person.profiles
            if profile.structure_id in scope and profile.type in profile_types
        )
        remaining = {
            profile.structure_id for profile in person.profiles if profile not in revoked
        }
        memberships = tuple(
            membership
            for membership in person.memberships
            if membership.role in roles
            and (structure_id := group_structures.get(membership.group_id)) is not None
            and structure_id in scope
            and structure_id not in remaining
        )
        if revoked or memberships:
            diff.revocations.append(
                PersonRevocation(person=person, profiles=revoked, memberships=memberships)
            )
    return diff
