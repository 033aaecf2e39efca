"""Per-category policy tables.

Each person category owns a slice of the directory: the profile types, group
membership roles and email types the feed is authoritative for. Diffing and
garbage collection only ever look at that slice.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Final

from .enums import Category, EmailType, MembershipRole, ProfileType

PERSON_CATEGORIES: Final[tuple[Category, ...]] = (
    Category.STAFF,
    Category.GUARDIAN,
    Category.STUDENT,
)
REFERENCE_CATEGORIES: Final[tuple[Category, ...]] = (
    Category.SUBJECT,
    Category.GRADE,
    Category.STRUCTURE,
)

PROFILE_TYPES: Final[Mapping[Category, frozenset[ProfileType]]] = {
    Category.STAFF: frozenset(
        {
            ProfileType.DIRECTOR,
            ProfileType.TEACHER,
            ProfileType.LIBRARIAN,
            ProfileType.EDUCATION,
            ProfileType.STAFF,
        }
    ),
    Category.STUDENT: frozenset({ProfileType.STUDENT}),
    Category.GUARDIAN: frozenset({ProfileType.GUARDIAN}),
}

MEMBERSHIP_ROLES: Final[Mapping[Category, frozenset[MembershipRole]]] = {
    Category.STAFF: frozenset({MembershipRole.TEACHER}),
    Category.STUDENT: frozenset({MembershipRole.STUDENT}),
    Category.GUARDIAN: frozenset(),
}

EMAIL_TYPES: Final[Mapping[Category, frozenset[EmailType]]] = {
    Category.STAFF: frozenset({EmailType.ACADEMIC}),
    Category.STUDENT: frozenset(),
    Category.GUARDIAN: frozenset({EmailType.OTHER}),
}

SYNTHETIC_ID_PREFIXES: Final[Mapping[Category, str]] = {
    Category.STAFF: "TMPSTF",
    Category.STUDENT: "TMPSTU",
    Category.GUARDIAN: "TMPGRD",
}


def profile_types_for(categories: frozenset[Category] | set[Category]) -> frozenset[ProfileType]:
    """Return the profile types implied by the requested person categories."""

    types: set[ProfileType] = set()
    for category in categories:
        types |= PROFILE_TYPES.get(category, frozenset())
    return frozenset(types)


def membership_roles_for(
    categories: frozenset[Category] | set[Category],
) -> frozenset[MembershipRole]:
    roles: set[MembershipRole] = set()
    for category in categories:
        roles |= MEMBERSHIP_ROLES.get(category, frozenset())
    return frozenset(roles)
