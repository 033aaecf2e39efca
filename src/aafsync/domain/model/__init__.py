"""Public domain model surface."""

from __future__ import annotations

from aafsync.domain.model.categories import (
    EMAIL_TYPES,
    MEMBERSHIP_ROLES,
    PERSON_CATEGORIES,
    PROFILE_TYPES,
    REFERENCE_CATEGORIES,
    SYNTHETIC_ID_PREFIXES,
    membership_roles_for,
    profile_types_for,
)
from aafsync.domain.model.directory import (
    GRADE_FIELDS,
    GROUP_FIELDS,
    STRUCTURE_FIELDS,
    SUBJECT_FIELDS,
    Grade,
    GradeAttachment,
    Group,
    Structure,
    Subject,
)
from aafsync.domain.model.enums import (
    Category,
    EmailType,
    FeedFormat,
    GroupType,
    LinkType,
    MembershipRole,
    PhoneType,
    ProfileType,
    RunMode,
)
from aafsync.domain.model.person import (
    PERSON_FIELDS,
    Email,
    Membership,
    ParentLink,
    Person,
    Phone,
    Profile,
)

__all__ = [
    "EMAIL_TYPES",
    "GRADE_FIELDS",
    "GROUP_FIELDS",
    "MEMBERSHIP_ROLES",
    "PERSON_CATEGORIES",
    "PERSON_FIELDS",
    "PROFILE_TYPES",
    "REFERENCE_CATEGORIES",
    "STRUCTURE_FIELDS",
    "SUBJECT_FIELDS",
    "SYNTHETIC_ID_PREFIXES",
    "Category",
    "Email",
    "EmailType",
    "FeedFormat",
    "Grade",
    "GradeAttachment",
    "Group",
    "GroupType",
    "LinkType",
    "Membership",
    "MembershipRole",
    "ParentLink",
    "Person",
    "Phone",
    "PhoneType",
    "Profile",
    "ProfileType",
    "RunMode",
    "Structure",
    "Subject",
    "membership_roles_for",
    "profile_types_for",
]
