"""Person aggregate and its owned value objects."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .enums import EmailType

if TYPE_CHECKING:
    from datetime import date

    from .enums import Category, LinkType, MembershipRole, PhoneType, ProfileType


@dataclass(frozen=True, slots=True, kw_only=True)
class Phone:
    type: PhoneType
    number: str


@dataclass(frozen=True, slots=True, kw_only=True)
class Email:
    address: str
    type: EmailType


@dataclass(frozen=True, slots=True, kw_only=True)
class Profile:
    """Binding of a person to a structure with a role type."""

    structure_id: str
    type: ProfileType


@dataclass(frozen=True, slots=True, kw_only=True)
class Membership:
    """Binding of a person to a group with a role and optional subject."""

    group_id: int
    role: MembershipRole
    subject_id: str | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class ParentLink:
    """Link from a student to one of their guardians."""

    guardian_id: str
    type: LinkType
    financial: bool = False
    legal: bool = False
    contact: bool = False


@dataclass(slots=True, kw_only=True)
class Person:
    """Directory person snapshot.

    Target-side persons carry their durable ``id``; feed-side persons carry a
    synthetic id until the matcher binds them to a target person. ``category``
    is only known on the feed side.
    """

    id: str
    external_id: str | None = None
    category: Category | None = None
    first_name: str | None = None
    last_name: str | None = None
    gender: str | None = None
    birthdate: date | None = None
    address: str | None = None
    zip_code: str | None = None
    city: str | None = None
    country: str | None = None
    attachment_id: str | None = None
    grade_id: str | None = None
    phones: set[Phone] = field(default_factory=set)
    emails: set[Email] = field(default_factory=set)
    profiles: set[Profile] = field(default_factory=set)
    memberships: set[Membership] = field(default_factory=set)
    parent_links: set[ParentLink] = field(default_factory=set)

    @property
    def academic_emails(self) -> tuple[str, ...]:
        return tuple(
            sorted(email.address for email in self.emails if email.type is EmailType.ACADEMIC)
        )

    def structure_ids(self) -> set[str]:
        return {profile.structure_id for profile in self.profiles}


PERSON_FIELDS: tuple[str, ...] = (
    "external_id",
    "first_name",
    "last_name",
    "gender",
    "birthdate",
    "address",
    "zip_code",
    "city",
    "country",
    "attachment_id",
    "grade_id",
)
