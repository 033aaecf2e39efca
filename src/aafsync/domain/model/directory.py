"""Structure, group and reference-data aggregates."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .enums import GroupType


@dataclass(frozen=True, slots=True, kw_only=True)
class GradeAttachment:
    """Grade-level tag carried by a group."""

    grade_id: str


@dataclass(slots=True, kw_only=True)
class Group:
    """Class or activity group owned by a structure.

    Groups declared by the feed carry a ``feed_name``; groups created by hand in
    the directory have none and are never touched by synchronisation. Feed-side
    groups that do not exist yet carry a negative provisional ``id``.
    """

    id: int
    type: GroupType
    structure_id: str
    feed_name: str | None = None
    name: str | None = None
    description: str | None = None
    grades: set[GradeAttachment] = field(default_factory=set)

    @property
    def feed_managed(self) -> bool:
        return self.feed_name is not None

    @property
    def feed_key(self) -> tuple[GroupType, str | None]:
        return (self.type, self.feed_name)


@dataclass(slots=True, kw_only=True)
class Structure:
    """School or establishment, identified by its administrative code."""

    id: str
    external_id: str | None = None
    code: str | None = None
    name: str | None = None
    siren: str | None = None
    address: str | None = None
    zip_code: str | None = None
    city: str | None = None
    phone: str | None = None
    fax: str | None = None
    sync_enabled: bool = False
    groups: list[Group] = field(default_factory=list)

    def find_group(self, group_type: GroupType, feed_name: str) -> Group | None:
        for group in self.groups:
            if group.type == group_type and group.feed_name == feed_name:
                return group
        return None


@dataclass(slots=True, kw_only=True)
class Grade:
    id: str
    external_id: str | None = None
    name: str | None = None
    rattach: str | None = None
    stat: str | None = None


@dataclass(slots=True, kw_only=True)
class Subject:
    id: str
    external_id: str | None = None
    name: str | None = None


STRUCTURE_FIELDS: tuple[str, ...] = (
    "external_id",
    "code",
    "name",
    "siren",
    "address",
    "zip_code",
    "city",
    "phone",
    "fax",
)
GROUP_FIELDS: tuple[str, ...] = ("description",)
GRADE_FIELDS: tuple[str, ...] = ("external_id", "name", "rattach", "stat")
SUBJECT_FIELDS: tuple[str, ...] = ("external_id", "name")
