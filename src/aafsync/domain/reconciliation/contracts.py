"""Diff contracts shared by the reconciliation stages.

This module intentionally holds only:
- field and collection diff records
- per-entity diff aggregates returned in run results
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from aafsync.domain.model import (
        Category,
        Email,
        GradeAttachment,
        Group,
        Membership,
        ParentLink,
        Person,
        Phone,
        Profile,
        Structure,
    )


@dataclass(frozen=True, slots=True, kw_only=True)
class FieldChange:
    name: str
    old: object
    new: object


@dataclass(slots=True, kw_only=True)
class CollectionDiff[T]:
    """Add/change/remove partition of one collection.

    ``change`` holds ``(current, desired)`` pairs that share a key but differ.
    """

    add: list[T] = field(default_factory=list)
    change: list[tuple[T, T]] = field(default_factory=list)
    remove: list[T] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.add or self.change or self.remove)


@dataclass(slots=True, kw_only=True)
class ItemChange[T]:
    current: T
    desired: T
    fields: tuple[FieldChange, ...] = ()


@dataclass(slots=True, kw_only=True)
class ReferenceDiff[T]:
    """Diff of flat reference data (subjects, grades).

    ``protected`` lists stored items absent from the feed that were kept
    because they are still referenced.
    """

    add: list[T] = field(default_factory=list)
    change: list[ItemChange[T]] = field(default_factory=list)
    remove: list[T] = field(default_factory=list)
    protected: list[T] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.add or self.change or self.remove)


@dataclass(slots=True, kw_only=True)
class GroupChange:
    current: Group
    desired: Group
    fields: tuple[FieldChange, ...] = ()
    grades: CollectionDiff[GradeAttachment] = field(default_factory=CollectionDiff)

    @property
    def is_empty(self) -> bool:
        return not self.fields and self.grades.is_empty


@dataclass(slots=True, kw_only=True)
class GroupsDiff:
    add: list[Group] = field(default_factory=list)
    change: list[GroupChange] = field(default_factory=list)
    remove: list[Group] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.add or self.change or self.remove)


@dataclass(slots=True, kw_only=True)
class StructureChange:
    current: Structure
    desired: Structure
    fields: tuple[FieldChange, ...] = ()
    groups: GroupsDiff = field(default_factory=GroupsDiff)

    @property
    def is_empty(self) -> bool:
        return not self.fields and self.groups.is_empty


@dataclass(slots=True, kw_only=True)
class StructuresDiff:
    """Structure diff; top-level ``add``/``remove`` are reported, never applied."""

    add: list[Structure] = field(default_factory=list)
    change: list[StructureChange] = field(default_factory=list)
    remove: list[Structure] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.change


@dataclass(slots=True, kw_only=True)
class PersonChange:
    current: Person
    desired: Person
    fields: tuple[FieldChange, ...] = ()
    phones: CollectionDiff[Phone] = field(default_factory=CollectionDiff)
    emails: CollectionDiff[Email] = field(default_factory=CollectionDiff)
    profiles: CollectionDiff[Profile] = field(default_factory=CollectionDiff)
    memberships: CollectionDiff[Membership] = field(default_factory=CollectionDiff)
    parent_links: CollectionDiff[ParentLink] = field(default_factory=CollectionDiff)

    @property
    def is_empty(self) -> bool:
        return not self.fields and all(
            collection.is_empty
            for collection in (
                self.phones,
                self.emails,
                self.profiles,
                self.memberships,
                self.parent_links,
            )
        )


@dataclass(slots=True, kw_only=True)
class PersonsDiff:
    """Person diff for one category.

    Persons are never deleted by synchronisation; revocations of profiles and
    memberships are reported by the garbage collector instead.
    """

    category: Category
    add: list[Person] = field(default_factory=list)
    change: list[PersonChange] = field(default_factory=list)
    remove: list[Person] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.add or self.change or self.remove)


@dataclass(frozen=True, slots=True, kw_only=True)
class PersonRevocation:
    person: Person
    profiles: tuple[Profile, ...] = ()
    memberships: tuple[Membership, ...] = ()


@dataclass(slots=True, kw_only=True)
class GarbageDiff:
    revocations: list[PersonRevocation] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.revocations
