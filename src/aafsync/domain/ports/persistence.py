"""Ports for persisting directory aggregates.

Repositories return fully-populated aggregates (structures with their groups,
persons with phones, emails, profiles, memberships and parent links) so the
diff engine never sees a partially loaded entity. Mutations are expressed at
the granularity of a diff entry.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from aafsync.domain.model import (
        Email,
        Grade,
        Group,
        Membership,
        ParentLink,
        Person,
        Phone,
        Profile,
        Structure,
        Subject,
    )
    from aafsync.domain.model.audit import SyncRun


@runtime_checkable
class StructureRepository(Protocol):
    def load(self) -> list[Structure]: ...

    def update(self, structure_id: str, values: Mapping[str, object]) -> None: ...


@runtime_checkable
class GroupRepository(Protocol):
    def add(self, group: Group) -> int:
        """Insert ``group`` with its grade attachments and return the stored id."""
        ...

    def update(self, group_id: int, values: Mapping[str, object]) -> None: ...

    def remove(self, group_id: int) -> None: ...

    def add_grade(self, group_id: int, grade_id: str) -> None: ...

    def remove_grade(self, group_id: int, grade_id: str) -> None: ...


@runtime_checkable
class ReferenceRepository[TItem](Protocol):
    """Flat reference data keyed by id."""

    def load(self) -> list[TItem]: ...

    def add(self, item: TItem) -> None: ...

    def update(self, item_id: str, values: Mapping[str, object]) -> None: ...

    def remove(self, item_id: str) -> None: ...

    def in_use(self) -> set[str]:
        """Return the ids referenced from groups, memberships or persons."""
        ...


@runtime_checkable
class SubjectRepository(ReferenceRepository["Subject"], Protocol):
    """Repository contract for subjects."""


@runtime_checkable
class GradeRepository(ReferenceRepository["Grade"], Protocol):
    """Repository contract for grades."""


@runtime_checkable
class PersonRepository(Protocol):
    def load(self) -> list[Person]: ...

    def get(self, person_id: str) -> Person | None: ...

    def add(self, person: Person) -> str:
        """Insert ``person`` with its owned collections and return the allocated id."""
        ...

    def update(self, person_id: str, values: Mapping[str, object]) -> None: ...

    def add_phone(self, person_id: str, phone: Phone) -> None: ...

    def remove_phone(self, person_id: str, phone: Phone) -> None: ...

    def add_email(self, person_id: str, email: Email) -> None: ...

    def remove_email(self, person_id: str, email: Email) -> None: ...

    def add_profile(self, person_id: str, profile: Profile) -> None: ...

    def remove_profile(self, person_id: str, profile: Profile) -> None: ...

    def add_membership(self, person_id: str, membership: Membership) -> None: ...

    def remove_membership(self, person_id: str, membership: Membership) -> None: ...

    def add_parent_link(self, student_id: str, link: ParentLink) -> None: ...

    def remove_parent_link(self, student_id: str, link: ParentLink) -> None: ...


@runtime_checkable
class SyncRunRepository(Protocol):
    def add(self, run: SyncRun) -> int: ...

    def recent(self, limit: int = 20) -> Sequence[SyncRun]: ...
