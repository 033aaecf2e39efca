"""Repository implementations backed by SQLAlchemy sessions.

Every ``load`` returns fully-populated aggregates: structures come with their
groups and grade attachments, persons with phones, emails, profiles,
memberships and parent links.
"""

from __future__ import annotations

from collections import defaultdict
from typing import TYPE_CHECKING, Any, Final, cast

from sqlalchemy import delete, insert, select, update

from aafsync.adapters.sqlalchemy.mappings import (
    email_table,
    grade_table,
    group_grade_table,
    group_table,
    id_counter_table,
    membership_table,
    parent_link_table,
    person_table,
    phone_table,
    profile_table,
    structure_table,
    subject_table,
    sync_run_table,
)
from aafsync.config.sync import PersonIdFormat
from aafsync.domain.model import (
    Category,
    Email,
    Grade,
    GradeAttachment,
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

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping, Sequence

    from sqlalchemy import ColumnElement, Row, Table
    from sqlalchemy.orm import Session

PERSON_COUNTER: Final[str] = "person"

_STRUCTURE_COLUMNS: Final[tuple[str, ...]] = (
    "id",
    "external_id",
    "code",
    "name",
    "siren",
    "address",
    "zip_code",
    "city",
    "phone",
    "fax",
    "sync_enabled",
)
_PERSON_COLUMNS: Final[tuple[str, ...]] = (
    "id",
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


def _matches(column: ColumnElement[Any], value: object) -> ColumnElement[bool]:
    return column.is_(None) if value is None else column == value


class SqlAlchemyStructureRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def load(self) -> list[Structure]:
        grades: defaultdict[int, set[GradeAttachment]] = defaultdict(set)
        for row in self.session.execute(select(group_grade_table)):
            grades[row.group_id].add(GradeAttachment(grade_id=row.grade_id))

        groups: defaultdict[str, list[Group]] = defaultdict(list)
        for row in self.session.execute(select(group_table).order_by(group_table.c.id)):
            groups[row.structure_id].append(
                Group(
                    id=row.id,
                    type=row.type,
                    structure_id=row.structure_id,
                    feed_name=row.feed_name,
                    name=row.name,
                    description=row.description,
                    grades=grades.get(row.id, set()),
                )
            )

        structures: list[Structure] = []
        for row in self.session.execute(select(structure_table).order_by(structure_table.c.id)):
            values = {name: getattr(row, name) for name in _STRUCTURE_COLUMNS}
            structures.append(Structure(**values, groups=groups.get(row.id, [])))
        return structures

    def add(self, structure: Structure) -> None:
        """Register a structure (directory administration, never called by runs)."""

        values = {name: getattr(structure, name) for name in _STRUCTURE_COLUMNS}
        self.session.execute(insert(structure_table).values(**values))

    def update(self, structure_id: str, values: Mapping[str, object]) -> None:
        self.session.execute(
            update(structure_table).where(structure_table.c.id == structure_id).values(**values)
        )


class SqlAlchemyGroupRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, group: Group) -> int:
        result = self.session.execute(
            insert(group_table).values(
                type=group.type,
                structure_id=group.structure_id,
                feed_name=group.feed_name,
                name=group.name,
                description=group.description,
            )
        )
        group_id = cast(int, result.inserted_primary_key[0])
        for attachment in group.grades:
            self.add_grade(group_id, attachment.grade_id)
        return group_id

    def update(self, group_id: int, values: Mapping[str, object]) -> None:
        self.session.execute(
            update(group_table).where(group_table.c.id == group_id).values(**values)
        )

    def remove(self, group_id: int) -> None:
        self.session.execute(
            delete(group_grade_table).where(group_grade_table.c.group_id == group_id)
        )
        self.session.execute(
            delete(membership_table).where(membership_table.c.group_id == group_id)
        )
        self.session.execute(delete(group_table).where(group_table.c.id == group_id))

    def add_grade(self, group_id: int, grade_id: str) -> None:
        self.session.execute(
            insert(group_grade_table).values(group_id=group_id, grade_id=grade_id)
        )

    def remove_grade(self, group_id: int, grade_id: str) -> None:
        self.session.execute(
            delete(group_grade_table)
            .where(group_grade_table.c.group_id == group_id)
            .where(group_grade_table.c.grade_id == grade_id)
        )


class SqlAlchemyReferenceRepository[TItem: (Subject, Grade)]:
    """Shared CRUD for flat reference tables keyed by id."""

    def __init__(
        self,
        session: Session,
        table: Table,
        columns: tuple[str, ...],
        factory: Callable[..., TItem],
    ) -> None:
        self.session = session
        self._table = table
        self._columns = columns
        self._factory = factory

    def load(self) -> list[TItem]:
        rows = self.session.execute(select(self._table).order_by(self._table.c.id))
        return [
            self._factory(**{name: getattr(row, name) for name in self._columns}) for row in rows
        ]

    def add(self, item: TItem) -> None:
        values = {name: getattr(item, name) for name in self._columns}
        self.session.execute(insert(self._table).values(**values))

    def update(self, item_id: str, values: Mapping[str, object]) -> None:
        self.session.execute(
            update(self._table).where(self._table.c.id == item_id).values(**values)
        )

    def remove(self, item_id: str) -> None:
        self.session.execute(delete(self._table).where(self._table.c.id == item_id))


class SqlAlchemySubjectRepository(SqlAlchemyReferenceRepository[Subject]):
    def __init__(self, session: Session) -> None:
        super().__init__(session, subject_table, ("id", "external_id", "name"), Subject)

    def in_use(self) -> set[str]:
        stmt = select(membership_table.c.subject_id).where(
            membership_table.c.subject_id.is_not(None)
        )
        return {subject_id for subject_id in self.session.execute(stmt.distinct()).scalars()}


class SqlAlchemyGradeRepository(SqlAlchemyReferenceRepository[Grade]):
    def __init__(self, session: Session) -> None:
        super().__init__(
            session, grade_table, ("id", "external_id", "name", "rattach", "stat"), Grade
        )

    def in_use(self) -> set[str]:
        attached = select(group_grade_table.c.grade_id).distinct()
        assigned = select(person_table.c.grade_id).where(person_table.c.grade_id.is_not(None))
        used = set(self.session.execute(attached).scalars())
        used.update(self.session.execute(assigned.distinct()).scalars())
        return used


class SqlAlchemyPersonRepository:
    """Persons and their owned collections.

    Ids are allocated at insert time from a persisted counter:
    ``<letter><two letters><digit><four digits>`` (``VAA60001``...).
    """

    def __init__(self, session: Session, id_format: PersonIdFormat | None = None) -> None:
        self.session = session
        self.id_format = id_format or PersonIdFormat()

    def load(self) -> list[Person]:
        return self._load(None)

    def get(self, person_id: str) -> Person | None:
        persons = self._load(person_id)
        return persons[0] if persons else None

    def add(self, person: Person) -> str:
        person_id = self._allocate_id()
        values = {name: getattr(person, name) for name in _PERSON_COLUMNS}
        values["id"] = person_id
        self.session.execute(insert(person_table).values(**values))
        for phone in person.phones:
            self.add_phone(person_id, phone)
        for email in person.emails:
            self.add_email(person_id, email)
        for profile in person.profiles:
            self.add_profile(person_id, profile)
        for membership in person.memberships:
            self.add_membership(person_id, membership)
        for link in person.parent_links:
            self.add_parent_link(person_id, link)
        return person_id

    def update(self, person_id: str, values: Mapping[str, object]) -> None:
        self.session.execute(
            update(person_table).where(person_table.c.id == person_id).values(**values)
        )

    def add_phone(self, person_id: str, phone: Phone) -> None:
        self.session.execute(
            insert(phone_table).values(person_id=person_id, type=phone.type, number=phone.number)
        )

    def remove_phone(self, person_id: str, phone: Phone) -> None:
        self.session.execute(
            delete(phone_table)
            .where(phone_table.c.person_id == person_id)
            .where(phone_table.c.type == phone.type)
            .where(phone_table.c.number == phone.number)
        )

    def add_email(self, person_id: str, email: Email) -> None:
        self.session.execute(
            insert(email_table).values(person_id=person_id, address=email.address, type=email.type)
        )

    def remove_email(self, person_id: str, email: Email) -> None:
        self.session.execute(
            delete(email_table)
            .where(email_table.c.person_id == person_id)
            .where(email_table.c.address == email.address)
            .where(email_table.c.type == email.type)
        )

    def add_profile(self, person_id: str, profile: Profile) -> None:
        self.session.execute(
            insert(profile_table).values(
                person_id=person_id, structure_id=profile.structure_id, type=profile.type
            )
        )

    def remove_profile(self, person_id: str, profile: Profile) -> None:
        self.session.execute(
            delete(profile_table)
            .where(profile_table.c.person_id == person_id)
            .where(profile_table.c.structure_id == profile.structure_id)
            .where(profile_table.c.type == profile.type)
        )

    def add_membership(self, person_id: str, membership: Membership) -> None:
        self.session.execute(
            insert(membership_table).values(
                person_id=person_id,
                group_id=membership.group_id,
                role=membership.role,
                subject_id=membership.subject_id,
            )
        )

    def remove_membership(self, person_id: str, membership: Membership) -> None:
        self.session.execute(
            delete(membership_table)
            .where(membership_table.c.person_id == person_id)
            .where(membership_table.c.group_id == membership.group_id)
            .where(membership_table.c.role == membership.role)
            .where(_matches(membership_table.c.subject_id, membership.subject_id))
        )

    def add_parent_link(self, student_id: str, link: ParentLink) -> None:
        self.session.execute(
            insert(parent_link_table).values(
                student_id=student_id,
                guardian_id=link.guardian_id,
                type=link.type,
                financial=link.financial,
                legal=link.legal,
                contact=link.contact,
            )
        )

    def remove_parent_link(self, student_id: str, link: ParentLink) -> None:
        self.session.execute(
            delete(parent_link_table)
            .where(parent_link_table.c.student_id == student_id)
            .where(parent_link_table.c.guardian_id == link.guardian_id)
        )

    def _load(self, person_id: str | None) -> list[Person]:
        def scoped(table: Table, column: str = "person_id") -> Sequence[Row[Any]]:
            stmt = select(table)
            if person_id is not None:
                stmt = stmt.where(table.c[column] == person_id)
            return self.session.execute(stmt).all()

        phones: defaultdict[str, set[Phone]] = defaultdict(set)
        for row in scoped(phone_table):
            phones[row.person_id].add(Phone(type=row.type, number=row.number))
        emails: defaultdict[str, set[Email]] = defaultdict(set)
        for row in scoped(email_table):
            emails[row.person_id].add(Email(address=row.address, type=row.type))
        profiles: defaultdict[str, set[Profile]] = defaultdict(set)
        for row in scoped(profile_table):
            profiles[row.person_id].add(Profile(structure_id=row.structure_id, type=row.type))
        memberships: defaultdict[str, set[Membership]] = defaultdict(set)
        for row in scoped(membership_table):
            memberships[row.person_id].add(
                Membership(group_id=row.group_id, role=row.role, subject_id=row.subject_id)
            )
        links: defaultdict[str, set[ParentLink]] = defaultdict(set)
        for row in scoped(parent_link_table, "student_id"):
            links[row.student_id].add(
                ParentLink(
                    guardian_id=row.guardian_id,
                    type=row.type,
                    financial=row.financial,
                    legal=row.legal,
                    contact=row.contact,
                )
            )

        persons: list[Person] = []
        for row in sorted(scoped(person_table, "id"), key=lambda row: row.id):
            values = {name: getattr(row, name) for name in _PERSON_COLUMNS}
            persons.append(
                Person(
                    **values,
                    phones=phones.get(row.id, set()),
                    emails=emails.get(row.id, set()),
                    profiles=profiles.get(row.id, set()),
                    memberships=memberships.get(row.id, set()),
                    parent_links=links.get(row.id, set()),
                )
            )
        return persons

    def _allocate_id(self) -> str:
        while True:
            person_id = self.id_format.render(self._next_counter())
            exists = self.session.execute(
                select(person_table.c.id).where(person_table.c.id == person_id)
            ).first()
            if exists is None:
                return person_id

    def _next_counter(self) -> int:
        current = self.session.execute(
            select(id_counter_table.c.value).where(id_counter_table.c.name == PERSON_COUNTER)
        ).scalar_one_or_none()
        if current is None:
            value = 1
            self.session.execute(insert(id_counter_table).values(name=PERSON_COUNTER, value=value))
        else:
            value = current + 1
            self.session.execute(
                update(id_counter_table)
                .where(id_counter_table.c.name == PERSON_COUNTER)
                .values(value=value)
            )
        return value


class SqlAlchemySyncRunRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, run: SyncRun) -> int:
        result = self.session.execute(
            insert(sync_run_table).values(
                started_at=run.started_at,
                finished_at=run.finished_at,
                source=run.source,
                source_date=run.source_date,
                format=run.format,
                mode=run.mode,
                categories=[category.value for category in run.categories],
                structure_ids=list(run.structure_ids),
                applied=run.applied,
                added=run.added,
                changed=run.changed,
                removed=run.removed,
                error_count=run.error_count,
                exception=run.exception,
            )
        )
        run.id = cast(int, result.inserted_primary_key[0])
        return run.id

    def recent(self, limit: int = 20) -> list[SyncRun]:
        stmt = (
            select(sync_run_table)
            .order_by(sync_run_table.c.started_at.desc(), sync_run_table.c.id.desc())
            .limit(limit)
        )
        return [
            SyncRun(
                id=row.id,
                started_at=row.started_at,
                finished_at=row.finished_at,
                source=row.source,
                source_date=row.source_date,
                format=row.format,
                mode=row.mode,
                categories=frozenset(Category(value) for value in row.categories),
                structure_ids=tuple(row.structure_ids),
                applied=row.applied,
                added=row.added,
                changed=row.changed,
                removed=row.removed,
                error_count=row.error_count,
                exception=row.exception,
            )
            for row in self.session.execute(stmt)
        ]



if TYPE_CHECKING:
    from aafsync.domain.ports.persistence import (
        GradeRepository,
        GroupRepository,
        PersonRepository,
        StructureRepository,
        SubjectRepository,
        SyncRunRepository,
    )

    _session_stub = cast("Session", object())
    _structure_repo: StructureRepository = SqlAlchemyStructureRepository(_session_stub)
    _group_repo: GroupRepository = SqlAlchemyGroupRepository(_session_stub)
    _subject_repo: SubjectRepository = SqlAlchemySubjectRepository(_session_stub)
    _grade_repo: GradeRepository = SqlAlchemyGradeRepository(_session_stub)
    _person_repo: PersonRepository = SqlAlchemyPersonRepository(_session_stub)
    _run_repo: SyncRunRepository = SqlAlchemySyncRunRepository(_session_stub)
