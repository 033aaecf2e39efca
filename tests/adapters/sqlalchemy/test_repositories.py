from __future__ import annotations

from datetime import UTC, date, datetime
from typing import TYPE_CHECKING

from aafsync.adapters.sqlalchemy.repositories import (
    SqlAlchemyGradeRepository,
    SqlAlchemyGroupRepository,
    SqlAlchemyPersonRepository,
    SqlAlchemyStructureRepository,
    SqlAlchemySubjectRepository,
    SqlAlchemySyncRunRepository,
)
from aafsync.config import PersonIdFormat
from aafsync.domain.model import (
    Category,
    Email,
    EmailType,
    FeedFormat,
    Grade,
    GradeAttachment,
    Group,
    GroupType,
    LinkType,
    Membership,
    MembershipRole,
    ParentLink,
    Person,
    Phone,
    PhoneType,
    Profile,
    ProfileType,
    RunMode,
    Structure,
    Subject,
)
from aafsync.domain.model.audit import SyncRun

if TYPE_CHECKING:
    from sqlalchemy.orm import Session


def _seed_group(session: Session) -> int:
    SqlAlchemyStructureRepository(session).add(
        Structure(id="0690001A", external_id="1001", code="0690001A", sync_enabled=True)
    )
    return SqlAlchemyGroupRepository(session).add(
        Group(
            id=0,
            type=GroupType.CLASS,
            structure_id="0690001A",
            feed_name="6A",
            name="6A 2026-09-01 08:30:00",
            grades={GradeAttachment(grade_id="10010012110")},
        )
    )


def test_structure_load_nests_groups_and_grades(sqlite_session: Session) -> None:
    group_id = _seed_group(sqlite_session)

    (structure,) = SqlAlchemyStructureRepository(sqlite_session).load()

    assert structure.sync_enabled
    (group,) = structure.groups
    assert group.id == group_id
    assert group.grades == {GradeAttachment(grade_id="10010012110")}


def test_group_remove_drops_grades_and_memberships(sqlite_session: Session) -> None:
    group_id = _seed_group(sqlite_session)
    persons = SqlAlchemyPersonRepository(sqlite_session)
    person_id = persons.add(
        Person(id="", memberships={Membership(group_id=group_id, role=MembershipRole.STUDENT)})
    )

    SqlAlchemyGroupRepository(sqlite_session).remove(group_id)

    (structure,) = SqlAlchemyStructureRepository(sqlite_session).load()
    assert structure.groups == []
    stored = persons.get(person_id)
    assert stored is not None
    assert stored.memberships == set()


def test_reference_in_use_sets(sqlite_session: Session) -> None:
    group_id = _seed_group(sqlite_session)
    subjects = SqlAlchemySubjectRepository(sqlite_session)
    grades = SqlAlchemyGradeRepository(sqlite_session)
    subjects.add(Subject(id="030201", external_id="030201", name="MATHEMATIQUES"))
    grades.add(Grade(id="10010012110", external_id="10010012110", name="6EME"))
    grades.add(Grade(id="10010012111", external_id="10010012111"))
    SqlAlchemyPersonRepository(sqlite_session).add(
        Person(
            id="",
            grade_id="10010012111",
            memberships={
                Membership(group_id=group_id, role=MembershipRole.TEACHER, subject_id="030201")
            },
        )
    )

    assert subjects.in_use() == {"030201"}
    assert grades.in_use() == {"10010012110", "10010012111"}

    grades.update("10010012110", {"name": "SIXIEME"})
    assert grades.load()[0].name == "SIXIEME"


def test_person_round_trip_with_owned_collections(sqlite_session: Session) -> None:
    persons = SqlAlchemyPersonRepository(sqlite_session)
    guardian_id = persons.add(Person(id="", external_id="G1", last_name="BERNARD"))
    student = Person(
        id="",
        external_id="E1",
        first_name="Lucas",
        last_name="BERNARD",
        birthdate=date(2014, 4, 3),
        phones={Phone(type=PhoneType.MOBILE, number="0601020304")},
        emails={Email(address="lucas@example.org", type=EmailType.OTHER)},
        profiles={Profile(structure_id="0690001A", type=ProfileType.STUDENT)},
        parent_links={ParentLink(guardian_id=guardian_id, type=LinkType.MOTHER, legal=True)},
    )

    student_id = persons.add(student)

    stored = persons.get(student_id)
    assert stored is not None
    assert stored.birthdate == date(2014, 4, 3)
    assert stored.phones == student.phones
    assert stored.emails == student.emails
    assert stored.profiles == student.profiles
    assert stored.parent_links == student.parent_links


def test_person_ids_come_from_persistent_counter(sqlite_session: Session) -> None:
    persons = SqlAlchemyPersonRepository(sqlite_session, PersonIdFormat(letter="W", digit=2))

    first = persons.add(Person(id="TMPSTU000001"))
    second = persons.add(Person(id="TMPSTU000002"))

    assert (first, second) == ("WAA20001", "WAA20002")
    assert persons.get("TMPSTU000001") is None


def test_membership_removal_matches_null_subject(sqlite_session: Session) -> None:
    group_id = _seed_group(sqlite_session)
    persons = SqlAlchemyPersonRepository(sqlite_session)
    homeroom = Membership(group_id=group_id, role=MembershipRole.HOMEROOM)
    teaching = Membership(group_id=group_id, role=MembershipRole.TEACHER, subject_id="030201")
    person_id = persons.add(Person(id="", memberships={homeroom, teaching}))

    persons.remove_membership(person_id, homeroom)

    stored = persons.get(person_id)
    assert stored is not None
    assert stored.memberships == {teaching}


def test_sync_runs_newest_first(sqlite_session: Session) -> None:
    runs = SqlAlchemySyncRunRepository(sqlite_session)
    runs.add(SyncRun(started_at=datetime(2026, 9, 1, tzinfo=UTC), source="first.zip"))
    runs.add(
        SyncRun(
            started_at=datetime(2026, 9, 2, tzinfo=UTC),
            source="second.zip",
            format=FeedFormat.DELTA,
            mode=RunMode.AUTOMATIC,
            categories=frozenset({Category.STUDENT}),
            structure_ids=("0690001A",),
            applied=True,
            added=3,
        )
    )

    latest, earliest = runs.recent()

    assert (latest.source, earliest.source) == ("second.zip", "first.zip")
    assert latest.categories == frozenset({Category.STUDENT})
    assert latest.structure_ids == ("0690001A",)
    assert latest.format is FeedFormat.DELTA
    assert latest.added == 3
    assert len(runs.recent(limit=1)) == 1
