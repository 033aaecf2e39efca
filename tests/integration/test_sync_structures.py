from __future__ import annotations

from typing import TYPE_CHECKING

from aafsync.domain.errors import IssueKind
from aafsync.domain.model import (
    Category,
    GradeAttachment,
    Group,
    GroupType,
    Membership,
    MembershipRole,
    Subject,
)
from tests.helpers.directory import (
    load_structures,
    make_person,
    make_structure,
    run_sync,
    seed_person,
    seed_structure,
    seed_subjects,
)
from tests.helpers.feed import InMemoryFeed, grade_record, structure_record, subject_record

if TYPE_CHECKING:
    from tests.helpers.directory import UnitOfWorkFactory


def _structure_feed(*classes: str, groups: tuple[str, ...] = ()) -> InMemoryFeed:
    return InMemoryFeed({Category.STRUCTURE: [structure_record(classes=classes, groups=groups)]})


def test_dry_run_reports_new_class_without_persisting(
    sqlite_unit_of_work: UnitOfWorkFactory,
) -> None:
    seed_structure(sqlite_unit_of_work, make_structure())

    result = run_sync(
        sqlite_unit_of_work,
        _structure_feed("6A$Sixieme A"),
        categories=[Category.STRUCTURE],
    )

    assert result.structures is not None
    (change,) = result.structures.change
    assert [group.feed_name for group in change.groups.add] == ["6A"]
    assert change.groups.remove == []
    assert not result.applied
    assert load_structures(sqlite_unit_of_work)["0690001A"].groups == []


def test_apply_creates_timestamped_group(sqlite_unit_of_work: UnitOfWorkFactory) -> None:
    seed_structure(sqlite_unit_of_work, make_structure())

    result = run_sync(
        sqlite_unit_of_work,
        _structure_feed("6A$Sixieme A", groups=("LATIN$Option latin",)),
        categories=[Category.STRUCTURE],
        apply=True,
    )

    assert result.applied
    groups = {
        group.feed_name: group for group in load_structures(sqlite_unit_of_work)["0690001A"].groups
    }
    assert groups["6A"].name == "6A 2026-09-01 08:30:00"
    assert groups["6A"].type is GroupType.CLASS
    assert groups["6A"].description == "Sixieme A"
    assert groups["LATIN"].type is GroupType.GROUP


def test_obsolete_feed_group_is_removed_and_manual_group_kept(
    sqlite_unit_of_work: UnitOfWorkFactory,
) -> None:
    seed_structure(
        sqlite_unit_of_work,
        make_structure(
            groups=[
                Group(id=0, type=GroupType.CLASS, structure_id="", feed_name="3C", name="3C"),
                Group(id=0, type=GroupType.GROUP, structure_id="", name="Chorale"),
            ]
        ),
    )

    result = run_sync(
        sqlite_unit_of_work,
        _structure_feed("6A$Sixieme A"),
        categories=[Category.STRUCTURE],
        apply=True,
    )

    assert result.structures is not None
    (change,) = result.structures.change
    assert [group.feed_name for group in change.groups.remove] == ["3C"]
    stored = load_structures(sqlite_unit_of_work)["0690001A"].groups
    assert sorted(group.feed_name or group.name or "" for group in stored) == ["6A", "Chorale"]


def test_class_grade_attachments_follow_known_grades(
    sqlite_unit_of_work: UnitOfWorkFactory,
) -> None:
    seed_structure(sqlite_unit_of_work, make_structure())
    feed = InMemoryFeed(
        {
            Category.GRADE: [grade_record("10010012110", "6EME")],
            Category.STRUCTURE: [
                structure_record(classes=["6A$Sixieme A$10010012110$19999999999"])
            ],
        }
    )

    result = run_sync(
        sqlite_unit_of_work,
        feed,
        categories=[Category.GRADE, Category.STRUCTURE],
        apply=True,
    )

    (group,) = load_structures(sqlite_unit_of_work)["0690001A"].groups
    assert group.grades == {GradeAttachment(grade_id="10010012110")}
    (issue,) = result.issues
    assert issue.kind is IssueKind.REFERENCE
    assert "19999999999" in issue.message


def test_second_apply_is_a_no_op(sqlite_unit_of_work: UnitOfWorkFactory) -> None:
    seed_structure(sqlite_unit_of_work, make_structure(name="Old name"))
    feed = _structure_feed("6A$Sixieme A", "6B$Sixieme B")

    first = run_sync(sqlite_unit_of_work, feed, categories=[Category.STRUCTURE], apply=True)
    second = run_sync(sqlite_unit_of_work, feed, categories=[Category.STRUCTURE], apply=True)

    assert first.structures is not None
    assert not first.structures.is_empty
    assert second.structures is not None
    assert second.structures.is_empty
    assert load_structures(sqlite_unit_of_work)["0690001A"].name == "College Example"


def test_disabled_and_unknown_structures_are_reported_only(
    sqlite_unit_of_work: UnitOfWorkFactory,
) -> None:
    seed_structure(sqlite_unit_of_work, make_structure(sync_enabled=False))
    seed_structure(
        sqlite_unit_of_work, make_structure("0690002B", external_id="1002", name="Lycee Absent")
    )
    feed = InMemoryFeed(
        {
            Category.STRUCTURE: [
                structure_record(classes=["6A$Sixieme A"]),
                structure_record("1003", code="0690003C", name="Lycee Inconnu"),
            ]
        }
    )

    result = run_sync(sqlite_unit_of_work, feed, categories=[Category.STRUCTURE], apply=True)

    assert result.scope == ()
    assert result.structures is not None
    assert [structure.id for structure in result.structures.add] == ["0690003C"]
    assert [structure.id for structure in result.structures.remove] == ["0690002B"]
    assert result.structures.change == []
    assert set(load_structures(sqlite_unit_of_work)) == {"0690001A", "0690002B"}


def test_in_use_subject_survives_full_run(sqlite_unit_of_work: UnitOfWorkFactory) -> None:
    seed_subjects(
        sqlite_unit_of_work,
        Subject(id="030201", external_id="030201", name="MATHEMATIQUES"),
        Subject(id="999999", external_id="999999", name="OBSOLETE"),
    )
    group_ids = seed_structure(
        sqlite_unit_of_work,
        make_structure(
            groups=[Group(id=0, type=GroupType.CLASS, structure_id="", feed_name="6A")]
        ),
    )
    teaching = Membership(
        group_id=group_ids["6A"], role=MembershipRole.TEACHER, subject_id="030201"
    )
    seed_person(sqlite_unit_of_work, make_person(external_id="S1", memberships={teaching}))
    feed = InMemoryFeed({Category.SUBJECT: [subject_record("040100", "FRANCAIS")]})

    result = run_sync(sqlite_unit_of_work, feed, categories=[Category.SUBJECT], apply=True)

    assert result.subjects is not None
    assert [subject.id for subject in result.subjects.remove] == ["999999"]
    assert [subject.id for subject in result.subjects.protected] == ["030201"]
    assert [subject.id for subject in result.subjects.add] == ["040100"]
