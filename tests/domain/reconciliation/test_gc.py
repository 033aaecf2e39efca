from __future__ import annotations

from aafsync.domain.model import (
    Category,
    Membership,
    MembershipRole,
    Person,
    Profile,
    ProfileType,
)
from aafsync.domain.reconciliation import collect_garbage

GROUPS = {10: "A", 20: "B"}


def _student(person_id: str, *, external_id: str | None = "E", **values: object) -> Person:
    return Person(id=person_id, external_id=external_id, **values)  # type: ignore[arg-type]


def test_unseen_student_loses_profile_and_class_in_scope() -> None:
    person = _student(
        "P1",
        profiles={Profile(structure_id="A", type=ProfileType.STUDENT)},
        memberships={Membership(group_id=10, role=MembershipRole.STUDENT)},
    )

    diff = collect_garbage(
        [person],
        seen=set(),
        scope={"A"},
        categories={Category.STUDENT},
        group_structures=GROUPS,
    )

    (revocation,) = diff.revocations
    assert revocation.profiles == (Profile(structure_id="A", type=ProfileType.STUDENT),)
    assert revocation.memberships == (Membership(group_id=10, role=MembershipRole.STUDENT),)


def test_seen_and_unbound_persons_are_untouched() -> None:
    profile = {Profile(structure_id="A", type=ProfileType.STUDENT)}
    seen = _student("P1", profiles=set(profile))
    unbound = _student("P2", external_id=None, profiles=set(profile))

    diff = collect_garbage(
        [seen, unbound],
        seen={"P1"},
        scope={"A"},
        categories={Category.STUDENT},
        group_structures=GROUPS,
    )

    assert diff.is_empty


def test_profiles_outside_scope_or_category_are_kept() -> None:
    person = _student(
        "P1",
        profiles={
            Profile(structure_id="B", type=ProfileType.STUDENT),
            Profile(structure_id="A", type=ProfileType.GUARDIAN),
            Profile(structure_id="A", type=ProfileType.ADMIN),
        },
        memberships={Membership(group_id=20, role=MembershipRole.STUDENT)},
    )

    diff = collect_garbage(
        [person],
        seen=set(),
        scope={"A"},
        categories={Category.STUDENT},
        group_structures=GROUPS,
    )

    assert diff.is_empty


def test_memberships_kept_while_another_profile_remains_in_structure() -> None:
    person = _student(
        "P1",
        profiles={
            Profile(structure_id="A", type=ProfileType.TEACHER),
            Profile(structure_id="A", type=ProfileType.ADMIN),
        },
        memberships={
            Membership(group_id=10, role=MembershipRole.TEACHER, subject_id="M1"),
            Membership(group_id=10, role=MembershipRole.HOMEROOM),
        },
    )

    diff = collect_garbage(
        [person],
        seen=set(),
        scope={"A"},
        categories={Category.STAFF},
        group_structures=GROUPS,
    )

    (revocation,) = diff.revocations
    assert revocation.profiles == (Profile(structure_id="A", type=ProfileType.TEACHER),)
    assert revocation.memberships == ()


def test_no_person_categories_means_no_garbage() -> None:
    person = _student("P1", profiles={Profile(structure_id="A", type=ProfileType.STUDENT)})

    diff = collect_garbage(
        [person], seen=set(), scope={"A"}, categories=set(), group_structures=GROUPS
    )

    assert diff.is_empty
