from __future__ import annotations

from datetime import date

import pytest

from aafsync.domain.errors import IssueKind, IssueLog
from aafsync.domain.feed import FeedPerson
from aafsync.domain.model import Category, Email, EmailType, Person
from aafsync.domain.reconciliation import MatchKind, MatchStatus, PersonIndex, PersonMatcher


def _feed_person(category: Category, external_id: str, **values: object) -> FeedPerson:
    person = Person(id=f"TMP-{external_id}", external_id=external_id, category=category)
    for name, value in values.items():
        setattr(person, name, value)
    return FeedPerson(person=person, category=category)


def _staff_email(address: str) -> set[Email]:
    return {Email(address=address, type=EmailType.ACADEMIC)}


@pytest.fixture
def issues() -> IssueLog:
    return IssueLog()


def test_external_id_match_wins_over_fallbacks(issues: IssueLog) -> None:
    by_email = Person(id="P1", emails=_staff_email("a@ac.fr"))
    by_external = Person(id="P2", external_id="S1")
    matcher = PersonMatcher(PersonIndex([by_email, by_external]), issues)

    result = matcher.match(
        _feed_person(Category.STAFF, "S1", emails=_staff_email("a@ac.fr"))
    )

    assert result.status is MatchStatus.RESOLVED
    assert result.kind is MatchKind.EXTERNAL_ID
    assert result.target is by_external
    assert len(issues) == 0


def test_staff_fallback_on_academic_email(issues: IssueLog) -> None:
    target = Person(id="P1", emails=_staff_email("Alice@AC-Lyon.fr"))
    matcher = PersonMatcher(PersonIndex([target]), issues)

    result = matcher.match(
        _feed_person(Category.STAFF, "S1", emails=_staff_email("alice@ac-lyon.fr"))
    )

    assert result.status is MatchStatus.RESOLVED
    assert result.kind is MatchKind.ACADEMIC_EMAIL
    assert result.target is target


def test_fallback_never_rebinds_a_bound_person(issues: IssueLog) -> None:
    target = Person(id="P1", external_id="OTHER", emails=_staff_email("a@ac.fr"))
    matcher = PersonMatcher(PersonIndex([target]), issues)

    result = matcher.match(_feed_person(Category.STAFF, "S1", emails=_staff_email("a@ac.fr")))

    assert result.status is MatchStatus.CONFLICT
    assert result.is_new
    assert [issue.kind for issue in issues.issues] == [IssueKind.IDENTITY]


def test_duplicate_guard_within_one_run(issues: IssueLog) -> None:
    target = Person(id="P1", attachment_id="ATT-1")
    matcher = PersonMatcher(PersonIndex([target]), issues)

    first = matcher.match(_feed_person(Category.STUDENT, "E1", attachment_id="ATT-1"))
    second = matcher.match(_feed_person(Category.STUDENT, "E2", attachment_id="ATT-1"))

    assert first.status is MatchStatus.RESOLVED
    assert first.kind is MatchKind.ATTACHMENT_ID
    assert second.status is MatchStatus.CONFLICT
    assert second.reason == "already_claimed"
    assert matcher.claimed == frozenset({"P1"})


def test_student_fallback_on_name_and_birthdate(issues: IssueLog) -> None:
    birthdate = date(2014, 4, 3)
    target = Person(id="P1", first_name="Lucas", last_name="BERNARD", birthdate=birthdate)
    matcher = PersonMatcher(PersonIndex([target]), issues)

    result = matcher.match(
        _feed_person(
            Category.STUDENT,
            "E1",
            first_name="Lucas",
            last_name="Bernard",
            birthdate=birthdate,
        )
    )

    assert result.kind is MatchKind.NAME_BIRTHDATE
    assert result.target is target


def test_ambiguous_fallback_is_reported(issues: IssueLog) -> None:
    birthdate = date(2014, 4, 3)
    twins = [
        Person(id=f"P{index}", first_name="Lucas", last_name="BERNARD", birthdate=birthdate)
        for index in (1, 2)
    ]
    matcher = PersonMatcher(PersonIndex(twins), issues)

    result = matcher.match(
        _feed_person(
            Category.STUDENT,
            "E1",
            first_name="Lucas",
            last_name="BERNARD",
            birthdate=birthdate,
        )
    )

    assert result.status is MatchStatus.AMBIGUOUS
    assert result.target is None
    assert issues.issues[0].kind is IssueKind.AMBIGUOUS
    assert "P1, P2" in issues.issues[0].message


def test_guardians_have_no_fallback(issues: IssueLog) -> None:
    target = Person(id="P1", first_name="Claire", last_name="BERNARD")
    matcher = PersonMatcher(PersonIndex([target]), issues)

    result = matcher.match(
        _feed_person(Category.GUARDIAN, "G1", first_name="Claire", last_name="BERNARD")
    )

    assert result.status is MatchStatus.NEW
