"""Identity matching of feed persons against target persons.

Responsibilities of this stage:
- match by external id first; it is authoritative
- fall back per category (staff: academic email; students: rattachment id,
  then name and birthdate; guardians: none)
- classify each feed person as NEW/RESOLVED/AMBIGUOUS/CONFLICT

A fallback never rebinds a target person that already carries an external id,
nor one already claimed by another feed person of the same run: both are
identity conflicts and the feed person is treated as new.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

from aafsync.domain.errors import IssueKind
from aafsync.domain.model import Category

from .index import name_key

if TYPE_CHECKING:
    from collections.abc import Iterator

    from aafsync.domain.errors import IssueLog
    from aafsync.domain.feed import FeedPerson
    from aafsync.domain.model import Person

    from .index import PersonIndex


class MatchStatus(StrEnum):
    NEW = "new"
    RESOLVED = "resolved"
    AMBIGUOUS = "ambiguous"
    CONFLICT = "conflict"


class MatchKind(StrEnum):
    EXTERNAL_ID = "external_id"
    ACADEMIC_EMAIL = "academic_email"
    ATTACHMENT_ID = "attachment_id"
    NAME_BIRTHDATE = "name_birthdate"


@dataclass(frozen=True, slots=True, kw_only=True)
class MatchResult:
    status: MatchStatus
    target: Person | None = None
    kind: MatchKind | None = None
    reason: str | None = None

    @property
    def is_new(self) -> bool:
        return self.status in (MatchStatus.NEW, MatchStatus.CONFLICT)


class PersonMatcher:
    """Stateful matcher for one run.

    Remembers which target persons were claimed so a second feed person can
    never be merged into the same record.
    """

    def __init__(self, index: PersonIndex, issues: IssueLog) -> None:
        self._index = index
        self._issues = issues
        self._claimed: dict[str, str] = {}

    @property
    def claimed(self) -> frozenset[str]:
        return frozenset(self._claimed)

    def match(self, feed_person: FeedPerson) -> MatchResult:
        external_id = feed_person.external_id
        target = self._index.by_external_id(external_id)
        if target is not None:
            self._claimed[target.id] = external_id
            return MatchResult(
                status=MatchStatus.RESOLVED,
                target=target,
                kind=MatchKind.EXTERNAL_ID,
                reason="external_id_match",
            )

        for kind, candidates in self._fallbacks(feed_person):
            if not candidates:
                continue
            if len(candidates) > 1:
                ids = ", ".join(sorted(candidate.id for candidate in candidates))
                self._issues.record(
                    IssueKind.AMBIGUOUS,
                    f"{kind.value} matches several persons ({ids}); person skipped",
                    category=feed_person.category,
                    external_id=external_id,
                )
                return MatchResult(
                    status=MatchStatus.AMBIGUOUS, kind=kind, reason="multiple_candidates"
                )
            return self._claim_fallback(feed_person, candidates[0], kind)

        return MatchResult(status=MatchStatus.NEW, reason="no_match")

    def _claim_fallback(
        self, feed_person: FeedPerson, candidate: Person, kind: MatchKind
    ) -> MatchResult:
        external_id = feed_person.external_id
        if candidate.external_id is not None:
            self._issues.record(
                IssueKind.IDENTITY,
                f"{kind.value} matches person {candidate.id} already bound to "
                f"{candidate.external_id}; possible duplicate account, created as new",
                category=feed_person.category,
                external_id=external_id,
            )
            return MatchResult(
                status=MatchStatus.CONFLICT,
                target=candidate,
                kind=kind,
                reason="already_bound",
            )
        claimed_by = self._claimed.get(candidate.id)
        if claimed_by is not None:
            self._issues.record(
                IssueKind.IDENTITY,
                f"{kind.value} matches person {candidate.id} already claimed by "
                f"{claimed_by} in this run; created as new",
                category=feed_person.category,
                external_id=external_id,
            )
            return MatchResult(
                status=MatchStatus.CONFLICT,
                target=candidate,
                kind=kind,
                reason="already_claimed",
            )
        self._claimed[candidate.id] = external_id
        return MatchResult(
            status=MatchStatus.RESOLVED,
            target=candidate,
            kind=kind,
            reason="fallback_match",
        )

    def _fallbacks(
        self, feed_person: FeedPerson
    ) -> Iterator[tuple[MatchKind, tuple[Person, ...]]]:
        person = feed_person.person
        if feed_person.category is Category.STAFF:
            for address in person.academic_emails:
                yield MatchKind.ACADEMIC_EMAIL, self._index.by_academic_email(address)
        elif feed_person.category is Category.STUDENT:
            if person.attachment_id:
                yield MatchKind.ATTACHMENT_ID, self._index.by_attachment_id(person.attachment_id)
            key = name_key(person.first_name, person.last_name, person.birthdate)
            if key is not None:
                yield MatchKind.NAME_BIRTHDATE, self._index.by_name_key(key)
