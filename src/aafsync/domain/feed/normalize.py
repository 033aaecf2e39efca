"""Record normalizer: raw feed attribute records to typed entities.

Responsibilities of this stage:
- turn one raw record of a known category into exactly one typed entity
- record a parse issue and skip the entity when required attributes are missing
- drop malformed ``$``-delimited tuples with a parse issue and keep the rest
- hand out synthetic ids to feed-side persons and groups from run-owned counters

Out of scope for this stage:
- resolving structures, groups, subjects or grades against the directory
- identity matching against stored persons
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime
from logging import getLogger
from typing import TYPE_CHECKING, Final

from aafsync.domain.errors import IssueKind
from aafsync.domain.model import (
    Category,
    Email,
    EmailType,
    Grade,
    GradeAttachment,
    Group,
    GroupType,
    LinkType,
    MembershipRole,
    Person,
    Phone,
    PhoneType,
    ProfileType,
    Structure,
    Subject,
)

if TYPE_CHECKING:
    from collections.abc import Mapping

    from aafsync.domain.errors import IssueLog

    from .ids import SyntheticIds
    from .records import RawRecord

log = getLogger(__name__)

DATE_FORMAT: Final[str] = "%d/%m/%Y"

FUNCTION_PROFILES: Final[Mapping[str, ProfileType]] = {
    "ENS": ProfileType.TEACHER,
    "DOC": ProfileType.LIBRARIAN,
    "DIR": ProfileType.DIRECTOR,
    "EDU": ProfileType.EDUCATION,
    "AED": ProfileType.EDUCATION,
    "SUR": ProfileType.EDUCATION,
    "ADF": ProfileType.STAFF,
    "LAB": ProfileType.STAFF,
    "ALB": ProfileType.STAFF,
    "MDS": ProfileType.STAFF,
    "OUV": ProfileType.STAFF,
    "CTR": ProfileType.STAFF,
    "ASE": ProfileType.STAFF,
    "ORI": ProfileType.STAFF,
    "CFC": ProfileType.STAFF,
    "ACP": ProfileType.STAFF,
    "AES": ProfileType.STAFF,
    "TEC": ProfileType.STAFF,
}
# '-' is exported for persons without any function
EMPTY_FUNCTION: Final[str] = "-"

LINK_TYPES: Final[Mapping[str, LinkType]] = {
    "1": LinkType.FATHER,
    "2": LinkType.MOTHER,
    "3": LinkType.TUTOR,
    "4": LinkType.FAMILY_MEMBER,
    "5": LinkType.SOCIAL_SERVICES,
    "6": LinkType.OTHER_CASE,
    "7": LinkType.SELF,
}

GENDERS: Final[Mapping[str, str]] = {"Mme": "F", "M.": "M"}

GUARDIAN_PHONE_ATTRIBUTES: Final[tuple[tuple[str, PhoneType], ...]] = (
    ("telephoneNumber", PhoneType.WORK),
    ("homePhone", PhoneType.HOME),
    ("mobile", PhoneType.MOBILE),
)

# grade codes outside primary and secondary education start with other digits
GRADE_CODE_PREFIXES: Final[tuple[str, ...]] = ("0", "1")

NAME_PART: Final[re.Pattern[str]] = re.compile(r"[^\s-]+")


@dataclass(frozen=True, slots=True, kw_only=True)
class ProfileClaim:
    """Profile declared by the feed, keyed by the structure's feed id."""

    structure_external_id: str
    type: ProfileType


@dataclass(frozen=True, slots=True, kw_only=True)
class GroupClaim:
    """Group membership declared by the feed, before group resolution."""

    structure_external_id: str
    type: GroupType
    feed_name: str
    role: MembershipRole
    subject_code: str | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class LinkClaim:
    guardian_external_id: str
    type: LinkType
    financial: bool = False
    legal: bool = False
    contact: bool = False


@dataclass(slots=True, kw_only=True)
class FeedPerson:
    """Normalized person plus the claims that still need directory resolution."""

    person: Person
    category: Category
    profile_claims: tuple[ProfileClaim, ...] = ()
    group_claims: tuple[GroupClaim, ...] = ()
    link_claims: tuple[LinkClaim, ...] = ()
    grade_code: str | None = None
    carries_phones: bool = False
    carries_emails: bool = False

    @property
    def external_id(self) -> str:
        return self.person.external_id or ""

    def structure_external_ids(self) -> set[str]:
        return {claim.structure_external_id for claim in self.profile_claims}


type FeedEntity = Structure | Subject | Grade | FeedPerson


class RecordNormalizer:
    """Normalize raw records of one run.

    Guardians normalized by this instance are remembered so that student
    parent links can be checked against them.
    """

    def __init__(self, *, ids: SyntheticIds, issues: IssueLog) -> None:
        self._ids = ids
        self._issues = issues
        self._guardians: dict[str, FeedPerson] = {}

    @property
    def guardians(self) -> Mapping[str, FeedPerson]:
        return self._guardians

    def normalize(self, record: RawRecord, category: Category) -> FeedEntity | None:
        if not record.external_id.strip():
            self._issues.record(
                IssueKind.PARSE,
                f"{record.operation} without identifier skipped",
                category=category,
            )
            return None
        if category is Category.STRUCTURE:
            return self.structure(record)
        if category is Category.SUBJECT:
            return self.subject(record)
        if category is Category.GRADE:
            return self.grade(record)
        return self.person(record, category)

    def normalize_all(self, records: tuple[RawRecord, ...], category: Category) -> list[FeedEntity]:
        entities: list[FeedEntity] = []
        for record in records:
            entity = self.normalize(record, category)
            if entity is not None:
                entities.append(entity)
        return entities

    # Reference data ------------------------------------------------------------

    def structure(self, record: RawRecord) -> Structure | None:
        values = self._require(
            record,
            Category.STRUCTURE,
            "ENTStructureJointure",
            "ENTStructureUAI",
            "ENTStructureNomCourant",
        )
        if values is None:
            return None

        code = values["ENTStructureUAI"]
        name = values["ENTStructureNomCourant"]
        academy = record.value("ENTServAcAcademie")
        if academy:
            name = re.sub(f"-ac-{re.escape(academy)}$", "", name)

        structure = Structure(
            id=code,
            external_id=values["ENTStructureJointure"],
            code=code,
            name=name,
            siren=record.value("ENTStructureSIREN"),
            address=record.value("street"),
            zip_code=record.value("postalCode"),
            city=record.value("l"),
            phone=record.value("telephoneNumber"),
            fax=record.value("facsimileTelephoneNumber"),
        )

        for raw in record.values("ENTStructureClasses"):
            parts = self._split(record, Category.STRUCTURE, "ENTStructureClasses", raw, minimum=2)
            if parts is None:
                continue
            grades = {GradeAttachment(grade_id=part.strip()) for part in parts[2:] if part.strip()}
            self._add_group(record, structure, GroupType.CLASS, parts[0], parts[1], grades)

        for raw in record.values("ENTStructureGroupes"):
            parts = self._split(record, Category.STRUCTURE, "ENTStructureGroupes", raw, minimum=2)
            if parts is None:
                continue
            self._add_group(record, structure, GroupType.GROUP, parts[0], parts[1], set())

        return structure

    def subject(self, record: RawRecord) -> Subject | None:
        values = self._require(record, Category.SUBJECT, "ENTMatJointure", "ENTLibelleMatiere")
        if values is None:
            return None
        if values["ENTMatJointure"] != record.external_id:
            self._issues.record(
                IssueKind.PARSE,
                f"ENTMatJointure {values['ENTMatJointure']!r} does not match identifier",
                category=Category.SUBJECT,
                external_id=record.external_id,
            )
            return None
        return Subject(
            id=record.external_id,
            external_id=record.external_id,
            name=values["ENTLibelleMatiere"],
        )

    def grade(self, record: RawRecord) -> Grade | None:
        if not record.external_id.startswith(GRADE_CODE_PREFIXES):
            log.debug("Ignoring grade %s outside handled education levels", record.external_id)
            return None
        values = self._require(
            record,
            Category.GRADE,
            "ENTMefJointure",
            "ENTLibelleMef",
            "ENTMEFRattach",
            "ENTMEFSTAT11",
        )
        if values is None:
            return None
        if values["ENTMefJointure"] != record.external_id:
            self._issues.record(
                IssueKind.PARSE,
                f"ENTMefJointure {values['ENTMefJointure']!r} does not match identifier",
                category=Category.GRADE,
                external_id=record.external_id,
            )
            return None
        return Grade(
            id=record.external_id,
            external_id=record.external_id,
            name=values["ENTLibelleMef"],
            rattach=values["ENTMEFRattach"],
            stat=values["ENTMEFSTAT11"],
        )

    # Persons -------------------------------------------------------------------

    def person(self, record: RawRecord, category: Category) -> FeedPerson | None:
        required = ["sn", "givenName"]
        if category is Category.STUDENT:
            required.append("ENTPersonStructRattach")
        values = self._require(record, category, *required)
        if values is None:
            return None

        person = Person(
            id=self._ids.next_person_id(category),
            external_id=record.external_id,
            category=category,
            first_name=normalize_first_name(values["givenName"]),
            last_name=values["sn"].upper(),
            gender=GENDERS.get(record.value("personalTitle") or ""),
            birthdate=self._birthdate(record, category),
            address=_address(record.value("ENTPersonAdresse")),
            zip_code=record.value("ENTPersonCodePostal"),
            city=record.value("ENTPersonVille"),
            country=record.value("ENTPersonPays"),
        )
        feed_person = FeedPerson(person=person, category=category)

        if category is Category.STAFF:
            self._staff(record, feed_person)
        elif category is Category.STUDENT:
            self._student(record, feed_person, values["ENTPersonStructRattach"])
        else:
            self._guardian(record, feed_person)
            self._guardians[record.external_id] = feed_person
        return feed_person

    def _staff(self, record: RawRecord, feed_person: FeedPerson) -> None:
        profiles: list[ProfileClaim] = []
        for raw in record.values("ENTPersonFonctions"):
            parts = self._split(record, Category.STAFF, "ENTPersonFonctions", raw, minimum=3)
            if parts is None:
                continue
            structure_id, function = parts[0].strip(), parts[1].strip()
            if not structure_id or function == EMPTY_FUNCTION:
                continue
            profile_type = FUNCTION_PROFILES.get(function, ProfileType.STAFF)
            profiles.append(ProfileClaim(structure_external_id=structure_id, type=profile_type))

        claims: list[GroupClaim] = []
        for attribute, group_type in (
            ("ENTAuxEnsClassesMatieres", GroupType.CLASS),
            ("ENTAuxEnsGroupesMatieres", GroupType.GROUP),
        ):
            for raw in record.values(attribute):
                parts = self._split(record, Category.STAFF, attribute, raw, exact=3)
                if parts is None:
                    continue
                claim = self._group_claim(parts, group_type, MembershipRole.TEACHER)
                if claim is not None:
                    claims.append(claim)

        mail = record.value("mail")
        if mail:
            feed_person.person.emails.add(Email(address=mail, type=EmailType.ACADEMIC))
        feed_person.carries_emails = record.has("mail")
        feed_person.profile_claims = tuple(dict.fromkeys(profiles))
        feed_person.group_claims = tuple(dict.fromkeys(claims))

    def _student(self, record: RawRecord, feed_person: FeedPerson, structure_id: str) -> None:
        person = feed_person.person
        person.attachment_id = record.value("ENTEleveStructRattachId")
        feed_person.grade_code = record.value("ENTEleveMEF")
        feed_person.profile_claims = (
            ProfileClaim(structure_external_id=structure_id, type=ProfileType.STUDENT),
        )

        claims: list[GroupClaim] = []
        for attribute, group_type in (
            ("ENTEleveClasses", GroupType.CLASS),
            ("ENTEleveGroupes", GroupType.GROUP),
        ):
            for raw in record.values(attribute):
                parts = self._split(record, Category.STUDENT, attribute, raw, exact=2)
                if parts is None:
                    continue
                claim = self._group_claim(parts, group_type, MembershipRole.STUDENT)
                if claim is not None:
                    claims.append(claim)
        feed_person.group_claims = tuple(dict.fromkeys(claims))

        links: dict[str, LinkClaim] = {}
        for raw in record.values("ENTElevePersRelEleve"):
            parts = self._split(record, Category.STUDENT, "ENTElevePersRelEleve", raw, exact=6)
            if parts is None:
                continue
            guardian_id = parts[0].strip()
            link_type = LINK_TYPES.get(parts[1].strip())
            if link_type is None:
                self._issues.record(
                    IssueKind.PARSE,
                    f"ENTElevePersRelEleve: unknown link type {parts[1]!r}",
                    category=Category.STUDENT,
                    external_id=record.external_id,
                )
                continue
            if guardian_id not in self._guardians:
                self._issues.record(
                    IssueKind.REFERENCE,
                    f"parent link to unknown guardian {guardian_id} dropped",
                    category=Category.STUDENT,
                    external_id=record.external_id,
                )
                continue
            links[guardian_id] = LinkClaim(
                guardian_external_id=guardian_id,
                type=link_type,
                financial=_flag(parts[2]),
                legal=_flag(parts[3]),
                contact=_flag(parts[4]),
            )
        feed_person.link_claims = tuple(links.values())

    def _guardian(self, record: RawRecord, feed_person: FeedPerson) -> None:
        person = feed_person.person
        for address in record.values("mail"):
            person.emails.add(Email(address=address.strip(), type=EmailType.OTHER))
        for attribute, phone_type in GUARDIAN_PHONE_ATTRIBUTES:
            for number in record.values(attribute):
                person.phones.add(Phone(type=phone_type, number=number.strip()))
        feed_person.carries_emails = record.has("mail")
        feed_person.carries_phones = any(
            record.has(attribute) for attribute, _ in GUARDIAN_PHONE_ATTRIBUTES
        )

    # Helpers ---------------------------------------------------------------------

    def _require(
        self, record: RawRecord, category: Category, *names: str
    ) -> dict[str, str] | None:
        values: dict[str, str] = {}
        missing: list[str] = []
        for name in names:
            value = record.value(name)
            if value is None:
                missing.append(name)
            else:
                values[name] = value
        if missing:
            self._issues.record(
                IssueKind.PARSE,
                f"missing required attribute(s): {', '.join(missing)}",
                category=category,
                external_id=record.external_id,
            )
            return None
        return values

    def _split(
        self,
        record: RawRecord,
        category: Category,
        attribute: str,
        raw: str,
        *,
        minimum: int | None = None,
        exact: int | None = None,
    ) -> list[str] | None:
        parts = raw.split("$")
        if (exact is not None and len(parts) != exact) or (
            minimum is not None and len(parts) < minimum
        ):
            expected = f"{exact}" if exact is not None else f"at least {minimum}"
            self._issues.record(
                IssueKind.PARSE,
                f"{attribute}: malformed value {raw!r} (expected {expected} fields)",
                category=category,
                external_id=record.external_id,
            )
            return None
        return parts

    def _add_group(
        self,
        record: RawRecord,
        structure: Structure,
        group_type: GroupType,
        raw_name: str,
        raw_description: str,
        grades: set[GradeAttachment],
    ) -> None:
        feed_name = raw_name.strip()
        label = "class" if group_type is GroupType.CLASS else "group"
        if not feed_name:
            self._issues.record(
                IssueKind.PARSE,
                f"{label} without name in structure {structure.code}",
                category=Category.STRUCTURE,
                external_id=record.external_id,
            )
            return
        if structure.find_group(group_type, feed_name) is not None:
            self._issues.record(
                IssueKind.PARSE,
                f"duplicate {label} {feed_name!r} in structure {structure.code} ignored",
                category=Category.STRUCTURE,
                external_id=record.external_id,
            )
            return
        structure.groups.append(
            Group(
                id=self._ids.next_group_id(),
                type=group_type,
                structure_id=structure.id,
                feed_name=feed_name,
                name=feed_name,
                description=raw_description.strip() or None,
                grades=grades,
            )
        )

    @staticmethod
    def _group_claim(
        parts: list[str], group_type: GroupType, role: MembershipRole
    ) -> GroupClaim | None:
        structure_id, feed_name = parts[0].strip(), parts[1].strip()
        if not structure_id or not feed_name:
            return None
        subject = parts[2].strip() if len(parts) > 2 else ""
        return GroupClaim(
            structure_external_id=structure_id,
            type=group_type,
            feed_name=feed_name,
            role=role,
            subject_code=subject or None,
        )

    def _birthdate(self, record: RawRecord, category: Category) -> date | None:
        raw = record.value("ENTPersonDateNaissance")
        if raw is None:
            return None
        try:
            return datetime.strptime(raw, DATE_FORMAT).date()  # noqa: DTZ007
        except ValueError:
            self._issues.record(
                IssueKind.PARSE,
                f"ENTPersonDateNaissance: invalid date {raw!r}",
                category=category,
                external_id=record.external_id,
            )
            return None


def normalize_first_name(value: str) -> str:
    """Capitalize each space- or hyphen-separated part: ``jean-PIERRE`` -> ``Jean-Pierre``."""

    return NAME_PART.sub(lambda match: match.group().capitalize(), value.strip().lower())


def _address(value: str | None) -> str | None:
    if value is None:
        return None
    lines = [line.strip() for line in value.split("$") if line.strip()]
    return "\n".join(lines) or None


def _flag(value: str) -> bool:
    return value.strip() == "1"
