"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class Category(StrEnum):
    """Entity categories a run can synchronise, one per feed file family."""

    STRUCTURE = "structure"
    SUBJECT = "subject"
    GRADE = "grade"
    STAFF = "staff"
    STUDENT = "student"
    GUARDIAN = "guardian"


class GroupType(StrEnum):
    CLASS = "CLS"
    GROUP = "GRP"


class MembershipRole(StrEnum):
    STUDENT = "ELV"
    TEACHER = "ENS"
    HOMEROOM = "PRI"


class ProfileType(StrEnum):
    """Role binding of a person to a structure.

    ``ADM`` is granted by hand in the directory and never synchronised.
    """

    ADMIN = "ADM"
    DIRECTOR = "DIR"
    TEACHER = "ENS"
    LIBRARIAN = "DOC"
    EDUCATION = "EVS"
    STAFF = "ETA"
    STUDENT = "ELV"
    GUARDIAN = "TUT"


class PhoneType(StrEnum):
    WORK = "TRAVAIL"
    HOME = "MAISON"
    MOBILE = "PORTABLE"


class EmailType(StrEnum):
    ACADEMIC = "Academique"
    OTHER = "Autre"


class LinkType(StrEnum):
    FATHER = "PERE"
    MOTHER = "MERE"
    TUTOR = "TUTEUR"
    FAMILY_MEMBER = "A_MMBR"
    SOCIAL_SERVICES = "DDASS"
    OTHER_CASE = "A_CAS"
    SELF = "ELEVE"


class FeedFormat(StrEnum):
    """Full exports list every record, delta exports only changed ones."""

    FULL = "full"
    DELTA = "delta"


class RunMode(StrEnum):
    MANUAL = "manual"
    AUTOMATIC = "automatic"
