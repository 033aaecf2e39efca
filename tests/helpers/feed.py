"""Builders for raw feed records, an in-memory feed reader and zip archives."""

from __future__ import annotations

import zipfile
from typing import TYPE_CHECKING
from xml.sax.saxutils import escape, quoteattr

from aafsync.domain.feed import CATEGORY_PATTERNS, RawRecord
from aafsync.domain.model import Category

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence
    from pathlib import Path

DEFAULT_STRUCTURE_JOINTURE = "1001"
DEFAULT_STRUCTURE_CODE = "0690001A"

ARCHIVE_ENTRY_NAMES: Mapping[Category, str] = {
    Category.STRUCTURE: "ENT2D.20260901_Complet_69_EtabEducNat_0000.xml",
    Category.STAFF: "ENT2D.20260901_Complet_69_PersEducNat_0000.xml",
    Category.STUDENT: "ENT2D.20260901_Complet_69_Eleve_0000.xml",
    Category.GUARDIAN: "ENT2D.20260901_Complet_69_PersRelEleve_0000.xml",
    Category.GRADE: "ENT2D.20260901_Complet_69_MefEducNat_0000.xml",
    Category.SUBJECT: "ENT2D.20260901_Complet_69_MatiereEducNat_0000.xml",
}


def _attrs(**values: str | Sequence[str] | None) -> dict[str, tuple[str, ...]]:
    attributes: dict[str, tuple[str, ...]] = {}
    for name, value in values.items():
        if value is None:
            continue
        attributes[name] = (value,) if isinstance(value, str) else tuple(value)
    return attributes


def structure_record(
    jointure: str = DEFAULT_STRUCTURE_JOINTURE,
    *,
    code: str = DEFAULT_STRUCTURE_CODE,
    name: str = "College Example",
    classes: Sequence[str] = (),
    groups: Sequence[str] = (),
    city: str | None = None,
) -> RawRecord:
    """``classes`` are ``name$description[$grade...]``, ``groups`` ``name$description``."""

    return RawRecord(
        external_id=jointure,
        object_type="ENTEtablissement",
        attributes=_attrs(
            ENTStructureJointure=jointure,
            ENTStructureUAI=code,
            ENTStructureNomCourant=name,
            ENTStructureClasses=classes or None,
            ENTStructureGroupes=groups or None,
            l=city,
        ),
    )


def subject_record(code: str, name: str) -> RawRecord:
    return RawRecord(
        external_id=code,
        attributes=_attrs(ENTMatJointure=code, ENTLibelleMatiere=name),
    )


def grade_record(
    code: str, name: str, *, rattach: str = "10010012110", stat: str = "1001"
) -> RawRecord:
    return RawRecord(
        external_id=code,
        attributes=_attrs(
            ENTMefJointure=code,
            ENTLibelleMef=name,
            ENTMEFRattach=rattach,
            ENTMEFSTAT11=stat,
        ),
    )


def staff_record(
    external_id: str,
    *,
    first_name: str = "Alice",
    last_name: str = "Martin",
    functions: Sequence[str] = (f"{DEFAULT_STRUCTURE_JOINTURE}$ENS$ENSEIGNEMENT",),
    classes: Sequence[str] = (),
    groups: Sequence[str] = (),
    mail: str | None = None,
) -> RawRecord:
    """``functions`` are ``structure$function$label``, ``classes`` ``structure$class$subject``."""

    return RawRecord(
        external_id=external_id,
        object_type="ENTAuxEnseignant",
        attributes=_attrs(
            sn=last_name,
            givenName=first_name,
            ENTPersonFonctions=functions or None,
            ENTAuxEnsClassesMatieres=classes or None,
            ENTAuxEnsGroupesMatieres=groups or None,
            mail=mail,
        ),
    )


def student_record(
    external_id: str,
    *,
    first_name: str = "Lucas",
    last_name: str = "Bernard",
    structure: str = DEFAULT_STRUCTURE_JOINTURE,
    classes: Sequence[str] = (),
    groups: Sequence[str] = (),
    grade: str | None = None,
    attachment_id: str | None = None,
    birthdate: str | None = None,
    guardians: Sequence[str] = (),
) -> RawRecord:
    """``classes`` are ``structure$class``, ``guardians`` ``id$type$fin$legal$contact$x``."""

    return RawRecord(
        external_id=external_id,
        object_type="ENTEleve",
        attributes=_attrs(
            sn=last_name,
            givenName=first_name,
            ENTPersonStructRattach=structure,
            ENTEleveStructRattachId=attachment_id,
            ENTEleveMEF=grade,
            ENTEleveClasses=classes or None,
            ENTEleveGroupes=groups or None,
            ENTPersonDateNaissance=birthdate,
            ENTElevePersRelEleve=guardians or None,
        ),
    )


def guardian_record(
    external_id: str,
    *,
    first_name: str = "Claire",
    last_name: str = "Bernard",
    mail: str | None = None,
    mobile: str | None = None,
) -> RawRecord:
    return RawRecord(
        external_id=external_id,
        object_type="ENTPersRelEleve",
        attributes=_attrs(sn=last_name, givenName=first_name, mail=mail, mobile=mobile),
    )


def guardian_link(guardian_id: str, link_type: str = "2", *, legal: bool = True) -> str:
    return f"{guardian_id}${link_type}$1${'1' if legal else '0'}$1$0"


class InMemoryFeed:
    """Feed reader over prepared records, counting reads per category."""

    def __init__(self, records: Mapping[Category, Iterable[RawRecord]] | None = None) -> None:
        self._records: dict[Category, list[RawRecord]] = {
            category: list(items) for category, items in (records or {}).items()
        }
        self.reads: dict[Category, int] = {}

    def add(self, category: Category, *records: RawRecord) -> None:
        self._records.setdefault(category, []).extend(records)

    def read(self, pattern: str) -> list[RawRecord]:
        for category, category_pattern in CATEGORY_PATTERNS.items():
            if category_pattern == pattern:
                self.reads[category] = self.reads.get(category, 0) + 1
                return list(self._records.get(category, ()))
        raise AssertionError(f"unexpected pattern {pattern}")


def render_document(records: Iterable[RawRecord]) -> str:
    """Render records as an ``addRequest`` batch document."""

    lines = ['<?xml version="1.0" encoding="UTF-8"?>', "<batchRequest>"]
    for record in records:
        lines.append(f"  <{record.operation}>")
        lines.append(f"    <identifier><id>{escape(record.external_id)}</id></identifier>")
        if record.object_type is not None:
            lines.append("    <operationalAttributes>")
            lines.append(
                f'      <attr name="categoriePersonne"><value>{escape(record.object_type)}'
                "</value></attr>"
            )
            lines.append("    </operationalAttributes>")
        lines.append("    <attributes>")
        for name, values in record.attributes.items():
            rendered = "".join(f"<value>{escape(value)}</value>" for value in values)
            lines.append(f"      <attr name={quoteattr(name)}>{rendered}</attr>")
        lines.append("    </attributes>")
        lines.append(f"  </{record.operation}>")
    lines.append("</batchRequest>")
    return "\n".join(lines)


def write_archive(path: Path, records: Mapping[Category, Iterable[RawRecord]]) -> Path:
    with zipfile.ZipFile(path, "w") as archive:
        for category, items in records.items():
            archive.writestr(ARCHIVE_ENTRY_NAMES[category], render_document(items))
    return path
