from __future__ import annotations

import io
import os
import zipfile
from typing import TYPE_CHECKING

import pytest

from aafsync.adapters.feed import (
    ZipFeedReader,
    infer_format,
    list_archives,
    parse_document,
)
from aafsync.domain.errors import FeedReadError
from aafsync.domain.feed import CATEGORY_PATTERNS
from aafsync.domain.model import Category, FeedFormat
from tests.helpers.feed import (
    guardian_record,
    render_document,
    staff_record,
    structure_record,
    student_record,
    write_archive,
)

if TYPE_CHECKING:
    from pathlib import Path

MODIFY_DOCUMENT = b"""<?xml version="1.0" encoding="UTF-8"?>
<batchRequest xmlns="urn:oasis:names:tc:DSML:2:0:core">
  <!-- generated nightly -->
  <modifyRequest>
    <identifier><id>E1</id></identifier>
    <modifications>
      <modification name="ENTEleveClasses" operation="replace">
        <value>1001$5B</value>
      </modification>
    </modifications>
  </modifyRequest>
  <addRequest>
    <identifier><id>  </id></identifier>
    <attributes><attr name="sn"><value>Nobody</value></attr></attributes>
  </addRequest>
</batchRequest>
"""


def test_reader_selects_entries_by_pattern(tmp_path: Path) -> None:
    archive = write_archive(
        tmp_path / "ENT2D.20260901_Complet_69.zip",
        {
            Category.STRUCTURE: [structure_record(classes=["6A$Sixieme A", "6B$Sixieme B"])],
            Category.STAFF: [staff_record("S1", mail="alice.martin@ac-lyon.fr")],
            Category.STUDENT: [student_record("E1", classes=["1001$6A"])],
        },
    )
    reader = ZipFeedReader(archive)

    (structure,) = reader.read(CATEGORY_PATTERNS[Category.STRUCTURE])
    (staff,) = reader.read(CATEGORY_PATTERNS[Category.STAFF])

    assert structure.external_id == "1001"
    assert structure.values("ENTStructureClasses") == ("6A$Sixieme A", "6B$Sixieme B")
    assert structure.object_type == "ENTEtablissement"
    assert staff.value("mail") == "alice.martin@ac-lyon.fr"
    assert reader.read(CATEGORY_PATTERNS[Category.GUARDIAN]) == []


def test_entries_of_one_family_are_concatenated_in_name_order(tmp_path: Path) -> None:
    path = tmp_path / "feed.zip"
    with zipfile.ZipFile(path, "w") as archive:
        archive.writestr(
            "ENT2D_PersRelEleve_0001.xml", render_document([guardian_record("G2")])
        )
        archive.writestr(
            "ENT2D_PersRelEleve_0000.xml", render_document([guardian_record("G1")])
        )

    records = ZipFeedReader(path).read(CATEGORY_PATTERNS[Category.GUARDIAN])

    assert [record.external_id for record in records] == ["G1", "G2"]


def test_modify_requests_are_read_and_blank_ids_passed_on() -> None:
    modify, blank = parse_document(io.BytesIO(MODIFY_DOCUMENT), source="delta.xml")

    assert modify.operation == "modifyRequest"
    assert modify.values("ENTEleveClasses") == ("1001$5B",)
    assert blank.external_id == ""
    assert blank.value("sn") == "Nobody"


def test_malformed_document_raises_feed_read_error() -> None:
    with pytest.raises(FeedReadError, match="broken.xml"):
        parse_document(io.BytesIO(b"<batchRequest><addRequest>"), source="broken.xml")


def test_not_a_zip_raises_feed_read_error(tmp_path: Path) -> None:
    path = tmp_path / "feed.zip"
    path.write_text("not a zip archive")

    with pytest.raises(FeedReadError, match="Not a zip archive"):
        ZipFeedReader(path).read(CATEGORY_PATTERNS[Category.STUDENT])


def test_missing_archive_raises_feed_read_error(tmp_path: Path) -> None:
    with pytest.raises(FeedReadError, match="Cannot read feed archive"):
        ZipFeedReader(tmp_path / "absent.zip").read(CATEGORY_PATTERNS[Category.STUDENT])


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("ENT2D.20260901_Complet_69.zip", FeedFormat.FULL),
        ("ENT2D.20260902_Delta_69.zip", FeedFormat.DELTA),
        ("export-DELTA.zip", FeedFormat.DELTA),
    ],
)
def test_infer_format_from_archive_name(name: str, expected: FeedFormat) -> None:
    assert infer_format(name) is expected


def test_list_archives_newest_first(tmp_path: Path) -> None:
    older = write_archive(tmp_path / "ENT2D.20260901_Complet_69.zip", {})
    newer = write_archive(tmp_path / "ENT2D.20260902_Delta_69.zip", {})
    (tmp_path / "notes.txt").write_text("ignored")
    os.utime(older, (1_000_000_000, 1_000_000_000))
    os.utime(newer, (1_000_000_100, 1_000_000_100))

    archives = list_archives(tmp_path)

    assert [archive.name for archive in archives] == [newer.name, older.name]
    assert archives[0].format is FeedFormat.DELTA
    assert archives[0].to_dict()["format"] == "delta"


def test_list_archives_requires_directory(tmp_path: Path) -> None:
    with pytest.raises(FeedReadError, match="does not exist"):
        list_archives(tmp_path / "missing")
