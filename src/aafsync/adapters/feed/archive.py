"""Zip archive feed reader.

Responsibilities of this adapter:
- select archive entries by filename regular expression
- stream each XML document with ``lxml.etree.iterparse`` and extract the
  ``addRequest``/``modifyRequest`` elements as raw records
- validate every extracted record through :class:`FeedRecordPayload`; records
  without an identifier are passed on so the normalizer can report them
- list the archives available in a feed directory

Out of scope for this adapter:
- interpreting attributes (see ``aafsync.domain.feed.normalize``)
- caching across stages (see ``aafsync.domain.feed.cache``)
"""

from __future__ import annotations

import re
import zipfile
from dataclasses import dataclass
from datetime import UTC, datetime
from logging import getLogger
from pathlib import Path
from typing import TYPE_CHECKING

from lxml import etree
from pydantic import ValidationError

from aafsync.domain.errors import FeedReadError
from aafsync.domain.model import FeedFormat

from .schema import FeedRecordPayload

if TYPE_CHECKING:
    from collections.abc import Iterator
    from typing import IO

    from aafsync.domain.feed.records import RawRecord

log = getLogger(__name__)

REQUEST_TAGS = frozenset({"addRequest", "modifyRequest"})
DELTA_MARKER = re.compile(r"delta", re.IGNORECASE)


def _localname(element: etree._Element) -> str:
    return etree.QName(element).localname


def _children(element: etree._Element, name: str) -> Iterator[etree._Element]:
    for child in element:
        if isinstance(child.tag, str) and _localname(child) == name:
            yield child


def _child(element: etree._Element, name: str) -> etree._Element | None:
    return next(_children(element, name), None)


def _text(element: etree._Element) -> str:
    return (element.text or "").strip()


def _attribute_values(container: etree._Element | None) -> dict[str, tuple[str, ...]]:
    """Collect ``attr[@name]/value*`` (or ``modification[@name]/value*``) pairs."""

    attributes: dict[str, tuple[str, ...]] = {}
    if container is None:
        return attributes
    for item in container:
        if not isinstance(item.tag, str) or _localname(item) not in {"attr", "modification"}:
            continue
        name = item.get("name")
        if not name:
            continue
        values = tuple(_text(value) for value in _children(item, "value"))
        attributes[name] = attributes.get(name, ()) + values
    return attributes


def _object_type(element: etree._Element) -> str | None:
    operational = _attribute_values(_child(element, "operationalAttributes"))
    for values in operational.values():
        if values:
            return values[0]
    return None


def _payload(element: etree._Element) -> dict[str, object]:
    identifier = _child(element, "identifier")
    id_element = _child(identifier, "id") if identifier is not None else None
    attributes = _child(element, "attributes")
    if attributes is None:
        attributes = _child(element, "modifications")
    return {
        "id": _text(id_element) if id_element is not None else "",
        "operation": _localname(element),
        "operationalAttributes": _object_type(element),
        "attributes": _attribute_values(attributes),
    }


def parse_document(stream: IO[bytes], *, source: str = "<stream>") -> list[RawRecord]:
    """Extract the request elements of one XML document."""

    records: list[RawRecord] = []
    try:
        for _event, element in etree.iterparse(
            stream,
            events=("end",),
            remove_comments=True,
            resolve_entities=False,
            no_network=True,
        ):
            if not isinstance(element.tag, str) or _localname(element) not in REQUEST_TAGS:
                continue
            try:
                payload = FeedRecordPayload.model_validate(_payload(element))
            except ValidationError as exc:
                log.warning(
                    "Skipping invalid %s in %s: %s",
                    _localname(element),
                    source,
                    exc.errors()[0]["msg"],
                )
            else:
                records.append(payload.to_record())
            element.clear()
            while element.getprevious() is not None:
                del element.getparent()[0]
    except etree.XMLSyntaxError as exc:
        raise FeedReadError(f"Malformed XML document {source}: {exc}") from exc
    return records


class ZipFeedReader:
    """Read raw records from the XML entries of a feed zip archive."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    def read(self, pattern: str) -> list[RawRecord]:
        matcher = re.compile(pattern)
        records: list[RawRecord] = []
        try:
            with zipfile.ZipFile(self.path) as archive:
                for name in sorted(archive.namelist()):
                    if not matcher.search(name):
                        continue
                    with archive.open(name) as stream:
                        entry_records = parse_document(stream, source=name)
                    log.debug("Read %s records from %s", len(entry_records), name)
                    records.extend(entry_records)
        except zipfile.BadZipFile as exc:
            raise FeedReadError(f"Not a zip archive: {self.path}") from exc
        except OSError as exc:
            raise FeedReadError(f"Cannot read feed archive {self.path}: {exc}") from exc
        return records


@dataclass(frozen=True, slots=True, kw_only=True)
class FeedArchive:
    """A feed archive found in the feed directory."""

    name: str
    path: Path
    size: int
    modified: datetime
    format: FeedFormat

    def to_dict(self) -> dict[str, object]:
        return {
            "name": self.name,
            "size": self.size,
            "modified": self.modified.isoformat(),
            "format": self.format.value,
        }


def infer_format(name: str) -> FeedFormat:
    return FeedFormat.DELTA if DELTA_MARKER.search(name) else FeedFormat.FULL


def describe_archive(path: Path) -> FeedArchive:
    stat = path.stat()
    return FeedArchive(
        name=path.name,
        path=path,
        size=stat.st_size,
        modified=datetime.fromtimestamp(stat.st_mtime, tz=UTC),
        format=infer_format(path.name),
    )


def list_archives(directory: Path | str) -> list[FeedArchive]:
    """Return the zip archives of ``directory``, newest first."""

    root = Path(directory)
    if not root.is_dir():
        raise FeedReadError(f"Feed directory does not exist: {root}")
    archives = [describe_archive(path) for path in root.glob("*.zip") if path.is_file()]
    archives.sort(key=lambda archive: (archive.modified, archive.name), reverse=True)
    return archives


if TYPE_CHECKING:
    from aafsync.domain.ports.feed import FeedReader

    _reader_check: FeedReader = ZipFeedReader("feed.zip")
