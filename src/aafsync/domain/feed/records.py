"""Raw attribute records as yielded by a feed reader."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Final

from aafsync.domain.model import Category

CATEGORY_PATTERNS: Final[Mapping[Category, str]] = {
    Category.STRUCTURE: r"_EtabEducNat_\d+\.xml$",
    Category.STAFF: r"_PersEducNat_\d+\.xml$",
    Category.STUDENT: r"_Eleve_\d+\.xml$",
    Category.GUARDIAN: r"_PersRelEleve_\d+\.xml$",
    Category.GRADE: r"_MefEducNat_\d+\.xml$",
    Category.SUBJECT: r"_MatiereEducNat_\d+\.xml$",
}


@dataclass(frozen=True, slots=True, kw_only=True)
class RawRecord:
    """One ``addRequest``/``modifyRequest`` element of a feed document.

    Attribute values keep their document order; single-valued attributes are
    one-element tuples.
    """

    external_id: str
    attributes: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    operation: str = "addRequest"
    object_type: str | None = None

    def has(self, name: str) -> bool:
        return name in self.attributes

    def values(self, name: str) -> tuple[str, ...]:
        """Return the non-blank values of ``name`` (empty when absent)."""

        return tuple(value for value in self.attributes.get(name, ()) if value.strip())

    def value(self, name: str) -> str | None:
        """Return the first non-blank value of ``name``, stripped."""

        for value in self.attributes.get(name, ()):
            stripped = value.strip()
            if stripped:
                return stripped
        return None
