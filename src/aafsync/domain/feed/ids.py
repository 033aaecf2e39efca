"""Run-owned synthetic identifiers for feed-side entities."""

from __future__ import annotations

from dataclasses import dataclass, field

from aafsync.domain.model import SYNTHETIC_ID_PREFIXES, Category


@dataclass(slots=True)
class SyntheticIds:
    """Monotonic counters handing out provisional ids for one run.

    Person ids are category-scoped (``TMPSTF000001``...), group ids are negative
    integers so they can never collide with stored groups. A fresh instance is
    created for every run.
    """

    _person_counters: dict[Category, int] = field(default_factory=dict)
    _group_counter: int = 0

    def next_person_id(self, category: Category) -> str:
        prefix = SYNTHETIC_ID_PREFIXES[category]
        value = self._person_counters.get(category, 0) + 1
        self._person_counters[category] = value
        return f"{prefix}{value:06d}"

    def next_group_id(self) -> int:
        self._group_counter -= 1
        return self._group_counter
