"""Lookup tables over target-side persons and groups."""

from __future__ import annotations

from collections import defaultdict
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator
    from datetime import date

    from aafsync.domain.model import Group, GroupType, Person, Structure


def name_key(first_name: str | None, last_name: str | None, birthdate: date | None) -> str | None:
    """Return the normalized ``firstname$lastname$birthdate`` key, if complete."""

    if not first_name or not last_name or birthdate is None:
        return None
    return f"{first_name.strip().lower()}${last_name.strip().lower()}${birthdate.isoformat()}"


class PersonIndex:
    """Target persons keyed by every identity the matcher may use.

    Secondary keys map to lists: several legacy records may share a name or an
    email, which the matcher reports as an ambiguity.
    """

    def __init__(self, persons: Iterable[Person] = ()) -> None:
        self._by_id: dict[str, Person] = {}
        self._by_external_id: dict[str, Person] = {}
        self._by_email: defaultdict[str, list[Person]] = defaultdict(list)
        self._by_name: defaultdict[str, list[Person]] = defaultdict(list)
        self._by_attachment: defaultdict[str, list[Person]] = defaultdict(list)
        for person in persons:
            self.add(person)

    def add(self, person: Person) -> None:
        self._by_id[person.id] = person
        if person.external_id is not None:
            self._by_external_id[person.external_id] = person
        for address in person.academic_emails:
            self._by_email[address.lower()].append(person)
        key = name_key(person.first_name, person.last_name, person.birthdate)
        if key is not None:
            self._by_name[key].append(person)
        if person.attachment_id:
            self._by_attachment[person.attachment_id].append(person)

    def by_external_id(self, external_id: str) -> Person | None:
        return self._by_external_id.get(external_id)

    def by_academic_email(self, address: str) -> tuple[Person, ...]:
        return tuple(self._by_email.get(address.lower(), ()))

    def by_name_key(self, key: str) -> tuple[Person, ...]:
        return tuple(self._by_name.get(key, ()))

    def by_attachment_id(self, attachment_id: str) -> tuple[Person, ...]:
        return tuple(self._by_attachment.get(attachment_id, ()))

    def __iter__(self) -> Iterator[Person]:
        return iter(self._by_id.values())

    def __len__(self) -> int:
        return len(self._by_id)


class GroupIndex:
    """Feed-managed groups keyed by ``(structure, type, feed-name)``."""

    def __init__(self, structures: Iterable[Structure] = ()) -> None:
        self._by_key: dict[tuple[str, GroupType, str], Group] = {}
        self._structure_by_group: dict[int, str] = {}
        for structure in structures:
            for group in structure.groups:
                self.add(group)

    def add(self, group: Group) -> None:
        if group.feed_name is None:
            return
        self._by_key[(group.structure_id, group.type, group.feed_name)] = group
        self._structure_by_group[group.id] = group.structure_id

    def find(self, structure_id: str, group_type: GroupType, feed_name: str) -> Group | None:
        return self._by_key.get((structure_id, group_type, feed_name))

    def group_ids_in(self, structure_ids: Iterable[str]) -> frozenset[int]:
        wanted = set(structure_ids)
        return frozenset(
            group_id
            for group_id, structure_id in self._structure_by_group.items()
            if structure_id in wanted
        )

    def structures_by_group(self, structure_ids: Iterable[str]) -> dict[int, str]:
        wanted = set(structure_ids)
        return {
            group_id: structure_id
            for group_id, structure_id in self._structure_by_group.items()
            if structure_id in wanted
        }
