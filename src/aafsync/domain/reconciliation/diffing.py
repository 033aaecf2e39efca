"""Generic collection and field diff helpers."""

from __future__ import annotations

import operator
from typing import TYPE_CHECKING

from .contracts import CollectionDiff, FieldChange

if TYPE_CHECKING:
    from collections.abc import Callable, Hashable, Iterable


def diff_collection[T](
    current: Iterable[T],
    desired: Iterable[T],
    *,
    key: Callable[[T], Hashable] | None = None,
    same: Callable[[T, T], bool] = operator.eq,
) -> CollectionDiff[T]:
    """Partition ``current`` and ``desired`` into add/change/remove sets.

    Without ``key`` items are compared by full equality, so a differing item is
    reported as one removal plus one addition. With ``key`` items sharing a key
    are paired and reported as a change when ``same`` says they differ.
    """

    key_of: Callable[[T], Hashable] = key if key is not None else _identity
    current_by_key: dict[Hashable, T] = {}
    for item in current:
        current_by_key.setdefault(key_of(item), item)

    diff: CollectionDiff[T] = CollectionDiff()
    desired_keys: set[Hashable] = set()
    for item in desired:
        item_key = key_of(item)
        if item_key in desired_keys:
            continue
        desired_keys.add(item_key)
        existing = current_by_key.get(item_key)
        if existing is None:
            diff.add.append(item)
        elif not same(existing, item):
            diff.change.append((existing, item))

    diff.remove.extend(
        item for item_key, item in current_by_key.items() if item_key not in desired_keys
    )
    return diff


def diff_fields(current: object, desired: object, names: Iterable[str]) -> tuple[FieldChange, ...]:
    """Return the changes of ``names`` carried by ``desired``.

    Fields left unset (``None``) on the desired side are not part of the diff.
    """

    changes: list[FieldChange] = []
    for name in names:
        new = getattr(desired, name)
        if new is None:
            continue
        old = getattr(current, name)
        if old != new:
            changes.append(FieldChange(name=name, old=old, new=new))
    return tuple(changes)


def _identity(item: object) -> Hashable:
    return item  # type: ignore[return-value]
