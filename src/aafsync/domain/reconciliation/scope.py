"""Scope resolution: which structures take part in a run.

Responsibilities of this stage:
- pair feed structures with target structures (external id, then code)
- compute ``in_scope = candidates ∩ structures present in the feed`` where the
  candidates are the caller's list or the sync-enabled target structures
- expose the feed-id to target-id mapping used to resolve person claims

Structures missing on either side are excluded silently: partial feed
coverage is expected.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from aafsync.domain.model import Structure

log = getLogger(__name__)


@dataclass(frozen=True, slots=True, kw_only=True)
class Scope:
    structure_ids: frozenset[str] = frozenset()
    # feed structure id (jointure) -> target structure id, in-scope only
    by_external_id: Mapping[str, str] = field(default_factory=dict)
    # target structure id -> feed structure
    feed_structures: Mapping[str, Structure] = field(default_factory=dict)
    # feed structures the target does not know
    unknown_feed_structures: tuple[Structure, ...] = ()
    # candidate target structures the feed does not mention
    absent_structures: tuple[Structure, ...] = ()

    def __contains__(self, structure_id: object) -> bool:
        return structure_id in self.structure_ids

    def __len__(self) -> int:
        return len(self.structure_ids)

    def resolve(self, structure_external_id: str) -> str | None:
        """Return the in-scope target id for a feed structure id, if any."""

        return self.by_external_id.get(structure_external_id)


def pair_structures(
    targets: Sequence[Structure], feed: Iterable[Structure]
) -> tuple[dict[str, Structure], list[Structure]]:
    """Pair feed structures with target ones.

    Returns the pairing keyed by target id and the feed structures left over.
    """

    by_external_id = {
        target.external_id: target for target in targets if target.external_id is not None
    }
    by_code: dict[str, Structure] = {}
    for target in targets:
        by_code.setdefault(target.id, target)
        if target.code:
            by_code.setdefault(target.code, target)

    paired: dict[str, Structure] = {}
    unknown: list[Structure] = []
    for structure in feed:
        target = None
        if structure.external_id is not None:
            target = by_external_id.get(structure.external_id)
        if target is None and structure.code:
            target = by_code.get(structure.code)
        if target is None or target.id in paired:
            unknown.append(structure)
            continue
        paired[target.id] = structure
    return paired, unknown


def resolve_scope(
    *,
    targets: Sequence[Structure],
    feed: Iterable[Structure],
    requested: Iterable[str] | None = None,
) -> Scope:
    paired, unknown = pair_structures(targets, feed)
    targets_by_id = {target.id: target for target in targets}

    if requested is None:
        candidates = [target for target in targets if target.sync_enabled]
    else:
        candidates = []
        for structure_id in dict.fromkeys(requested):
            target = targets_by_id.get(structure_id)
            if target is None:
                log.info("Requested structure %s is unknown to the directory", structure_id)
                continue
            candidates.append(target)

    in_scope = {target.id for target in candidates if target.id in paired}
    absent = tuple(target for target in candidates if target.id not in paired)
    by_external_id: dict[str, str] = {}
    for structure_id in in_scope:
        external_id = paired[structure_id].external_id
        if external_id is not None:
            by_external_id[external_id] = structure_id

    log.info(
        "Resolved scope: %s structure(s) in scope, %s absent from feed, %s unknown to directory",
        len(in_scope),
        len(absent),
        len(unknown),
    )
    return Scope(
        structure_ids=frozenset(in_scope),
        by_external_id=by_external_id,
        feed_structures={structure_id: paired[structure_id] for structure_id in in_scope},
        unknown_feed_structures=tuple(unknown),
        absent_structures=absent,
    )
