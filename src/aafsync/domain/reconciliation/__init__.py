"""Reconciliation core: scope, matching, diffing, garbage collection and apply."""

from __future__ import annotations

from .apply import (
    apply_garbage,
    apply_person_add,
    apply_person_change,
    apply_reference_diff,
    apply_structures_diff,
)
from .contracts import (
    CollectionDiff,
    FieldChange,
    GarbageDiff,
    GroupChange,
    GroupsDiff,
    ItemChange,
    PersonChange,
    PersonRevocation,
    PersonsDiff,
    ReferenceDiff,
    StructureChange,
    StructuresDiff,
)
from .diff import diff_groups, diff_person, diff_reference, diff_structure, diff_structures
from .diffing import diff_collection, diff_fields
from .gc import collect_garbage
from .index import GroupIndex, PersonIndex, name_key
from .match import MatchKind, MatchResult, MatchStatus, PersonMatcher
from .scope import Scope, resolve_scope

__all__ = [
    "CollectionDiff",
    "FieldChange",
    "GarbageDiff",
    "GroupChange",
    "GroupIndex",
    "GroupsDiff",
    "ItemChange",
    "MatchKind",
    "MatchResult",
    "MatchStatus",
    "PersonChange",
    "PersonIndex",
    "PersonMatcher",
    "PersonRevocation",
    "PersonsDiff",
    "ReferenceDiff",
    "Scope",
    "StructureChange",
    "StructuresDiff",
    "apply_garbage",
    "apply_person_add",
    "apply_person_change",
    "apply_reference_diff",
    "apply_structures_diff",
    "collect_garbage",
    "diff_collection",
    "diff_fields",
    "diff_groups",
    "diff_person",
    "diff_reference",
    "diff_structure",
    "diff_structures",
    "name_key",
    "resolve_scope",
]
