"""Ports consumed by the synchronisation core."""

from __future__ import annotations

from .feed import FeedReader
from .locking import ALL_STRUCTURES, ScopeLease
from .persistence import (
    GradeRepository,
    GroupRepository,
    PersonRepository,
    ReferenceRepository,
    StructureRepository,
    SubjectRepository,
    SyncRunRepository,
)
from .unit_of_work import (
    DirectoryRepositories,
    DirectoryUnitOfWork,
    RepositoryCollection,
    UnitOfWork,
)

__all__ = [
    "ALL_STRUCTURES",
    "DirectoryRepositories",
    "DirectoryUnitOfWork",
    "FeedReader",
    "GradeRepository",
    "GroupRepository",
    "PersonRepository",
    "ReferenceRepository",
    "RepositoryCollection",
    "ScopeLease",
    "StructureRepository",
    "SubjectRepository",
    "SyncRunRepository",
    "UnitOfWork",
]
