"""SQLAlchemy adapter package for aafsync."""

from __future__ import annotations

from .locking import SqlAlchemyScopeLease
from .mappings import metadata
from .repositories import (
    SqlAlchemyGradeRepository,
    SqlAlchemyGroupRepository,
    SqlAlchemyPersonRepository,
    SqlAlchemyStructureRepository,
    SqlAlchemySubjectRepository,
    SqlAlchemySyncRunRepository,
)
from .unit_of_work import SqlAlchemyDirectoryUnitOfWork, shutdown, startup

__all__ = [
    "SqlAlchemyDirectoryUnitOfWork",
    "SqlAlchemyGradeRepository",
    "SqlAlchemyGroupRepository",
    "SqlAlchemyPersonRepository",
    "SqlAlchemyScopeLease",
    "SqlAlchemyStructureRepository",
    "SqlAlchemySubjectRepository",
    "SqlAlchemySyncRunRepository",
    "metadata",
    "shutdown",
    "startup",
]
