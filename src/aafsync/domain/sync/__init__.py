"""Run orchestration: requests, stages, results."""

from __future__ import annotations

from .context import InvalidTransitionError, RunContext, RunState, SyncRequest
from .garbage import GarbageStage
from .orchestrator import Synchronizer, SyncStage, UnitOfWorkFactory, build_stages
from .persons import PersonStage, build_desired
from .reference import ReferenceStage
from .results import GARBAGE_STAGE, RunResult, StageStats, to_jsonable
from .structures import StructureStage

__all__ = [
    "GARBAGE_STAGE",
    "GarbageStage",
    "InvalidTransitionError",
    "PersonStage",
    "ReferenceStage",
    "RunContext",
    "RunResult",
    "RunState",
    "StageStats",
    "StructureStage",
    "SyncRequest",
    "SyncStage",
    "Synchronizer",
    "UnitOfWorkFactory",
    "build_desired",
    "build_stages",
    "to_jsonable",
]
