"""Soft issue log and hard failures raised by synchronisation runs.

Soft issues (parse, reference, identity, ambiguity) never abort a run: they are
collected on the run context and returned with the result. Hard failures are
exceptions; they roll back the run's transaction and propagate to the caller.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from logging import getLogger
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from aafsync.domain.model import Category

log = getLogger(__name__)


class IssueKind(StrEnum):
    PARSE = "parse"
    REFERENCE = "reference"
    IDENTITY = "identity"
    AMBIGUOUS = "ambiguous"


@dataclass(frozen=True, slots=True, kw_only=True)
class SyncIssue:
    kind: IssueKind
    message: str
    category: Category | None = None
    external_id: str | None = None

    def __str__(self) -> str:
        parts = [self.kind.value]
        if self.category is not None:
            parts.append(self.category.value)
        if self.external_id is not None:
            parts.append(self.external_id)
        return f"[{'/'.join(parts)}] {self.message}"


@dataclass(slots=True)
class IssueLog:
    """Append-only collection of soft issues for one run."""

    issues: list[SyncIssue] = field(default_factory=list)

    def record(
        self,
        kind: IssueKind,
        message: str,
        *,
        category: Category | None = None,
        external_id: str | None = None,
    ) -> SyncIssue:
        issue = SyncIssue(kind=kind, message=message, category=category, external_id=external_id)
        self.issues.append(issue)
        log.warning("%s", issue)
        return issue

    def __len__(self) -> int:
        return len(self.issues)


class SyncError(RuntimeError):
    """Base class for hard synchronisation failures."""


class FeedReadError(SyncError):
    """Raised when the feed archive or one of its documents cannot be read."""


class RunInProgressError(SyncError):
    """Raised when another run already holds a lease on an overlapping scope."""

    def __init__(self, keys: tuple[str, ...]) -> None:
        self.keys = keys
        super().__init__(f"Synchronisation already running for: {', '.join(keys)}")
