"""Application orchestration entry points."""

from __future__ import annotations

from logging import getLogger
from pathlib import Path
from typing import TYPE_CHECKING

from aafsync.adapters.feed import ZipFeedReader, describe_archive, list_archives
from aafsync.adapters.sqlalchemy import SqlAlchemyDirectoryUnitOfWork, SqlAlchemyScopeLease
from aafsync.adapters.sqlalchemy.unit_of_work import is_started, startup
from aafsync.config import get_feed_dir, get_sync_config
from aafsync.domain.errors import FeedReadError
from aafsync.domain.model import Category, FeedFormat, RunMode
from aafsync.domain.sync import Synchronizer, SyncRequest

if TYPE_CHECKING:
    from collections.abc import Iterable

    from aafsync.adapters.feed import FeedArchive
    from aafsync.domain.model.audit import SyncRun
    from aafsync.domain.ports import FeedReader, ScopeLease
    from aafsync.domain.sync import RunResult, UnitOfWorkFactory


log = getLogger(__name__)


def _ensure_started() -> None:
    if not is_started():
        startup()


def resolve_archive(archive: Path | str) -> Path:
    """Return ``archive`` as a path, looking it up in the feed directory when relative."""

    path = Path(archive)
    if path.is_file():
        return path
    if not path.is_absolute():
        candidate = get_feed_dir() / path
        if candidate.is_file():
            return candidate
    raise FeedReadError(f"Feed archive not found: {archive}")


def synchronize_archive(
    archive: Path | str,
    *,
    categories: Iterable[Category] | None = None,
    structure_ids: Iterable[str] | None = None,
    apply: bool = False,
    format: FeedFormat | None = None,  # noqa: A002
    mode: RunMode = RunMode.MANUAL,
    feed: FeedReader | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    lease: ScopeLease | None = None,
) -> RunResult:
    """Synchronise the directory against one feed archive using the configured adapters.

    ``format`` defaults to the format inferred from the archive name.
    """

    _ensure_started()
    path = resolve_archive(archive)
    described = describe_archive(path)
    request = SyncRequest(
        categories=frozenset(categories) if categories is not None else frozenset(Category),
        structure_ids=tuple(structure_ids) if structure_ids is not None else None,
        apply=apply,
        format=format or described.format,
        mode=mode,
        source=described.name,
        source_date=described.modified,
    )
    synchronizer = Synchronizer(
        unit_of_work_factory=unit_of_work_factory or SqlAlchemyDirectoryUnitOfWork,
        feed=feed or ZipFeedReader(path),
        lease=lease or SqlAlchemyScopeLease(),
        lease_ttl=get_sync_config().lease_ttl,
    )
    return synchronizer.synchronize(request)


def list_feed_archives() -> list[FeedArchive]:
    """Return the archives of the configured feed directory, newest first."""

    archives = list_archives(get_feed_dir())
    log.info("Found %s feed archives", len(archives))
    return archives


def recent_runs(
    limit: int = 20,
    *,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> list[SyncRun]:
    """Return the most recent recorded runs, newest first."""

    _ensure_started()
    factory = unit_of_work_factory or SqlAlchemyDirectoryUnitOfWork
    with factory() as uow:
        return list(uow.repositories.runs.recent(limit))
