"""Run lease stored in the ``run_lease`` table."""

from __future__ import annotations

from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING

from sqlalchemy import delete, insert, or_, select
from sqlalchemy.exc import IntegrityError

from aafsync.adapters.sqlalchemy.mappings import run_lease_table
from aafsync.adapters.sqlalchemy.unit_of_work import session_factory
from aafsync.domain.errors import RunInProgressError
from aafsync.domain.ports.locking import ALL_STRUCTURES

if TYPE_CHECKING:
    from collections.abc import Callable, Collection
    from datetime import timedelta

    from sqlalchemy.orm import Session

log = getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class SqlAlchemyScopeLease:
    """Lease keyed by structure id, taken and released in short transactions.

    Expired leases are dropped on acquisition, so a crashed run blocks its
    scope for at most ``ttl``.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session] | None = None,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock

    def acquire(self, keys: Collection[str], *, owner: str, ttl: timedelta) -> None:
        requested = tuple(sorted(set(keys)))
        now = self._clock()
        with self._session() as session, session.begin():
            session.execute(delete(run_lease_table).where(run_lease_table.c.expires_at <= now))
            stmt = select(run_lease_table.c.key)
            if ALL_STRUCTURES not in requested:
                stmt = stmt.where(
                    or_(
                        run_lease_table.c.key.in_(requested),
                        run_lease_table.c.key == ALL_STRUCTURES,
                    )
                )
            held = tuple(sorted(session.execute(stmt).scalars()))
            if held:
                raise RunInProgressError(held)
            try:
                session.execute(
                    insert(run_lease_table),
                    [
                        {"key": key, "owner": owner, "acquired_at": now, "expires_at": now + ttl}
                        for key in requested
                    ],
                )
            except IntegrityError as exc:
                raise RunInProgressError(requested) from exc
        log.debug("Lease %s taken by %s", ",".join(requested), owner)

    def release(self, owner: str) -> None:
        with self._session() as session, session.begin():
            session.execute(delete(run_lease_table).where(run_lease_table.c.owner == owner))
        log.debug("Lease released by %s", owner)

    def _session(self) -> Session:
        factory = self._session_factory or session_factory()
        return factory()


if TYPE_CHECKING:
    from aafsync.domain.ports.locking import ScopeLease

    _lease_check: ScopeLease = SqlAlchemyScopeLease()
