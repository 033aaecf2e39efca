"""Synchronisation defaults: feed location, run lease and person id format."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from string import ascii_uppercase
from typing import Final

from .env import optional_env_int, require_env_vars
from .errors import ConfigurationError

DEFAULT_LEASE_TTL_SECONDS: Final[int] = 2 * 60 * 60
DEFAULT_ID_LETTER: Final[str] = "V"
DEFAULT_ID_DIGIT: Final[int] = 6


@dataclass(frozen=True, slots=True)
class PersonIdFormat:
    """Durable person ids: ``<letter><two letters><digit><four digits>``.

    The counter walks the four digits first, then the two letters, giving
    6,760,000 ids per letter/digit pair.
    """

    letter: str = DEFAULT_ID_LETTER
    digit: int = DEFAULT_ID_DIGIT

    def __post_init__(self) -> None:
        if len(self.letter) != 1 or self.letter not in ascii_uppercase:
            raise ConfigurationError(
                f"Person id letter must be one uppercase letter: {self.letter!r}",
                variables=("AAFSYNC_ID_LETTER",),
            )
        if not 0 <= self.digit <= 9:
            raise ConfigurationError(
                f"Person id digit must be between 0 and 9: {self.digit}",
                variables=("AAFSYNC_ID_DIGIT",),
            )

    def render(self, counter: int) -> str:
        high = ascii_uppercase[(counter // 260_000) % 26]
        low = ascii_uppercase[(counter // 10_000) % 26]
        return f"{self.letter}{high}{low}{self.digit}{counter % 10_000:04d}"


@dataclass(frozen=True, slots=True)
class SyncConfig:
    lease_ttl: timedelta = timedelta(seconds=DEFAULT_LEASE_TTL_SECONDS)
    person_ids: PersonIdFormat = field(default_factory=PersonIdFormat)


def get_sync_config() -> SyncConfig:
    ttl = optional_env_int("AAFSYNC_LEASE_TTL_SECONDS", DEFAULT_LEASE_TTL_SECONDS)
    if ttl <= 0:
        raise ConfigurationError(
            f"AAFSYNC_LEASE_TTL_SECONDS must be positive, got {ttl}",
            variables=("AAFSYNC_LEASE_TTL_SECONDS",),
        )
    letter = os.getenv("AAFSYNC_ID_LETTER") or DEFAULT_ID_LETTER
    return SyncConfig(
        lease_ttl=timedelta(seconds=ttl),
        person_ids=PersonIdFormat(
            letter=letter.strip().upper(),
            digit=optional_env_int("AAFSYNC_ID_DIGIT", DEFAULT_ID_DIGIT),
        ),
    )


def get_feed_dir() -> Path:
    """Return the directory holding feed archives (``AAFSYNC_FEED_DIR``)."""

    values = require_env_vars(("AAFSYNC_FEED_DIR",))
    return Path(values["AAFSYNC_FEED_DIR"]).expanduser()
