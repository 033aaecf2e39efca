"""Errors raised while reading aafsync settings from the environment."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable


class ConfigurationError(RuntimeError):
    """Raised when a setting (database, feed directory, lease, person ids) is invalid.

    ``variables`` names the environment variables to fix, when known.
    """

    def __init__(self, message: str, *, variables: Iterable[str] = ()) -> None:
        super().__init__(message)
        self.variables = tuple(variables)


class MissingConfigurationError(ConfigurationError):
    """Raised when required environment variables are absent or blank."""

    def __init__(self, names: Iterable[str]) -> None:
        missing = sorted(names)
        super().__init__(f"Missing configuration for: {', '.join(missing)}", variables=missing)
