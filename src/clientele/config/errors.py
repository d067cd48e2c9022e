"""Configuration error definitions."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence


class ConfigurationError(RuntimeError):
    """Raised when configuration values are invalid."""


class MissingConfigurationError(ConfigurationError):
    """Raised when required environment variables are absent or blank."""

    def __init__(self, names: Sequence[str]) -> None:
        self.names = tuple(sorted(names))
        super().__init__(f"Missing configuration for: {', '.join(self.names)}")


class InvalidConfigurationValue(ConfigurationError):  # noqa: N818
    """Raised when an environment variable is set but cannot be used."""

    def __init__(self, name: str, raw: str, reason: str) -> None:
        self.name = name
        self.raw = raw
        super().__init__(f"{name} {reason}, got {raw!r}")
