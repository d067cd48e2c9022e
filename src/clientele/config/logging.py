"""Logging setup shared by the CLI and the outbox worker."""

from __future__ import annotations

import logging
from typing import Final

from .env import optional_env_var
from .errors import InvalidConfigurationValue

LOG_FORMAT: Final[str] = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

# httpx logs every request at INFO; alembic announces each migration context
_CHATTY_LOGGERS: Final[tuple[str, ...]] = ("httpx", "httpcore", "alembic.runtime.migration")


def get_log_level(default: int = logging.INFO) -> int:
    raw = optional_env_var("CLIENTELE_LOG_LEVEL", logging.getLevelName(default))
    level = logging.getLevelNamesMapping().get(raw.upper())
    if level is None:
        raise InvalidConfigurationValue("CLIENTELE_LOG_LEVEL", raw, "must be a logging level name")
    return level


def configure_logging(*, level: int | None = None, force: bool = False) -> None:
    """Initialise the root logger once.

    ``level`` defaults to ``CLIENTELE_LOG_LEVEL`` (INFO when unset). Library
    loggers listed in ``_CHATTY_LOGGERS`` stay at WARNING unless the root runs
    at DEBUG. Pass ``force=True`` to reconfigure an already configured root.
    """

    effective = get_log_level() if level is None else level
    logging.basicConfig(level=effective, format=LOG_FORMAT, datefmt="%H:%M:%S", force=force)
    quiet = logging.DEBUG if effective <= logging.DEBUG else logging.WARNING
    for name in _CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(quiet)
