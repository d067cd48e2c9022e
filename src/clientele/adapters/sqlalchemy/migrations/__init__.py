"""Schema migrations for the customer store.

The Alembic scripts ship inside the package; nothing reads an ``alembic.ini``.
Revisions are recorded in ``VERSION_TABLE`` so the store can share a database
with other Alembic-managed applications.
"""

from __future__ import annotations

from logging import getLogger
from pathlib import Path
from typing import TYPE_CHECKING, Final

from alembic import command
from alembic.config import Config
from alembic.runtime.migration import MigrationContext

from clientele.config import get_database_uri

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

log = getLogger(__name__)

SCRIPT_LOCATION: Final[Path] = Path(__file__).resolve().parent
VERSION_TABLE: Final[str] = "clientele_alembic_version"
HEAD: Final[str] = "head"


def alembic_config(database_uri: str | None = None) -> Config:
    config = Config()
    config.set_main_option("script_location", str(SCRIPT_LOCATION))
    if database_uri is not None:
        config.set_main_option("sqlalchemy.url", database_uri)
    return config


def upgrade_head(*, engine: Engine | None = None, database_uri: str | None = None) -> None:
    """Bring the customer store schema up to the newest revision.

    With ``engine`` the upgrade runs inside one transaction on that engine,
    which keeps in-memory SQLite databases intact. Otherwise Alembic connects
    to ``database_uri`` or the configured store.
    """

    if engine is None:
        command.upgrade(alembic_config(database_uri or get_database_uri()), HEAD)
        return
    config = alembic_config()
    with engine.begin() as connection:
        config.attributes["connection"] = connection
        command.upgrade(config, HEAD)
    log.debug("Customer store at %s is at %s", engine.url, current_revision(engine))


def current_revision(engine: Engine) -> str | None:
    with engine.connect() as connection:
        context = MigrationContext.configure(connection, opts={"version_table": VERSION_TABLE})
        return context.get_current_revision()
