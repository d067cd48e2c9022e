"""Alembic entry point for the customer store schema."""

from __future__ import annotations

import logging
from logging.config import fileConfig
from pathlib import Path
from typing import TYPE_CHECKING

from alembic import context
from sqlalchemy import create_engine, pool

from clientele.adapters.sqlalchemy.mappings import mapper_registry, start_mappers
from clientele.adapters.sqlalchemy.migrations import VERSION_TABLE
from clientele.config import get_database_config

if TYPE_CHECKING:
    from sqlalchemy.engine import Connection

alembic_config = context.config

if alembic_config.config_file_name is not None:
    ini_path = Path(alembic_config.config_file_name)
    if ini_path.suffix == ".ini" and ini_path.exists():
        fileConfig(ini_path)

log = logging.getLogger("alembic.env")

start_mappers()
target_metadata = mapper_registry.metadata


def _database_url() -> str:
    return alembic_config.get_main_option("sqlalchemy.url") or get_database_config().uri


def _migrate(connection: Connection) -> None:
    # SQLite cannot ALTER constraints in place
    context.configure(
        connection=connection,
        target_metadata=target_metadata,
        version_table=VERSION_TABLE,
        render_as_batch=connection.dialect.name == "sqlite",
        compare_type=True,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_offline() -> None:
    url = _database_url()
    context.configure(
        url=url,
        target_metadata=target_metadata,
        version_table=VERSION_TABLE,
        literal_binds=True,
        render_as_batch=url.startswith("sqlite"),
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def run_online() -> None:
    shared = alembic_config.attributes.get("connection")
    if shared is not None:
        _migrate(shared)
        return

    engine = create_engine(_database_url(), poolclass=pool.NullPool)
    try:
        with engine.begin() as connection:
            _migrate(connection)
    finally:
        engine.dispose()


if context.is_offline_mode():
    log.info("Rendering customer store migrations as SQL")
    run_offline()
else:
    run_online()
