"""SQLAlchemy adapter package for clientele."""

from __future__ import annotations

from .mappings import create_all_tables, mapper_registry, start_mappers
from .repositories import (
    SqlAlchemyCustomerPlatform,
    SqlAlchemyOutboxStore,
    SqlAlchemyReviewQueue,
)
from .unit_of_work import (
    SqlAlchemyUnitOfWork,
    StartupError,
    is_started,
    shutdown,
    startup,
)

__all__ = [
    "SqlAlchemyCustomerPlatform",
    "SqlAlchemyOutboxStore",
    "SqlAlchemyReviewQueue",
    "SqlAlchemyUnitOfWork",
    "StartupError",
    "create_all_tables",
    "is_started",
    "mapper_registry",
    "shutdown",
    "start_mappers",
    "startup",
]
