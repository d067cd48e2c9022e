"""SQLAlchemy mapping metadata for the clientele domain model."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from functools import cache
from typing import TYPE_CHECKING

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Dialect,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    Text,
    TypeDecorator,
    UniqueConstraint,
    orm,
)
from sqlalchemy.orm import configure_mappers, relationship

from clientele.domain.model import (
    Customer,
    CustomerIdentity,
    OutboxEvent,
    OutboxStatus,
    Provider,
    ReviewFlag,
    ReviewStatus,
)

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

log = logging.getLogger(__name__)

EMAIL_LENGTH = 320
PHONE_LENGTH = 20


def utcnow() -> datetime:
    return datetime.now(UTC)


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


mapper_registry = orm.registry()
mapper_registry.metadata.naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_label)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

# Customers -------------------------------------------------------------------

customer_table = Table(
    "customer",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("primary_email", String(EMAIL_LENGTH), nullable=True),
    Column("primary_phone", String(PHONE_LENGTH), nullable=True),
    Column("first_name", String, nullable=True),
    Column("last_name", String, nullable=True),
    Column("company", String, nullable=True),
    Column("attributes", JSON, nullable=False, default=dict),
    Column("created_at", UTCDateTime(), nullable=False),
    Column("updated_at", UTCDateTime(), nullable=False),
    # the store, not the service, is the arbiter of these invariants
    UniqueConstraint("primary_email"),
    UniqueConstraint("primary_phone"),
)

customer_identity_table = Table(
    "customer_identity",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column(
        "customer_id",
        Integer,
        ForeignKey("customer.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("provider", Enum(Provider, native_enum=False), nullable=False),
    Column("external_id", String, nullable=True),
    Column("email", String(EMAIL_LENGTH), nullable=True),
    Column("phone", String(PHONE_LENGTH), nullable=True),
    Column("attributes", JSON, nullable=False, default=dict),
    Column("created_at", UTCDateTime(), nullable=False),
    Column("updated_at", UTCDateTime(), nullable=False),
    UniqueConstraint("provider", "external_id"),
    Index("ix_customer_identity_customer_id", "customer_id"),
)

# Outbox ----------------------------------------------------------------------

outbox_event_table = Table(
    "outbox_event",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("event_type", String(64), nullable=False),
    Column("payload", JSON, nullable=False, default=dict),
    Column("status", Enum(OutboxStatus, native_enum=False), nullable=False),
    Column("attempts", Integer, nullable=False, default=0),
    Column("next_run_at", UTCDateTime(), nullable=False),
    Column("last_error", Text, nullable=True),
    Column("created_at", UTCDateTime(), nullable=False),
    Column("updated_at", UTCDateTime(), nullable=False),
    Index("ix_outbox_event_due", "status", "next_run_at"),
)

# Review ----------------------------------------------------------------------

# customer ids are kept without foreign keys; flags outlive merged customers
review_flag_table = Table(
    "review_flag",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("customer_id", Integer, nullable=False),
    Column("conflicting_customer_id", Integer, nullable=False),
    Column("reason", Text, nullable=False),
    Column("email", String(EMAIL_LENGTH), nullable=True),
    Column("phone", String(PHONE_LENGTH), nullable=True),
    Column("provider", Enum(Provider, native_enum=False), nullable=True),
    Column("external_id", String, nullable=True),
    Column("status", Enum(ReviewStatus, native_enum=False), nullable=False),
    Column("created_at", UTCDateTime(), nullable=False),
    Column("resolved_at", UTCDateTime(), nullable=True),
    Index("ix_review_flag_status", "status"),
)


@cache
def start_mappers() -> orm.registry:
    """Configure SQLAlchemy mappers for the domain model."""

    log.info("Starting SQLAlchemy mappers")

    mapper_registry.map_imperatively(
        Customer,
        customer_table,
        properties={
            "_identities": relationship(
                CustomerIdentity,
                cascade="all, delete-orphan",
                order_by=customer_identity_table.c.id,
                lazy="selectin",
            ),
        },
    )

    mapper_registry.map_imperatively(
        CustomerIdentity,
        customer_identity_table,
    )

    mapper_registry.map_imperatively(
        OutboxEvent,
        outbox_event_table,
    )

    mapper_registry.map_imperatively(
        ReviewFlag,
        review_flag_table,
    )

    configure_mappers()
    return mapper_registry


def create_all_tables(engine: Engine) -> None:
    """Create database tables for the mapped metadata."""

    log.info("Creating all tables")
    mapper_registry.metadata.create_all(engine)
