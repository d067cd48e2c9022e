"""Customer, identity, outbox and review tables.

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-18
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

from clientele.adapters.sqlalchemy.mappings import UTCDateTime

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None

PROVIDERS = ("SHOPIFY", "AMAZON", "QBO", "SHIPSTATION", "MANUAL")
OUTBOX_STATUSES = ("PENDING", "PROCESSING", "DONE", "FAILED")
REVIEW_STATUSES = ("OPEN", "RESOLVED")


def upgrade() -> None:
    op.create_table(
        "customer",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("primary_email", sa.String(length=320), nullable=True),
        sa.Column("primary_phone", sa.String(length=20), nullable=True),
        sa.Column("first_name", sa.String(), nullable=True),
        sa.Column("last_name", sa.String(), nullable=True),
        sa.Column("company", sa.String(), nullable=True),
        sa.Column("attributes", sa.JSON(), nullable=False),
        sa.Column("created_at", UTCDateTime(), nullable=False),
        sa.Column("updated_at", UTCDateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_customer"),
        sa.UniqueConstraint("primary_email", name="uq_customer_customer_primary_email"),
        sa.UniqueConstraint("primary_phone", name="uq_customer_customer_primary_phone"),
    )
    op.create_table(
        "customer_identity",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("customer_id", sa.Integer(), nullable=False),
        sa.Column("provider", sa.Enum(*PROVIDERS, name="provider", native_enum=False), nullable=False),
        sa.Column("external_id", sa.String(), nullable=True),
        sa.Column("email", sa.String(length=320), nullable=True),
        sa.Column("phone", sa.String(length=20), nullable=True),
        sa.Column("attributes", sa.JSON(), nullable=False),
        sa.Column("created_at", UTCDateTime(), nullable=False),
        sa.Column("updated_at", UTCDateTime(), nullable=False),
        sa.ForeignKeyConstraint(
            ["customer_id"],
            ["customer.id"],
            name="fk_customer_identity_customer_identity_customer_id_customer",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_customer_identity"),
        sa.UniqueConstraint(
            "provider",
            "external_id",
            name="uq_customer_identity_customer_identity_provider",
        ),
    )
    op.create_index("ix_customer_identity_customer_id", "customer_identity", ["customer_id"])

    op.create_table(
        "outbox_event",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("event_type", sa.String(length=64), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column(
            "status",
            sa.Enum(*OUTBOX_STATUSES, name="outboxstatus", native_enum=False),
            nullable=False,
        ),
        sa.Column("attempts", sa.Integer(), nullable=False),
        sa.Column("next_run_at", UTCDateTime(), nullable=False),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("created_at", UTCDateTime(), nullable=False),
        sa.Column("updated_at", UTCDateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_outbox_event"),
    )
    op.create_index("ix_outbox_event_due", "outbox_event", ["status", "next_run_at"])

    op.create_table(
        "review_flag",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("customer_id", sa.Integer(), nullable=False),
        sa.Column("conflicting_customer_id", sa.Integer(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=True),
        sa.Column("phone", sa.String(length=20), nullable=True),
        sa.Column("provider", sa.Enum(*PROVIDERS, name="provider", native_enum=False), nullable=True),
        sa.Column("external_id", sa.String(), nullable=True),
        sa.Column(
            "status",
            sa.Enum(*REVIEW_STATUSES, name="reviewstatus", native_enum=False),
            nullable=False,
        ),
        sa.Column("created_at", UTCDateTime(), nullable=False),
        sa.Column("resolved_at", UTCDateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_review_flag"),
    )
    op.create_index("ix_review_flag_status", "review_flag", ["status"])


def downgrade() -> None:
    op.drop_index("ix_review_flag_status", table_name="review_flag")
    op.drop_table("review_flag")
    op.drop_index("ix_outbox_event_due", table_name="outbox_event")
    op.drop_table("outbox_event")
    op.drop_index("ix_customer_identity_customer_id", table_name="customer_identity")
    op.drop_table("customer_identity")
    op.drop_table("customer")
