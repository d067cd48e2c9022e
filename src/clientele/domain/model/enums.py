"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class Provider(StrEnum):
    """Platform a customer identity was observed on."""

    SHOPIFY = "shopify"
    AMAZON = "amazon"
    QBO = "qbo"
    SHIPSTATION = "shipstation"
    MANUAL = "manual"


class SignalSource(StrEnum):
    """Entry point that produced an identity signal."""

    TICKET = "ticket"
    EMAIL = "email"
    QUOTE_FORM = "quote_form"
    PHONE = "phone"
    IMPORT = "import"


class ResolutionAction(StrEnum):
    CREATED = "created"
    UPDATED = "updated"
    LINKED = "linked"
    AMBIGUOUS = "ambiguous"
    SKIPPED = "skipped"


class OutboxStatus(StrEnum):
    PENDING = "pending"
    PROCESSING = "processing"
    DONE = "done"
    FAILED = "failed"


class ReviewStatus(StrEnum):
    OPEN = "open"
    RESOLVED = "resolved"
