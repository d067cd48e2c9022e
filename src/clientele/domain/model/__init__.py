"""Public domain model surface."""

from __future__ import annotations

from clientele.domain.model.customer import (
    Customer,
    CustomerDraft,
    CustomerId,
    CustomerIdentity,
    CustomerUpdate,
    ExternalRef,
    IdentityLink,
)
from clientele.domain.model.enums import (
    OutboxStatus,
    Provider,
    ResolutionAction,
    ReviewStatus,
    SignalSource,
)
from clientele.domain.model.outbox import CUSTOMER_SYNC_EVENT, OutboxEvent
from clientele.domain.model.review import ReviewFlag
from clientele.domain.model.signal import IdentitySignal

__all__ = [  # noqa: RUF022
    # customers
    "Customer",
    "CustomerDraft",
    "CustomerId",
    "CustomerIdentity",
    "CustomerUpdate",
    "ExternalRef",
    "IdentityLink",
    # signals
    "IdentitySignal",
    # outbox
    "CUSTOMER_SYNC_EVENT",
    "OutboxEvent",
    # review
    "ReviewFlag",
    # enums
    "OutboxStatus",
    "Provider",
    "ResolutionAction",
    "ReviewStatus",
    "SignalSource",
]
