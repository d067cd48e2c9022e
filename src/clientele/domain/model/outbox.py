"""Durable outbox entries."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from clientele.domain.model.enums import OutboxStatus

if TYPE_CHECKING:
    from datetime import datetime

CUSTOMER_SYNC_EVENT = "customer.sync"


@dataclass(eq=False, kw_only=True)
class OutboxEvent:
    event_type: str
    payload: dict[str, object] = field(default_factory=dict[str, object])
    status: OutboxStatus = OutboxStatus.PENDING
    attempts: int = 0
    next_run_at: datetime | None = None
    last_error: str | None = None

    id: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_finished(self) -> bool:
        return self.status in {OutboxStatus.DONE, OutboxStatus.FAILED}
