"""Ports for the durable outbox queue."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Mapping
    from datetime import datetime

    from clientele.domain.model import OutboxEvent


@runtime_checkable
class OutboxStore(Protocol):
    """Append-only queue with at-least-once delivery to its worker."""

    def append(self, event_type: str, payload: Mapping[str, object]) -> OutboxEvent: ...

    def fetch_due(self, *, limit: int, now: datetime) -> list[OutboxEvent]: ...

    def mark_processing(self, event_id: int) -> OutboxEvent: ...

    def mark_done(self, event_id: int) -> None: ...

    def reschedule(self, event_id: int, *, next_run_at: datetime, error: str) -> None: ...

    def mark_failed(self, event_id: int, *, error: str) -> None: ...
