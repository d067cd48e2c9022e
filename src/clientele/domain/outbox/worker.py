"""Outbox worker: drain due events and run their handlers.

An event is marked done only after its handler returns. A failing event is
rescheduled with a linearly growing, capped delay and given up on once it
reaches ``max_attempts``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from logging import getLogger
from typing import TYPE_CHECKING

from clientele.domain.model import ResolutionAction

from .payload import CustomerSyncPayload

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from clientele.domain.identity import ResolutionEngine
    from clientele.domain.model import OutboxEvent
    from clientele.domain.ports import OutboxStore

type OutboxHandler = Callable[[OutboxEvent], None]

log = getLogger(__name__)

DEFAULT_BASE_BACKOFF = timedelta(minutes=5)
DEFAULT_MAX_BACKOFF_STEPS = 6
DEFAULT_MAX_ATTEMPTS = 10


@dataclass(slots=True, kw_only=True)
class DrainReport:
    fetched: int = 0
    done: int = 0
    retried: int = 0
    failed: int = 0
    unknown: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "fetched": self.fetched,
            "done": self.done,
            "retried": self.retried,
            "failed": self.failed,
            "unknown": self.unknown,
        }


class OutboxWorker:
    def __init__(  # noqa: PLR0913
        self,
        store: OutboxStore,
        handlers: Mapping[str, OutboxHandler],
        *,
        base_backoff: timedelta = DEFAULT_BASE_BACKOFF,
        max_backoff_steps: int = DEFAULT_MAX_BACKOFF_STEPS,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ) -> None:
        self.store = store
        self.handlers = dict(handlers)
        self.base_backoff = base_backoff
        self.max_backoff_steps = max_backoff_steps
        self.max_attempts = max_attempts

    def backoff_for(self, attempts: int) -> timedelta:
        """Delay before retrying an event that has failed ``attempts`` times."""

        return self.base_backoff * min(max(attempts, 1), self.max_backoff_steps)

    def drain(self, *, limit: int = 15, now: datetime | None = None) -> DrainReport:
        now = now or datetime.now(UTC)
        report = DrainReport()
        for due in self.store.fetch_due(limit=limit, now=now):
            report.fetched += 1
            event = self.store.mark_processing(_stored_id(due))
            self._process(event, now=now, report=report)

        if report.fetched:
            log.info(
                "Outbox drain: %s fetched, %s done, %s retried, %s failed, %s unknown",
                report.fetched,
                report.done,
                report.retried,
                report.failed,
                report.unknown,
            )
        return report

    def _process(self, event: OutboxEvent, *, now: datetime, report: DrainReport) -> None:
        event_id = _stored_id(event)
        handler = self.handlers.get(event.event_type)
        if handler is None:
            log.warning("No handler for outbox event %s (%s)", event_id, event.event_type)
            self.store.mark_done(event_id)
            report.unknown += 1
            return

        try:
            handler(event)
        except Exception as exc:  # noqa: BLE001
            error = str(exc) or type(exc).__name__
            if event.attempts >= self.max_attempts:
                log.exception(
                    "Outbox event %s failed after %s attempts; giving up",
                    event_id,
                    event.attempts,
                )
                self.store.mark_failed(event_id, error=error)
                report.failed += 1
                return
            next_run_at = now + self.backoff_for(event.attempts)
            log.exception(
                "Outbox event %s failed (attempt %s); retrying at %s",
                event_id,
                event.attempts,
                next_run_at.isoformat(),
            )
            self.store.reschedule(event_id, next_run_at=next_run_at, error=error)
            report.retried += 1
            return

        self.store.mark_done(event_id)
        report.done += 1


def customer_sync_handler(engine: ResolutionEngine) -> OutboxHandler:
    """Build the handler that resolves the sender of a ``customer.sync`` event."""

    def handle(event: OutboxEvent) -> None:
        try:
            signal = CustomerSyncPayload.from_payload(event.payload).to_signal()
        except ValueError as exc:
            # malformed payloads are dropped, not retried
            log.warning("Outbox event %s has an unreadable payload: %s", event.id, exc)
            return
        resolution = engine.resolve(signal)
        if resolution.action is ResolutionAction.SKIPPED:
            log.info("Outbox event %s has no identifying fields; nothing to sync", event.id)

    return handle


def _stored_id(event: OutboxEvent) -> int:
    if event.id is None:
        raise ValueError(f"outbox event {event.event_type} has not been stored")
    return event.id
