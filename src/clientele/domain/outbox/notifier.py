"""Fire-and-forget notification of customer-affecting writes."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from clientele.domain.model import CUSTOMER_SYNC_EVENT

if TYPE_CHECKING:
    from collections.abc import Mapping

    from clientele.domain.model import OutboxEvent
    from clientele.domain.ports import OutboxStore

    from .payload import CustomerSyncPayload

log = getLogger(__name__)


class ChangeNotifier:
    """Append events to the outbox without ever failing the caller.

    The write that triggered the event (a new support ticket, say) matters more
    than tracking its customer synchronously, so enqueue failures end in a log
    line and a ``None`` return.
    """

    def __init__(self, store: OutboxStore) -> None:
        self.store = store

    def enqueue(self, event_type: str, payload: Mapping[str, object]) -> OutboxEvent | None:
        try:
            event = self.store.append(event_type, payload)
        except Exception:  # noqa: BLE001
            log.exception("Failed to enqueue %s event", event_type)
            return None
        log.debug("Enqueued %s event %s", event_type, event.id)
        return event

    def enqueue_customer_sync(self, payload: CustomerSyncPayload) -> OutboxEvent | None:
        return self.enqueue(CUSTOMER_SYNC_EVENT, payload.to_payload())
