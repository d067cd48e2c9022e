from __future__ import annotations

from typing import TYPE_CHECKING

from clientele.domain.model import CUSTOMER_SYNC_EVENT, OutboxStatus
from clientele.domain.outbox import ChangeNotifier, CustomerSyncPayload

if TYPE_CHECKING:
    import pytest

    from tests.support.outbox import InMemoryOutboxStore


def test_enqueue_appends_pending_event(outbox_store: InMemoryOutboxStore) -> None:
    event = ChangeNotifier(outbox_store).enqueue_customer_sync(
        CustomerSyncPayload(ticket_id="T-1", email="jane@co.com")
    )

    assert event is not None
    assert event.event_type == CUSTOMER_SYNC_EVENT
    assert event.status is OutboxStatus.PENDING
    assert event.payload["email"] == "jane@co.com"


def test_enqueue_failure_is_logged_not_raised(
    outbox_store: InMemoryOutboxStore,
    caplog: pytest.LogCaptureFixture,
) -> None:
    outbox_store.fail_appends = True

    event = ChangeNotifier(outbox_store).enqueue("customer.sync", {"email": "jane@co.com"})

    assert event is None
    assert "Failed to enqueue customer.sync event" in caplog.text
    assert not outbox_store.events
