"""Change notifier and outbox worker for deferred customer resolution."""

from __future__ import annotations

from .notifier import ChangeNotifier
from .payload import CustomerSyncPayload
from .worker import DrainReport, OutboxHandler, OutboxWorker, customer_sync_handler

__all__ = [
    "ChangeNotifier",
    "CustomerSyncPayload",
    "DrainReport",
    "OutboxHandler",
    "OutboxWorker",
    "customer_sync_handler",
]
