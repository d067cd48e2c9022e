"""Request schemas for imports and sync notifications."""

from __future__ import annotations

from .schema import MAX_IMPORT_RECORDS, CustomerRecord, CustomerSyncRequest, ImportRequest
from .translator import record_to_signal, request_signals, sync_request_to_payload

__all__ = [
    "MAX_IMPORT_RECORDS",
    "CustomerRecord",
    "CustomerSyncRequest",
    "ImportRequest",
    "record_to_signal",
    "request_signals",
    "sync_request_to_payload",
]
