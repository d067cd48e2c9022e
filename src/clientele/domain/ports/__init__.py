"""Domain port definitions for adapters."""

from __future__ import annotations

from .outbox import OutboxStore
from .platform import CustomerLookup, CustomerPlatform
from .review import ReviewQueue

__all__ = [
    "CustomerLookup",
    "CustomerPlatform",
    "OutboxStore",
    "ReviewQueue",
]
