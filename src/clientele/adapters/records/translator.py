"""Translate validated request records into domain signals and payloads."""

from __future__ import annotations

from typing import TYPE_CHECKING

from clientele.domain.identity.normalize import build_signal
from clientele.domain.outbox import CustomerSyncPayload

if TYPE_CHECKING:
    from clientele.domain.model import IdentitySignal

    from .schema import CustomerRecord, CustomerSyncRequest, ImportRequest


def record_to_signal(record: CustomerRecord) -> IdentitySignal:
    return build_signal(
        email=record.email,
        phone=record.phone,
        provider=record.provider,
        external_id=record.external_id,
        first_name=record.first_name,
        last_name=record.last_name,
        company=record.company,
        metadata=record.metadata,
        source=record.source,
    )


def request_signals(request: ImportRequest) -> list[IdentitySignal]:
    return [record_to_signal(record) for record in request.customers]


def sync_request_to_payload(request: CustomerSyncRequest) -> CustomerSyncPayload:
    return CustomerSyncPayload(
        ticket_id=request.ticket_id,
        email=request.email,
        phone=request.phone,
        name=request.name,
        company=request.company,
        provider=request.provider,
        external_id=request.external_id,
        source=request.source,
    )
