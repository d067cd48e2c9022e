"""Payload carried by ``customer.sync`` outbox events."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from clientele.domain.identity.normalize import build_signal, split_full_name
from clientele.domain.model import Provider, SignalSource

if TYPE_CHECKING:
    from collections.abc import Mapping

    from clientele.domain.model import IdentitySignal


def _text(payload: Mapping[str, object], key: str) -> str | None:
    value = payload.get(key)
    if value is None:
        return None
    return str(value)


@dataclass(frozen=True, slots=True, kw_only=True)
class CustomerSyncPayload:
    """Sender details of a ticket (or similar write) whose customer is resolved later.

    Values stay raw until ``to_signal``; resolution happens at processing time,
    not at enqueue time.
    """

    ticket_id: str | None = None
    email: str | None = None
    phone: str | None = None
    name: str | None = None
    company: str | None = None
    provider: Provider = Provider.MANUAL
    external_id: str | None = None
    source: SignalSource = SignalSource.TICKET

    def to_payload(self) -> dict[str, object]:
        return {
            "ticket_id": self.ticket_id,
            "email": self.email,
            "phone": self.phone,
            "name": self.name,
            "company": self.company,
            "provider": self.provider.value,
            "external_id": self.external_id,
            "source": self.source.value,
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, object]) -> CustomerSyncPayload:
        """Rebuild from a stored payload; raises ``ValueError`` on unknown enums."""

        return cls(
            ticket_id=_text(payload, "ticket_id"),
            email=_text(payload, "email"),
            phone=_text(payload, "phone"),
            name=_text(payload, "name"),
            company=_text(payload, "company"),
            provider=Provider(_text(payload, "provider") or Provider.MANUAL),
            external_id=_text(payload, "external_id"),
            source=SignalSource(_text(payload, "source") or SignalSource.TICKET),
        )

    def to_signal(self) -> IdentitySignal:
        first_name, last_name = split_full_name(self.name)
        metadata: dict[str, object] = {}
        if self.ticket_id is not None:
            metadata["ticket_id"] = self.ticket_id
        return build_signal(
            email=self.email,
            phone=self.phone,
            provider=self.provider,
            external_id=self.external_id,
            first_name=first_name,
            last_name=last_name,
            company=self.company,
            metadata=metadata,
            source=self.source,
        )
