"""Transient identity evidence submitted by callers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from clientele.domain.model.customer import CustomerDraft, CustomerUpdate, IdentityLink
from clientele.domain.model.enums import Provider, SignalSource

if TYPE_CHECKING:
    from collections.abc import Mapping

    from clientele.domain.model.customer import ExternalRef


@dataclass(frozen=True, slots=True, kw_only=True)
class IdentitySignal:
    """One unit of evidence about who a customer is.

    ``email`` and ``phone`` hold normalized values only; build instances with
    ``clientele.domain.identity.normalize.build_signal`` when starting from raw input.
    """

    email: str | None = None
    phone: str | None = None
    provider: Provider = Provider.MANUAL
    external_id: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    company: str | None = None
    metadata: Mapping[str, object] = field(default_factory=dict[str, object])
    source: SignalSource = SignalSource.IMPORT

    @property
    def external_ref(self) -> ExternalRef | None:
        if self.external_id is None:
            return None
        return (self.provider, self.external_id)

    @property
    def has_identity(self) -> bool:
        return any(value is not None for value in (self.email, self.phone, self.external_id))

    def to_link(self) -> IdentityLink:
        return IdentityLink(
            provider=self.provider,
            external_id=self.external_id,
            email=self.email,
            phone=self.phone,
            attributes={**self.metadata, "source": self.source.value},
        )

    def to_draft(self) -> CustomerDraft:
        return CustomerDraft(
            email=self.email,
            phone=self.phone,
            first_name=self.first_name,
            last_name=self.last_name,
            company=self.company,
            attributes=dict(self.metadata),
            identity=self.to_link(),
        )

    def to_update(self, *, fill_email: bool, fill_phone: bool) -> CustomerUpdate:
        return CustomerUpdate(
            first_name=self.first_name,
            last_name=self.last_name,
            company=self.company,
            attributes=dict(self.metadata) or None,
            fill_email=self.email if fill_email else None,
            fill_phone=self.phone if fill_phone else None,
        )
