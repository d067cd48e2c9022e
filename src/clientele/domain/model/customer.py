"""Canonical customer records and the identities linked to them.

A ``Customer`` owns its primary email/phone (the uniqueness keys of the store)
and a list of ``CustomerIdentity`` rows, one per (provider, external id) the
person was seen under. Identity keys are only ever filled, never overwritten;
profile fields (names, company, attributes) are last-write-wins.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from clientele.domain.model.enums import Provider

if TYPE_CHECKING:
    from collections.abc import Mapping
    from datetime import datetime

type CustomerId = int
type ExternalRef = tuple[Provider, str]


@dataclass(eq=False, kw_only=True)
class CustomerIdentity:
    provider: Provider
    external_id: str | None = None
    email: str | None = None
    phone: str | None = None
    attributes: dict[str, object] = field(default_factory=dict[str, object])

    id: int | None = None
    customer_id: CustomerId | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def external_ref(self) -> ExternalRef | None:
        if self.external_id is None:
            return None
        return (self.provider, self.external_id)

    def matches(self, link: IdentityLink) -> bool:
        """Return whether ``link`` describes this identity row."""

        if link.external_id is not None or self.external_id is not None:
            return self.provider == link.provider and self.external_id == link.external_id
        return (
            self.provider == link.provider
            and self.email == link.email
            and self.phone == link.phone
        )


@dataclass(frozen=True, slots=True, kw_only=True)
class IdentityLink:
    """Source reference to attach to a customer."""

    provider: Provider = Provider.MANUAL
    external_id: str | None = None
    email: str | None = None
    phone: str | None = None
    attributes: Mapping[str, object] | None = None

    @property
    def external_ref(self) -> ExternalRef | None:
        if self.external_id is None:
            return None
        return (self.provider, self.external_id)

    @property
    def has_identifier(self) -> bool:
        return any(value is not None for value in (self.external_id, self.email, self.phone))


@dataclass(frozen=True, slots=True, kw_only=True)
class CustomerUpdate:
    """Changes applied to an existing customer by a single write."""

    first_name: str | None = None
    last_name: str | None = None
    company: str | None = None
    attributes: Mapping[str, object] | None = None
    fill_email: str | None = None
    fill_phone: str | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class CustomerDraft:
    """Fields for a customer that does not exist yet."""

    email: str | None = None
    phone: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    company: str | None = None
    attributes: Mapping[str, object] | None = None
    identity: IdentityLink | None = None


@dataclass(eq=False, kw_only=True)
class Customer:
    primary_email: str | None = None
    primary_phone: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    company: str | None = None
    attributes: dict[str, object] = field(default_factory=dict[str, object])

    id: CustomerId | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    _identities: list[CustomerIdentity] = field(
        default_factory=list["CustomerIdentity"], repr=False
    )

    @classmethod
    def from_draft(cls, draft: CustomerDraft) -> Customer:
        customer = cls(
            primary_email=draft.email,
            primary_phone=draft.phone,
            first_name=draft.first_name,
            last_name=draft.last_name,
            company=draft.company,
            attributes=dict(draft.attributes or {}),
        )
        if draft.identity is not None and draft.identity.has_identifier:
            customer.link_identity(draft.identity)
        return customer

    @property
    def identities(self) -> tuple[CustomerIdentity, ...]:
        return tuple(self._identities)

    @property
    def external_refs(self) -> frozenset[ExternalRef]:
        return frozenset(
            ref for ref in (identity.external_ref for identity in self._identities) if ref
        )

    @property
    def display_name(self) -> str:
        parts = [part for part in (self.first_name, self.last_name) if part]
        return " ".join(parts) or self.company or self.primary_email or "Unknown"

    def has_identity(self, provider: Provider, external_id: str) -> bool:
        return (provider, external_id) in self.external_refs

    def fill_missing_keys(self, *, email: str | None, phone: str | None) -> None:
        if email and not self.primary_email:
            self.primary_email = email
        if phone and not self.primary_phone:
            self.primary_phone = phone

    def refresh_profile(
        self,
        *,
        first_name: str | None = None,
        last_name: str | None = None,
        company: str | None = None,
        attributes: Mapping[str, object] | None = None,
    ) -> None:
        if first_name:
            self.first_name = first_name
        if last_name:
            self.last_name = last_name
        if company:
            self.company = company
        if attributes:
            # reassign so ORM change tracking sees the new dict
            self.attributes = {**self.attributes, **attributes}

    def apply_update(self, update: CustomerUpdate) -> None:
        self.fill_missing_keys(email=update.fill_email, phone=update.fill_phone)
        self.refresh_profile(
            first_name=update.first_name,
            last_name=update.last_name,
            company=update.company,
            attributes=update.attributes,
        )

    def link_identity(self, link: IdentityLink) -> CustomerIdentity:
        """Attach ``link`` or refresh the identity row it already matches."""

        for identity in self._identities:
            if identity.matches(link):
                identity.email = link.email or identity.email
                identity.phone = link.phone or identity.phone
                if link.attributes:
                    identity.attributes = {**identity.attributes, **link.attributes}
                return identity

        identity = CustomerIdentity(
            provider=link.provider,
            external_id=link.external_id,
            email=link.email,
            phone=link.phone,
            attributes=dict(link.attributes or {}),
            customer_id=self.id,
        )
        self._identities.append(identity)
        return identity

    def release_keys(self) -> tuple[str | None, str | None]:
        """Clear and return the primary email/phone so another record can claim them."""

        keys = (self.primary_email, self.primary_phone)
        self.primary_email = None
        self.primary_phone = None
        return keys

    def absorb(
        self,
        other: Customer,
        *,
        email: str | None = None,
        phone: str | None = None,
    ) -> None:
        """Take over ``other``'s identities and fill gaps from its profile.

        ``email``/``phone`` are the keys ``other`` released before the merge; the
        store must see them cleared on ``other`` before they land here.
        """

        self.fill_missing_keys(email=email, phone=phone)
        if not self.first_name and not self.last_name:
            self.first_name = other.first_name
            self.last_name = other.last_name
        if not self.company:
            self.company = other.company
        self.attributes = {**other.attributes, **self.attributes}
        moved = list(other._identities)  # noqa: SLF001
        other._identities.clear()  # noqa: SLF001
        for identity in moved:
            identity.customer_id = self.id
            self._identities.append(identity)
