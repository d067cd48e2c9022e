"""Port for the remote customer platform (the source of truth for customers)."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Iterable

    from clientele.domain.model import (
        Customer,
        CustomerDraft,
        CustomerId,
        CustomerUpdate,
        ExternalRef,
        IdentityLink,
    )


@runtime_checkable
class CustomerLookup(Protocol):
    """Read side of the platform. Lookups take and return normalized keys only."""

    def find_by_normalized_emails(self, emails: Iterable[str]) -> dict[str, CustomerId]: ...

    def find_by_normalized_phones(self, phones: Iterable[str]) -> dict[str, CustomerId]: ...

    def find_by_external_ids(self, refs: Iterable[ExternalRef]) -> dict[ExternalRef, CustomerId]: ...

    def find_by_email(self, email: str) -> Customer | None: ...

    def find_by_phone(self, phone: str) -> Customer | None: ...

    def get(self, customer_id: CustomerId) -> Customer | None: ...


@runtime_checkable
class CustomerPlatform(CustomerLookup, Protocol):
    """Customer store that enforces email/phone/external-id uniqueness itself.

    Write methods raise ``DuplicateIdentity`` when the store rejects a write on a
    uniqueness constraint and ``RemoteUnavailable`` on transport failures.
    """

    def create_customer(self, draft: CustomerDraft) -> Customer: ...

    def link_external_id(
        self,
        customer_id: CustomerId,
        link: IdentityLink,
        *,
        update: CustomerUpdate | None = None,
    ) -> Customer: ...

    def update_customer(
        self,
        customer_id: CustomerId,
        update: CustomerUpdate,
        *,
        link: IdentityLink | None = None,
    ) -> Customer: ...
