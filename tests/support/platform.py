"""In-memory customer platforms with store-side uniqueness enforcement."""

from __future__ import annotations

import threading
from collections import Counter
from typing import TYPE_CHECKING

from clientele.domain.errors import DuplicateIdentity, RemoteUnavailable
from clientele.domain.model import Customer

if TYPE_CHECKING:
    from collections.abc import Iterable

    from clientele.domain.model import (
        CustomerDraft,
        CustomerId,
        CustomerUpdate,
        ExternalRef,
        IdentityLink,
    )


class InMemoryCustomerPlatform:
    """Customer store whose lock plays the part of a database unique index."""

    def __init__(self) -> None:
        self.customers: dict[CustomerId, Customer] = {}
        self.calls: Counter[str] = Counter()
        self._failures: dict[str, list[Exception]] = {}
        self._next_id = 1
        self._lock = threading.Lock()

    # test helpers --------------------------------------------------------------

    def fail(self, operation: str, error: Exception | None = None, *, times: int = 1) -> None:
        exc = error or RemoteUnavailable(f"{operation} unavailable", operation=operation)
        self._failures.setdefault(operation, []).extend([exc] * times)

    def seed(self, draft: CustomerDraft) -> Customer:
        return self.create_customer(draft)

    def by_email(self, email: str) -> Customer | None:
        return next((c for c in self.customers.values() if c.primary_email == email), None)

    # lookups -------------------------------------------------------------------

    def find_by_normalized_emails(self, emails: Iterable[str]) -> dict[str, CustomerId]:
        self._enter("find_by_normalized_emails")
        wanted = set(emails)
        with self._lock:
            return {
                customer.primary_email: customer_id
                for customer_id, customer in self.customers.items()
                if customer.primary_email in wanted and customer.primary_email is not None
            }

    def find_by_normalized_phones(self, phones: Iterable[str]) -> dict[str, CustomerId]:
        self._enter("find_by_normalized_phones")
        wanted = set(phones)
        with self._lock:
            return {
                customer.primary_phone: customer_id
                for customer_id, customer in self.customers.items()
                if customer.primary_phone in wanted and customer.primary_phone is not None
            }

    def find_by_external_ids(self, refs: Iterable[ExternalRef]) -> dict[ExternalRef, CustomerId]:
        self._enter("find_by_external_ids")
        wanted = set(refs)
        with self._lock:
            return {
                ref: customer_id
                for customer_id, customer in self.customers.items()
                for ref in customer.external_refs
                if ref in wanted
            }

    def find_by_email(self, email: str) -> Customer | None:
        self._enter("find_by_email")
        with self._lock:
            return self.by_email(email)

    def find_by_phone(self, phone: str) -> Customer | None:
        self._enter("find_by_phone")
        with self._lock:
            return next(
                (c for c in self.customers.values() if c.primary_phone == phone),
                None,
            )

    def get(self, customer_id: CustomerId) -> Customer | None:
        self._enter("get")
        with self._lock:
            return self.customers.get(customer_id)

    # writes --------------------------------------------------------------------

    def create_customer(self, draft: CustomerDraft) -> Customer:
        self._enter("create_customer")
        with self._lock:
            self._check_key("email", draft.email, owner=None)
            self._check_key("phone", draft.phone, owner=None)
            if draft.identity is not None:
                self._check_ref(draft.identity.external_ref, owner=None)
            customer = Customer.from_draft(draft)
            customer.id = self._next_id
            self._next_id += 1
            self.customers[customer.id] = customer
            return customer

    def link_external_id(
        self,
        customer_id: CustomerId,
        link: IdentityLink,
        *,
        update: CustomerUpdate | None = None,
    ) -> Customer:
        self._enter("link_external_id")
        return self._modify(customer_id, update=update, link=link)

    def update_customer(
        self,
        customer_id: CustomerId,
        update: CustomerUpdate,
        *,
        link: IdentityLink | None = None,
    ) -> Customer:
        self._enter("update_customer")
        return self._modify(customer_id, update=update, link=link)

    # internals -----------------------------------------------------------------

    def _enter(self, operation: str) -> None:
        self.calls[operation] += 1
        pending = self._failures.get(operation)
        if pending:
            raise pending.pop(0)

    def _modify(
        self,
        customer_id: CustomerId,
        *,
        update: CustomerUpdate | None,
        link: IdentityLink | None,
    ) -> Customer:
        with self._lock:
            customer = self.customers.get(customer_id)
            if customer is None:
                raise LookupError(f"customer {customer_id} does not exist")
            if update is not None:
                if customer.primary_email is None:
                    self._check_key("email", update.fill_email, owner=customer_id)
                if customer.primary_phone is None:
                    self._check_key("phone", update.fill_phone, owner=customer_id)
            if link is not None:
                self._check_ref(link.external_ref, owner=customer_id)
            if update is not None:
                customer.apply_update(update)
            if link is not None and link.has_identifier:
                customer.link_identity(link)
            return customer

    def _check_key(self, field: str, value: str | None, *, owner: CustomerId | None) -> None:
        if value is None:
            return
        attribute = "primary_email" if field == "email" else "primary_phone"
        for customer_id, customer in self.customers.items():
            if customer_id != owner and getattr(customer, attribute) == value:
                raise DuplicateIdentity(f"{field} already taken", field=field, value=value)

    def _check_ref(self, ref: ExternalRef | None, *, owner: CustomerId | None) -> None:
        if ref is None:
            return
        for customer_id, customer in self.customers.items():
            if customer_id != owner and ref in customer.external_refs:
                raise DuplicateIdentity(
                    "external id already linked", field="external_id", value=ref[1]
                )


class ClaimingPlatform(InMemoryCustomerPlatform):
    """Lets a competing writer store ``competitor`` just before the first link lands."""

    def __init__(self, competitor: CustomerDraft) -> None:
        super().__init__()
        self.competitor: CustomerDraft | None = competitor

    def link_external_id(
        self,
        customer_id: CustomerId,
        link: IdentityLink,
        *,
        update: CustomerUpdate | None = None,
    ) -> Customer:
        if self.competitor is not None:
            competitor, self.competitor = self.competitor, None
            self.seed(competitor)
        return super().link_external_id(customer_id, link, update=update)


class RacingPlatform(InMemoryCustomerPlatform):
    """Lets a competing writer create ``competitor`` just before our next create.

    ``invisible_lookups`` single-record finds after the collision miss the
    competitor, the way a lagging read replica would.
    """

    def __init__(self, competitor: CustomerDraft, *, invisible_lookups: int = 0) -> None:
        super().__init__()
        self.competitor = competitor
        self.invisible_lookups = invisible_lookups
        self.raced = False

    def create_customer(self, draft: CustomerDraft) -> Customer:
        if not self.raced:
            self.raced = True
            super().create_customer(self.competitor)
        return super().create_customer(draft)

    def find_by_email(self, email: str) -> Customer | None:
        if self._hide():
            self.calls["find_by_email"] += 1
            return None
        return super().find_by_email(email)

    def find_by_phone(self, phone: str) -> Customer | None:
        if self._hide():
            self.calls["find_by_phone"] += 1
            return None
        return super().find_by_phone(phone)

    def _hide(self) -> bool:
        if self.raced and self.invisible_lookups > 0:
            self.invisible_lookups -= 1
            return True
        return False


class BarrierPlatform(InMemoryCustomerPlatform):
    """Holds every create until ``parties`` writers are waiting, then releases them together."""

    def __init__(self, parties: int) -> None:
        super().__init__()
        self.barrier = threading.Barrier(parties, timeout=5)

    def create_customer(self, draft: CustomerDraft) -> Customer:
        self.barrier.wait()
        return super().create_customer(draft)
