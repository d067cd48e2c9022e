"""Shared identity-resolution contract components.

This module holds only the value objects passed between the matcher, the
decision policy, the upsert loop and the engine.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from clientele.domain.model import ResolutionAction

if TYPE_CHECKING:
    from clientele.domain.model import Customer, CustomerId, ExternalRef, IdentitySignal

NO_CUSTOMER: CustomerId = 0


@dataclass(slots=True, kw_only=True)
class CandidateMatches:
    """Existing customers keyed by the normalized value that matched them."""

    by_email: dict[str, CustomerId] = field(default_factory=dict[str, "CustomerId"])
    by_phone: dict[str, CustomerId] = field(default_factory=dict[str, "CustomerId"])
    by_external_ref: dict[ExternalRef, CustomerId] = field(
        default_factory=dict["ExternalRef", "CustomerId"]
    )

    def for_signal(
        self, signal: IdentitySignal
    ) -> tuple[CustomerId | None, CustomerId | None, CustomerId | None]:
        """Return the (external ref, email, phone) matches for ``signal``."""

        ref = signal.external_ref
        return (
            self.by_external_ref.get(ref) if ref is not None else None,
            self.by_email.get(signal.email) if signal.email is not None else None,
            self.by_phone.get(signal.phone) if signal.phone is not None else None,
        )

    def claim(self, signal: IdentitySignal, customer_id: CustomerId) -> None:
        """Record keys of ``signal`` as owned by ``customer_id`` if still unclaimed."""

        if signal.email is not None:
            self.by_email.setdefault(signal.email, customer_id)
        if signal.phone is not None:
            self.by_phone.setdefault(signal.phone, customer_id)
        ref = signal.external_ref
        if ref is not None:
            self.by_external_ref.setdefault(ref, customer_id)

    @property
    def is_empty(self) -> bool:
        return not (self.by_email or self.by_phone or self.by_external_ref)


@dataclass(frozen=True, slots=True, kw_only=True)
class Decision:
    """What the policy wants done with one signal, before any write."""

    action: ResolutionAction
    target: CustomerId | None = None
    conflicting_customer_id: CustomerId | None = None
    fill_email: bool = False
    fill_phone: bool = False
    reason: str

    @property
    def needs_review(self) -> bool:
        return self.action is ResolutionAction.AMBIGUOUS


@dataclass(frozen=True, slots=True, kw_only=True)
class Resolution:
    """Outcome of resolving one signal."""

    customer_id: CustomerId
    action: ResolutionAction
    already_exists: bool = False
    conflicting_customer_id: CustomerId | None = None
    reason: str | None = None

    @property
    def needs_review(self) -> bool:
        return self.action is ResolutionAction.AMBIGUOUS

    @classmethod
    def skipped(cls, reason: str) -> Resolution:
        return cls(customer_id=NO_CUSTOMER, action=ResolutionAction.SKIPPED, reason=reason)


@dataclass(frozen=True, slots=True)
class UpsertOutcome:
    customer: Customer
    already_exists: bool = False
