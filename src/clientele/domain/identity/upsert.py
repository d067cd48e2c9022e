"""Race-safe create against the customer platform.

The platform is the only arbiter of uniqueness. Two resolutions for the same
new person can both pass the find pre-check and both try to create; the loser
gets ``DuplicateIdentity``, re-finds, and reports the winner as already
existing. The whole find/create sequence is retried a bounded number of times
with a doubling delay before the failure is surfaced.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from clientele.domain.errors import DuplicateIdentity, RemoteUnavailable

from .contracts import UpsertOutcome

if TYPE_CHECKING:
    from collections.abc import Callable

    from clientele.domain.model import Customer, CustomerDraft
    from clientele.domain.ports import CustomerPlatform

log = getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RaceRetryPolicy:
    attempts: int = 3
    base_delay: float = 0.1

    def __post_init__(self) -> None:
        if self.attempts < 1:
            raise ValueError("attempts must be at least 1")
        if self.base_delay < 0:
            raise ValueError("base_delay must not be negative")

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after the zero-based ``attempt`` failed."""

        return self.base_delay * 2**attempt


class RemoteUpsert:
    def __init__(
        self,
        platform: CustomerPlatform,
        policy: RaceRetryPolicy | None = None,
        *,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.platform = platform
        self.policy = policy or RaceRetryPolicy()
        self._sleep = sleep

    def create_or_find(self, draft: CustomerDraft) -> UpsertOutcome:
        last_error: Exception | None = None
        for attempt in range(self.policy.attempts):
            try:
                return self.attempt(draft)
            except (DuplicateIdentity, RemoteUnavailable) as exc:
                last_error = exc
                log.warning(
                    "Create attempt %s/%s failed: %s",
                    attempt + 1,
                    self.policy.attempts,
                    exc,
                )
            self.pause(attempt)

        raise RemoteUnavailable(
            f"Could not create or find customer after {self.policy.attempts} attempts",
            operation="create_customer",
        ) from last_error

    def find_existing(self, draft: CustomerDraft) -> Customer | None:
        """Look the draft up by email, then phone, then external reference."""

        if draft.email is not None:
            found = self.platform.find_by_email(draft.email)
            if found is not None:
                return found
        if draft.phone is not None:
            found = self.platform.find_by_phone(draft.phone)
            if found is not None:
                return found
        ref = draft.identity.external_ref if draft.identity is not None else None
        if ref is not None:
            customer_id = self.platform.find_by_external_ids([ref]).get(ref)
            if customer_id is not None:
                return self.platform.get(customer_id)
        return None

    def pause(self, attempt: int) -> None:
        """Wait out the delay after the zero-based ``attempt`` unless it was the last."""

        if attempt + 1 < self.policy.attempts:
            self._sleep(self.policy.delay_for(attempt))

    def attempt(self, draft: CustomerDraft) -> UpsertOutcome:
        """One find-then-create pass; a rejected create is re-found once."""

        existing = self.find_existing(draft)
        if existing is not None:
            log.info("Customer %s appeared before create; treating as existing", existing.id)
            return UpsertOutcome(existing, already_exists=True)

        try:
            return UpsertOutcome(self.platform.create_customer(draft))
        except DuplicateIdentity as exc:
            winner = self.find_existing(draft)
            if winner is None:
                # rejected, but the conflicting record is not visible yet
                raise
            log.warning(
                "Lost create race on %s=%s; customer %s already exists",
                exc.field,
                exc.value,
                winner.id,
            )
            return UpsertOutcome(winner, already_exists=True)
