"""Manual-review entries for identity conflicts the engine refuses to merge."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from clientele.domain.model.enums import Provider, ReviewStatus

if TYPE_CHECKING:
    from datetime import datetime

    from clientele.domain.model.customer import CustomerId


@dataclass(eq=False, kw_only=True)
class ReviewFlag:
    customer_id: CustomerId
    conflicting_customer_id: CustomerId
    reason: str
    email: str | None = None
    phone: str | None = None
    provider: Provider | None = None
    external_id: str | None = None
    status: ReviewStatus = ReviewStatus.OPEN

    id: int | None = None
    created_at: datetime | None = None
    resolved_at: datetime | None = None

    def involves(self, customer_id: CustomerId) -> bool:
        return customer_id in {self.customer_id, self.conflicting_customer_id}
