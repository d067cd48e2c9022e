"""Port for the manual-review queue."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from clientele.domain.model import ReviewFlag


@runtime_checkable
class ReviewQueue(Protocol):
    def flag(self, flag: ReviewFlag) -> ReviewFlag:
        """Record ``flag``, or return the open flag already held for the same pair."""
        ...

    def list_open(self, *, limit: int = 50) -> list[ReviewFlag]: ...

    def resolve(self, flag_id: int) -> None: ...
