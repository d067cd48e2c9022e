"""Decision policy for one identity signal.

Precedence is (provider, external id) > email > phone. The policy is pure: it
reads a signal plus the candidates found for it and says what should happen,
without touching any store.

When email and phone point at two different existing customers the outcome is
``ambiguous``: the signal is linked to the email match and the phone match is
left untouched for manual review. Customers are never merged automatically.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from clientele.domain.errors import InvalidSignal
from clientele.domain.model import ResolutionAction

from .contracts import Decision

if TYPE_CHECKING:
    from clientele.domain.model import CustomerId, IdentitySignal

    from .contracts import CandidateMatches


def require_identity(signal: IdentitySignal) -> None:
    if not signal.has_identity:
        raise InvalidSignal("signal carries no email, phone or external id")


def _may_fill(key: str | None, owner: CustomerId | None, target: CustomerId) -> bool:
    return key is not None and (owner is None or owner == target)


def decide(signal: IdentitySignal, matches: CandidateMatches) -> Decision:
    try:
        require_identity(signal)
    except InvalidSignal as exc:
        return Decision(action=ResolutionAction.SKIPPED, reason=str(exc))

    by_ref, by_email, by_phone = matches.for_signal(signal)

    if by_ref is not None:
        return Decision(
            action=ResolutionAction.UPDATED,
            target=by_ref,
            fill_email=_may_fill(signal.email, by_email, by_ref),
            fill_phone=_may_fill(signal.phone, by_phone, by_ref),
            reason=f"seen before as {signal.provider.value}:{signal.external_id}",
        )

    if by_email is not None and by_phone is not None and by_email != by_phone:
        return Decision(
            action=ResolutionAction.AMBIGUOUS,
            target=by_email,
            conflicting_customer_id=by_phone,
            fill_email=False,
            fill_phone=False,
            reason=(
                f"email matches customer {by_email}, phone matches customer {by_phone}"
            ),
        )

    if by_email is not None:
        return Decision(
            action=ResolutionAction.LINKED,
            target=by_email,
            fill_phone=_may_fill(signal.phone, by_phone, by_email),
            reason="matched by email",
        )

    if by_phone is not None:
        return Decision(
            action=ResolutionAction.LINKED,
            target=by_phone,
            fill_email=signal.email is not None,
            reason="matched by phone",
        )

    return Decision(
        action=ResolutionAction.CREATED,
        fill_email=signal.email is not None,
        fill_phone=signal.phone is not None,
        reason="no existing customer matched",
    )
