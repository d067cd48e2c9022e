"""Resolution engine: signal in, exactly one canonical customer out.

Each ``resolve`` call matches the signal against the platform, decides with
``policy.decide`` and performs one platform write. When that pass fails with
``DuplicateIdentity`` (another writer claimed a key since the match) or
``RemoteUnavailable``, the whole match, decide and write pass is repeated under
the upsert's ``RaceRetryPolicy``. The engine keeps no state between calls, so
concurrent calls for different signals are safe; concurrent calls for the same
new person converge through ``RemoteUpsert``.
"""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from clientele.domain.errors import DuplicateIdentity, InvalidSignal, RemoteUnavailable
from clientele.domain.model import ResolutionAction, ReviewFlag

from .contracts import NO_CUSTOMER, Resolution
from .match import CandidateMatcher
from .policy import decide, require_identity
from .upsert import RemoteUpsert

if TYPE_CHECKING:
    from clientele.domain.model import Customer, CustomerId, CustomerUpdate, IdentitySignal
    from clientele.domain.ports import CustomerPlatform, ReviewQueue

    from .contracts import CandidateMatches, Decision

log = getLogger(__name__)


class ResolutionEngine:
    def __init__(
        self,
        platform: CustomerPlatform,
        *,
        matcher: CandidateMatcher | None = None,
        upsert: RemoteUpsert | None = None,
        review_queue: ReviewQueue | None = None,
    ) -> None:
        self.platform = platform
        self.matcher = matcher or CandidateMatcher(platform)
        self.upsert = upsert or RemoteUpsert(platform)
        self.review_queue = review_queue

    def resolve(self, signal: IdentitySignal) -> Resolution:
        """Resolve ``signal`` to one customer, creating or linking as needed.

        Raises ``RemoteUnavailable`` when the platform stays unreachable; a
        signal without any identifying field is reported as skipped.
        """

        try:
            require_identity(signal)
        except InvalidSignal as exc:
            log.info("Skipping signal from %s: %s", signal.source.value, exc)
            return Resolution.skipped(str(exc))

        policy = self.upsert.policy
        last_error: DuplicateIdentity | RemoteUnavailable | None = None
        for attempt in range(policy.attempts):
            try:
                resolution = self._resolve_once(signal)
            except (DuplicateIdentity, RemoteUnavailable) as exc:
                last_error = exc
                log.warning(
                    "Resolution attempt %s/%s failed: %s", attempt + 1, policy.attempts, exc
                )
                self.upsert.pause(attempt)
                continue
            log.info(
                "Resolved %s signal to customer %s (%s)",
                signal.source.value,
                resolution.customer_id,
                resolution.action.value,
            )
            return resolution

        if isinstance(last_error, RemoteUnavailable):
            raise last_error
        raise RemoteUnavailable(
            f"Could not settle identity keys after {policy.attempts} attempts",
            operation="resolve",
        ) from last_error

    def _resolve_once(self, signal: IdentitySignal) -> Resolution:
        matches = self.matcher.match_signal(signal)
        return self._apply(signal, decide(signal, matches))

    def predict(self, signal: IdentitySignal, matches: CandidateMatches) -> Resolution:
        """Report what ``resolve`` would do given ``matches``, without writing."""

        decision = decide(signal, matches)
        if decision.action is ResolutionAction.SKIPPED:
            return Resolution.skipped(decision.reason)
        return Resolution(
            customer_id=decision.target if decision.target is not None else NO_CUSTOMER,
            action=decision.action,
            conflicting_customer_id=decision.conflicting_customer_id,
            reason=decision.reason,
        )

    def _apply(self, signal: IdentitySignal, decision: Decision) -> Resolution:
        match decision.action:
            case ResolutionAction.CREATED:
                return self._create(signal, decision)
            case ResolutionAction.UPDATED:
                customer = self._write(signal, decision, link_only=False)
            case ResolutionAction.LINKED | ResolutionAction.AMBIGUOUS:
                customer = self._write(signal, decision, link_only=True)
            case _:
                return Resolution.skipped(decision.reason)

        if decision.needs_review:
            self._flag_for_review(signal, decision)
        return Resolution(
            customer_id=_persisted_id(customer),
            action=decision.action,
            conflicting_customer_id=decision.conflicting_customer_id,
            reason=decision.reason,
        )

    def _create(self, signal: IdentitySignal, decision: Decision) -> Resolution:
        outcome = self.upsert.attempt(signal.to_draft())
        if not outcome.already_exists:
            return Resolution(
                customer_id=_persisted_id(outcome.customer),
                action=ResolutionAction.CREATED,
                reason=decision.reason,
            )

        # someone else created this person first; attach our source to theirs
        winner_id = _persisted_id(outcome.customer)
        customer = self.platform.link_external_id(
            winner_id,
            signal.to_link(),
            update=signal.to_update(fill_email=False, fill_phone=False),
        )
        return Resolution(
            customer_id=_persisted_id(customer),
            action=ResolutionAction.LINKED,
            already_exists=True,
            reason="created concurrently by another writer",
        )

    def _write(self, signal: IdentitySignal, decision: Decision, *, link_only: bool) -> Customer:
        target = decision.target
        if target is None:
            raise ValueError(f"{decision.action.value} decision without a target")

        update = signal.to_update(fill_email=decision.fill_email, fill_phone=decision.fill_phone)
        try:
            return self._send(target, signal, update, link_only=link_only)
        except DuplicateIdentity as exc:
            if not (decision.fill_email or decision.fill_phone):
                raise
            # a key we meant to fill was claimed since the match; keep the link only
            log.warning(
                "Could not fill %s=%s on customer %s; linking without it",
                exc.field,
                exc.value,
                target,
            )
            update = signal.to_update(fill_email=False, fill_phone=False)
            return self._send(target, signal, update, link_only=link_only)

    def _send(
        self,
        target: CustomerId,
        signal: IdentitySignal,
        update: CustomerUpdate,
        *,
        link_only: bool,
    ) -> Customer:
        if link_only:
            return self.platform.link_external_id(target, signal.to_link(), update=update)
        return self.platform.update_customer(target, update, link=signal.to_link())

    def _flag_for_review(self, signal: IdentitySignal, decision: Decision) -> None:
        """Queue the conflict for a human; the link is already committed at this point."""

        target, conflicting = decision.target, decision.conflicting_customer_id
        if target is None or conflicting is None:
            raise ValueError("review requires both the linked and the conflicting customer")
        log.warning(
            "Ambiguous signal linked to customer %s; customer %s left untouched (%s)",
            target,
            conflicting,
            decision.reason,
        )
        if self.review_queue is None:
            return
        flag = ReviewFlag(
            customer_id=target,
            conflicting_customer_id=conflicting,
            reason=decision.reason,
            email=signal.email,
            phone=signal.phone,
            provider=signal.provider,
            external_id=signal.external_id,
        )
        try:
            self.review_queue.flag(flag)
        except Exception:
            log.exception("Could not flag customers %s and %s for review", target, conflicting)


def _persisted_id(customer: Customer) -> CustomerId:
    if customer.id is None:
        raise ValueError("platform returned a customer without an id")
    return customer.id
