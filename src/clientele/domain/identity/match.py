"""Candidate lookup against the customer platform.

Lookups are bulk: however many signals are matched at once, the platform sees
one email query, one phone query and one external-reference query. "Not found"
is an empty result; transport failures propagate as ``RemoteUnavailable``.
"""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from .contracts import CandidateMatches

if TYPE_CHECKING:
    from collections.abc import Iterable

    from clientele.domain.model import CustomerId, ExternalRef, IdentitySignal, Provider
    from clientele.domain.ports import CustomerLookup

log = getLogger(__name__)


class CandidateMatcher:
    def __init__(self, platform: CustomerLookup) -> None:
        self.platform = platform

    def match_keys(
        self,
        emails: Iterable[str],
        phones: Iterable[str],
        refs: Iterable[ExternalRef] = (),
    ) -> CandidateMatches:
        unique_emails = sorted(set(emails))
        unique_phones = sorted(set(phones))
        unique_refs = sorted(set(refs))

        matches = CandidateMatches()
        if unique_emails:
            matches.by_email = self.platform.find_by_normalized_emails(unique_emails)
        if unique_phones:
            matches.by_phone = self.platform.find_by_normalized_phones(unique_phones)
        if unique_refs:
            matches.by_external_ref = self.platform.find_by_external_ids(unique_refs)

        log.debug(
            "Matched %s/%s emails, %s/%s phones, %s/%s external refs",
            len(matches.by_email),
            len(unique_emails),
            len(matches.by_phone),
            len(unique_phones),
            len(matches.by_external_ref),
            len(unique_refs),
        )
        return matches

    def match_external_refs(self, refs: Iterable[ExternalRef]) -> dict[ExternalRef, CustomerId]:
        unique_refs = sorted(set(refs))
        if not unique_refs:
            return {}
        return self.platform.find_by_external_ids(unique_refs)

    def find_linked(self, provider: Provider, external_id: str) -> CustomerId | None:
        return self.match_external_refs([(provider, external_id)]).get((provider, external_id))

    def match_signals(self, signals: Iterable[IdentitySignal]) -> CandidateMatches:
        emails: list[str] = []
        phones: list[str] = []
        refs: list[ExternalRef] = []
        for signal in signals:
            if signal.email is not None:
                emails.append(signal.email)
            if signal.phone is not None:
                phones.append(signal.phone)
            if signal.external_ref is not None:
                refs.append(signal.external_ref)
        return self.match_keys(emails, phones, refs)

    def match_signal(self, signal: IdentitySignal) -> CandidateMatches:
        return self.match_signals((signal,))
