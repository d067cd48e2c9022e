"""Canonical forms for identity keys.

Only the values produced here are ever compared or used as lookup keys.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Final

from clientele.domain.model import IdentitySignal, Provider, SignalSource

if TYPE_CHECKING:
    from collections.abc import Mapping

PHONE_DIGITS: Final[int] = 10

_NON_DIGIT = re.compile(r"\D")
_EMAIL_SHAPE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def normalize_email(raw: str | None) -> str | None:
    if raw is None:
        return None
    value = raw.strip().lower()
    return value or None


def normalize_phone(raw: str | None) -> str | None:
    """Return the last ten digits of ``raw``, or None when fewer than ten remain."""

    if raw is None:
        return None
    digits = _NON_DIGIT.sub("", raw)
    if len(digits) < PHONE_DIGITS:
        return None
    return digits[-PHONE_DIGITS:]


def is_valid_email(value: str) -> bool:
    return bool(_EMAIL_SHAPE.match(value.strip()))


def _clean_text(value: str | None) -> str | None:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


def _clean_external_id(value: str | int | None) -> str | None:
    if value is None:
        return None
    return _clean_text(str(value))


def split_full_name(full_name: str | None) -> tuple[str | None, str | None]:
    cleaned = _clean_text(full_name)
    if cleaned is None:
        return None, None
    first, _, rest = cleaned.partition(" ")
    return first, _clean_text(rest)


def build_signal(  # noqa: PLR0913
    *,
    email: str | None = None,
    phone: str | None = None,
    provider: Provider | str = Provider.MANUAL,
    external_id: str | int | None = None,
    first_name: str | None = None,
    last_name: str | None = None,
    company: str | None = None,
    metadata: Mapping[str, object] | None = None,
    source: SignalSource | str = SignalSource.IMPORT,
) -> IdentitySignal:
    """Build an ``IdentitySignal`` from raw, caller-formatted values."""

    return IdentitySignal(
        email=normalize_email(email),
        phone=normalize_phone(phone),
        provider=Provider(provider),
        external_id=_clean_external_id(external_id),
        first_name=_clean_text(first_name),
        last_name=_clean_text(last_name),
        company=_clean_text(company),
        metadata=dict(metadata or {}),
        source=SignalSource(source),
    )
