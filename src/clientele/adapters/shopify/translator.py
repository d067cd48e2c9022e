"""Translate between Shopify customer payloads and the domain model.

Shopify's own numeric customer id is the canonical customer id. Identities
from other providers are kept on the Shopify record as ``ref:<provider>:<id>``
tags, which makes them searchable with ``tag:`` queries.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Final

from clientele.domain.identity.normalize import normalize_email, normalize_phone
from clientele.domain.model import Customer, IdentityLink, Provider

if TYPE_CHECKING:
    from collections.abc import Iterable

    from clientele.domain.model import CustomerDraft, CustomerId, CustomerUpdate, ExternalRef

    from .schema import CustomerNode, UserError

CUSTOMER_GID_PREFIX: Final[str] = "gid://shopify/Customer/"
REF_TAG_PREFIX: Final[str] = "ref:"
# normalized phones are the last ten digits of a NANP number
PHONE_COUNTRY_PREFIX: Final[str] = "+1"
_DUPLICATE_MARKERS: Final[tuple[str, ...]] = ("taken", "already")


def customer_gid(customer_id: CustomerId) -> str:
    return f"{CUSTOMER_GID_PREFIX}{customer_id}"


def numeric_id(gid: str) -> CustomerId:
    if not gid.startswith(CUSTOMER_GID_PREFIX):
        raise ValueError(f"Not a Shopify customer id: {gid!r}")
    return int(gid.removeprefix(CUSTOMER_GID_PREFIX))


def ref_tag(provider: Provider, external_id: str) -> str:
    return f"{REF_TAG_PREFIX}{provider.value}:{external_id}"


def parse_ref_tag(tag: str) -> ExternalRef | None:
    if not tag.startswith(REF_TAG_PREFIX):
        return None
    provider_value, sep, external_id = tag.removeprefix(REF_TAG_PREFIX).partition(":")
    if not sep or not external_id:
        return None
    try:
        return (Provider(provider_value), external_id)
    except ValueError:
        return None


def to_shopify_phone(phone: str) -> str:
    return f"{PHONE_COUNTRY_PREFIX}{phone}"


def _quote(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def search_query(field: str, values: Iterable[str]) -> str:
    """Build a customer search query matching any of ``values`` on ``field``."""

    return " OR ".join(f"{field}:{_quote(value)}" for value in values)


def to_customer(node: CustomerNode) -> Customer:
    customer_id = numeric_id(node.id)
    email = normalize_email(node.email)
    phone = normalize_phone(node.phone)
    customer = Customer(
        id=customer_id,
        primary_email=email,
        primary_phone=phone,
        first_name=node.first_name,
        last_name=node.last_name,
    )
    customer.link_identity(
        IdentityLink(
            provider=Provider.SHOPIFY,
            external_id=str(customer_id),
            email=email,
            phone=phone,
        )
    )
    for tag in node.tags:
        ref = parse_ref_tag(tag)
        if ref is not None and ref[0] is not Provider.SHOPIFY:
            customer.link_identity(IdentityLink(provider=ref[0], external_id=ref[1]))
    return customer


def _link_tags(link: IdentityLink | None) -> list[str]:
    if link is None or link.external_id is None or link.provider is Provider.SHOPIFY:
        return []
    return [ref_tag(link.provider, link.external_id)]


def create_input(draft: CustomerDraft) -> dict[str, object]:
    payload: dict[str, object] = {}
    if draft.email is not None:
        payload["email"] = draft.email
    if draft.phone is not None:
        payload["phone"] = to_shopify_phone(draft.phone)
    if draft.first_name is not None:
        payload["firstName"] = draft.first_name
    if draft.last_name is not None:
        payload["lastName"] = draft.last_name
    tags = _link_tags(draft.identity)
    if tags:
        payload["tags"] = tags
    return payload


def update_input(
    current: CustomerNode,
    *,
    update: CustomerUpdate | None,
    link: IdentityLink | None,
) -> dict[str, object]:
    """Input for ``customerUpdate``: fill empty keys, refresh names, add ref tags."""

    payload: dict[str, object] = {"id": current.id}
    if update is not None:
        if update.fill_email is not None and current.email is None:
            payload["email"] = update.fill_email
        if update.fill_phone is not None and current.phone is None:
            payload["phone"] = to_shopify_phone(update.fill_phone)
        if update.first_name:
            payload["firstName"] = update.first_name
        if update.last_name:
            payload["lastName"] = update.last_name

    new_tags = [tag for tag in _link_tags(link) if tag not in current.tags]
    if new_tags:
        payload["tags"] = [*current.tags, *new_tags]
    return payload


def duplicate_error(errors: Iterable[UserError]) -> UserError | None:
    for error in errors:
        message = error.message.lower()
        if any(marker in message for marker in _DUPLICATE_MARKERS):
            return error
    return None
