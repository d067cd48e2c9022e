from __future__ import annotations

from dataclasses import replace
from typing import TYPE_CHECKING

import pytest

from clientele.adapters.shopify import ShopifyAPIError, ShopifyCustomerPlatform
from clientele.config import RetryPolicy
from clientele.domain.errors import DuplicateIdentity, RemoteUnavailable
from clientele.domain.identity import RemoteUpsert, ResolutionEngine, build_signal
from clientele.domain.model import (
    CustomerDraft,
    CustomerUpdate,
    IdentityLink,
    Provider,
    ResolutionAction,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from clientele.adapters.http_resilience import ResilientClient
    from clientele.config import ResilienceConfig, ShopifyConfig
    from tests.support.shopify import FakeShopify


def test_bulk_email_lookup_maps_normalized_emails(
    fake_shopify: FakeShopify, shopify_platform: ShopifyCustomerPlatform
) -> None:
    fake_shopify.add(email="Jane@Co.com")
    fake_shopify.add(email="bob@co.com")

    found = shopify_platform.find_by_normalized_emails(["jane@co.com", "nobody@co.com"])

    assert found == {"jane@co.com": 1001}
    assert fake_shopify.operations() == ["searchCustomers"]


def test_bulk_lookup_is_chunked(
    fake_shopify: FakeShopify, shopify_platform: ShopifyCustomerPlatform
) -> None:
    emails = [f"user{i}@co.com" for i in range(30)]

    assert shopify_platform.find_by_normalized_emails(emails) == {}
    assert fake_shopify.operations() == ["searchCustomers", "searchCustomers"]


def test_empty_lookup_sends_nothing(
    fake_shopify: FakeShopify, shopify_platform: ShopifyCustomerPlatform
) -> None:
    assert shopify_platform.find_by_normalized_phones([]) == {}
    assert shopify_platform.find_by_external_ids([]) == {}
    assert fake_shopify.requests == []


def test_requests_carry_access_token(
    fake_shopify: FakeShopify,
    shopify_config: ShopifyConfig,
    shopify_platform: ShopifyCustomerPlatform,
) -> None:
    shopify_platform.find_by_email("jane@co.com")

    (request,) = fake_shopify.seen
    assert str(request.url) == shopify_config.graphql_url
    assert request.headers["X-Shopify-Access-Token"] == "shpat_test"


def test_phone_lookup_uses_country_prefix(
    fake_shopify: FakeShopify, shopify_platform: ShopifyCustomerPlatform
) -> None:
    fake_shopify.add(phone="+15551234567")

    assert shopify_platform.find_by_normalized_phones(["5551234567"]) == {"5551234567": 1001}
    customer = shopify_platform.find_by_phone("5551234567")
    assert customer is not None
    assert customer.primary_phone == "5551234567"
    assert fake_shopify.requests[0]["variables"] == {
        "query": 'phone:"+15551234567"',
        "first": 250,
    }


def test_external_id_lookup_uses_ids_and_tags(
    fake_shopify: FakeShopify, shopify_platform: ShopifyCustomerPlatform
) -> None:
    fake_shopify.add(email="jane@co.com")
    fake_shopify.add(email="bob@co.com", tags=["ref:amazon:A-1"])

    found = shopify_platform.find_by_external_ids(
        [
            (Provider.SHOPIFY, "1001"),
            (Provider.AMAZON, "A-1"),
            (Provider.QBO, "missing"),
        ]
    )

    assert found == {(Provider.SHOPIFY, "1001"): 1001, (Provider.AMAZON, "A-1"): 1002}


def test_get_missing_customer_returns_none(shopify_platform: ShopifyCustomerPlatform) -> None:
    assert shopify_platform.get(4242) is None


def test_create_customer_sends_input_and_returns_customer(
    fake_shopify: FakeShopify, shopify_platform: ShopifyCustomerPlatform
) -> None:
    customer = shopify_platform.create_customer(
        CustomerDraft(
            email="jane@co.com",
            phone="5551234567",
            first_name="Jane",
            identity=IdentityLink(provider=Provider.AMAZON, external_id="A-1"),
        )
    )

    assert customer.id == 1001
    assert customer.primary_phone == "5551234567"
    assert customer.has_identity(Provider.AMAZON, "A-1")
    assert fake_shopify.nodes[1001]["phone"] == "+15551234567"
    assert fake_shopify.nodes[1001]["tags"] == ["ref:amazon:A-1"]


def test_create_duplicate_raises_duplicate_identity(
    fake_shopify: FakeShopify, shopify_platform: ShopifyCustomerPlatform
) -> None:
    fake_shopify.add(email="jane@co.com")

    with pytest.raises(DuplicateIdentity) as excinfo:
        shopify_platform.create_customer(CustomerDraft(email="jane@co.com"))

    assert excinfo.value.field == "email"
    assert len(fake_shopify.nodes) == 1


def test_link_adds_ref_tag_and_fills_phone(
    fake_shopify: FakeShopify, shopify_platform: ShopifyCustomerPlatform
) -> None:
    fake_shopify.add(email="jane@co.com", tags=["vip"])

    customer = shopify_platform.link_external_id(
        1001,
        IdentityLink(provider=Provider.QBO, external_id="9"),
        update=CustomerUpdate(fill_phone="5551234567"),
    )

    assert fake_shopify.operations() == ["getCustomer", "customerUpdate"]
    assert fake_shopify.nodes[1001]["tags"] == ["vip", "ref:qbo:9"]
    assert customer.primary_phone == "5551234567"
    assert customer.has_identity(Provider.QBO, "9")


def test_link_without_changes_skips_mutation(
    fake_shopify: FakeShopify, shopify_platform: ShopifyCustomerPlatform
) -> None:
    fake_shopify.add(email="jane@co.com", tags=["ref:qbo:9"])

    customer = shopify_platform.link_external_id(
        1001, IdentityLink(provider=Provider.QBO, external_id="9")
    )

    assert customer.id == 1001
    assert fake_shopify.operations() == ["getCustomer"]


def test_update_missing_customer_raises_lookup_error(
    shopify_platform: ShopifyCustomerPlatform,
) -> None:
    with pytest.raises(LookupError):
        shopify_platform.update_customer(4242, CustomerUpdate(first_name="Jane"))


def test_fill_collision_raises_duplicate_identity(
    fake_shopify: FakeShopify, shopify_platform: ShopifyCustomerPlatform
) -> None:
    fake_shopify.add(email="jane@co.com")
    fake_shopify.add(phone="+15551234567")

    with pytest.raises(DuplicateIdentity) as excinfo:
        shopify_platform.update_customer(1001, CustomerUpdate(fill_phone="5551234567"))

    assert excinfo.value.field == "phone"


def test_http_errors_become_remote_unavailable(
    fake_shopify: FakeShopify, shopify_platform: ShopifyCustomerPlatform
) -> None:
    fake_shopify.status_code = 503

    with pytest.raises(RemoteUnavailable) as excinfo:
        shopify_platform.find_by_email("jane@co.com")

    assert excinfo.value.operation == "find_by_email"


def test_throttling_becomes_remote_unavailable(
    fake_shopify: FakeShopify, shopify_platform: ShopifyCustomerPlatform
) -> None:
    fake_shopify.errors = [{"message": "Throttled", "extensions": {"code": "THROTTLED"}}]

    with pytest.raises(RemoteUnavailable):
        shopify_platform.get(1001)


def test_other_graphql_errors_raise_api_error(
    fake_shopify: FakeShopify, shopify_platform: ShopifyCustomerPlatform
) -> None:
    fake_shopify.errors = [{"message": "Access denied", "extensions": {"code": "ACCESS_DENIED"}}]

    with pytest.raises(ShopifyAPIError) as excinfo:
        shopify_platform.get(1001)

    assert excinfo.value.code == "ACCESS_DENIED"


def test_engine_resolves_against_shopify(
    fake_shopify: FakeShopify, shopify_platform: ShopifyCustomerPlatform
) -> None:
    upsert = RemoteUpsert(shopify_platform, sleep=lambda _seconds: None)
    engine = ResolutionEngine(shopify_platform, upsert=upsert)

    created = engine.resolve(build_signal(email="Jane@Co.com", provider="amazon", external_id="A-1"))
    linked = engine.resolve(build_signal(email="jane@co.com", phone="(555) 123-4567"))

    assert created.action is ResolutionAction.CREATED
    assert linked.action is ResolutionAction.LINKED
    assert linked.customer_id == created.customer_id
    assert len(fake_shopify.nodes) == 1
    assert fake_shopify.nodes[created.customer_id]["phone"] == "+15551234567"


def test_throttled_responses_are_retried(
    fake_shopify: FakeShopify,
    shopify_config: ShopifyConfig,
    client_factory: Callable[[ResilienceConfig], ResilientClient],
) -> None:
    fake_shopify.add(email="jane@co.com")
    fake_shopify.throttled_responses = 1
    resilience = replace(shopify_config.resilience, retry=RetryPolicy(total=1))
    platform = ShopifyCustomerPlatform(
        config=replace(shopify_config, resilience=resilience),
        client_factory=client_factory,
    )

    assert platform.find_by_normalized_emails(["jane@co.com"]) == {"jane@co.com": 1001}
    assert fake_shopify.operations() == ["searchCustomers", "searchCustomers"]
