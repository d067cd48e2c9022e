from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
import pytest

from clientele.adapters.http_resilience import ResilientClient
from clientele.adapters.shopify import ShopifyCustomerPlatform
from clientele.config import ResilienceConfig, RetryPolicy, ShopifyConfig
from tests.support.shopify import FakeShopify

if TYPE_CHECKING:
    from collections.abc import Callable

type ClientFactory = Callable[[ResilienceConfig], ResilientClient]


async def _no_sleep(_seconds: float) -> None:
    return None


@pytest.fixture
def fake_shopify() -> FakeShopify:
    return FakeShopify()


@pytest.fixture
def shopify_config() -> ShopifyConfig:
    return ShopifyConfig(
        store_domain="example.myshopify.com",
        access_token="shpat_test",  # noqa: S106
        api_version="2024-10",
        resilience=ResilienceConfig(
            name="shopify-test",
            retry=RetryPolicy(total=0),
            default_headers={"X-Shopify-Access-Token": "shpat_test"},
        ),
    )


@pytest.fixture
def client_factory(fake_shopify: FakeShopify) -> ClientFactory:
    def factory(config: ResilienceConfig) -> ResilientClient:
        transport = httpx.MockTransport(fake_shopify.handler)
        return ResilientClient(config, transport=transport, sleep=_no_sleep)

    return factory


@pytest.fixture
def shopify_platform(
    shopify_config: ShopifyConfig, client_factory: ClientFactory
) -> ShopifyCustomerPlatform:
    return ShopifyCustomerPlatform(config=shopify_config, client_factory=client_factory)
