"""Shopify Admin API configuration values."""

from __future__ import annotations

from dataclasses import dataclass

from .env import env_float, env_int, optional_env_var, require_env_vars
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy

DEFAULT_SHOPIFY_API_VERSION = "2024-10"
DEFAULT_SHOPIFY_TIMEOUT_SECONDS = 15.0
DEFAULT_SHOPIFY_MAX_RETRIES = 2


@dataclass(frozen=True, slots=True)
class ShopifyConfig:
    """Holds Shopify Admin API configuration values."""

    store_domain: str
    access_token: str
    api_version: str
    resilience: ResilienceConfig

    @property
    def graphql_url(self) -> str:
        return f"https://{self.store_domain}/admin/api/{self.api_version}/graphql.json"


def get_shopify_config(*, resilience: ResilienceConfig | None = None) -> ShopifyConfig:
    values = require_env_vars(("SHOPIFY_STORE_DOMAIN", "SHOPIFY_ACCESS_TOKEN"))
    store_domain = values["SHOPIFY_STORE_DOMAIN"].strip().removeprefix("https://").rstrip("/")
    access_token = values["SHOPIFY_ACCESS_TOKEN"].strip()
    api_version = optional_env_var("SHOPIFY_API_VERSION", DEFAULT_SHOPIFY_API_VERSION)
    timeout = env_float(
        "SHOPIFY_TIMEOUT_SECONDS", DEFAULT_SHOPIFY_TIMEOUT_SECONDS, minimum=0.1
    )
    retries = env_int("SHOPIFY_MAX_RETRIES", DEFAULT_SHOPIFY_MAX_RETRIES, minimum=0)

    return ShopifyConfig(
        store_domain=store_domain,
        access_token=access_token,
        api_version=api_version,
        resilience=resilience
        or ResilienceConfig(
            name="shopify",
            timeout_seconds=timeout,
            retry=RetryPolicy(total=retries),
            # Admin GraphQL leaky bucket refills at roughly two requests per second.
            ratelimit=RateLimit(max_calls=2, per_seconds=1.0),
            default_headers={
                "X-Shopify-Access-Token": access_token,
                "Content-Type": "application/json",
            },
        ),
    )
