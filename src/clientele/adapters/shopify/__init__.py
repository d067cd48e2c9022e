"""Public interface for the Shopify customer platform adapter."""

from __future__ import annotations

from .client import ShopifyAPIError, ShopifyCustomerPlatform
from .schema import CustomerNode
from .translator import parse_ref_tag, ref_tag, to_customer

__all__ = [
    "CustomerNode",
    "ShopifyAPIError",
    "ShopifyCustomerPlatform",
    "parse_ref_tag",
    "ref_tag",
    "to_customer",
]
