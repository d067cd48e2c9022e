"""Shopify Admin GraphQL customer platform.

The port is synchronous; each call runs one short asyncio session over a
``ResilientClient``. Shopify enforces email and phone uniqueness itself and
reports a lost create race as a "has already been taken" user error.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, Final

import httpx

from clientele.adapters.http_resilience import ResilientClient
from clientele.config import RetryablePayloadError, get_shopify_config
from clientele.domain.errors import DuplicateIdentity, RemoteUnavailable
from clientele.domain.identity.normalize import normalize_email, normalize_phone
from clientele.domain.model import Provider

from .schema import (
    CustomerByIdData,
    CustomerCreateData,
    CustomerNode,
    CustomerSearchData,
    CustomerUpdateData,
    GraphQLEnvelope,
)
from .translator import (
    create_input,
    customer_gid,
    duplicate_error,
    numeric_id,
    ref_tag,
    search_query,
    to_customer,
    to_shopify_phone,
    update_input,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Sequence

    from clientele.config import ResilienceConfig, ShopifyConfig
    from clientele.domain.model import (
        Customer,
        CustomerDraft,
        CustomerId,
        CustomerUpdate,
        ExternalRef,
        IdentityLink,
    )
    from clientele.domain.ports import CustomerPlatform

    from .schema import CustomerMutationResult

log = getLogger(__name__)

SEARCH_CHUNK_SIZE: Final[int] = 25
SEARCH_PAGE_SIZE: Final[int] = 250
THROTTLED: Final[str] = "THROTTLED"

_CUSTOMER_FIELDS = "id email phone firstName lastName tags note"

SEARCH_CUSTOMERS = f"""
query searchCustomers($query: String!, $first: Int!) {{
  customers(query: $query, first: $first) {{
    edges {{ node {{ {_CUSTOMER_FIELDS} }} }}
  }}
}}
"""

GET_CUSTOMER = f"""
query getCustomer($id: ID!) {{
  customer(id: $id) {{ {_CUSTOMER_FIELDS} }}
}}
"""

CREATE_CUSTOMER = f"""
mutation customerCreate($input: CustomerInput!) {{
  customerCreate(input: $input) {{
    customer {{ {_CUSTOMER_FIELDS} }}
    userErrors {{ field message }}
  }}
}}
"""

UPDATE_CUSTOMER = f"""
mutation customerUpdate($input: CustomerInput!) {{
  customerUpdate(input: $input) {{
    customer {{ {_CUSTOMER_FIELDS} }}
    userErrors {{ field message }}
  }}
}}
"""


class ShopifyAPIError(RuntimeError):
    """Raised when Shopify rejects a request for a reason other than a duplicate."""

    def __init__(self, message: str, *, code: str | None = None) -> None:
        super().__init__(message)
        self.code = code


def _default_client_factory(config: ResilienceConfig) -> ResilientClient:
    return ResilientClient(config)


async def raise_when_throttled(response: httpx.Response) -> None:
    """Response hook turning a THROTTLED GraphQL error into a retryable failure."""

    if response.status_code != httpx.codes.OK:
        return
    await response.aread()
    try:
        envelope = GraphQLEnvelope.model_validate_json(response.content)
    except ValueError:
        return
    if any(error.code == THROTTLED for error in envelope.errors):
        raise RetryablePayloadError("Shopify throttled the request", response=response)


def _email_key(node: CustomerNode) -> str | None:
    return normalize_email(node.email)


def _phone_key(node: CustomerNode) -> str | None:
    return normalize_phone(node.phone)


def _index_by(
    nodes: Iterable[CustomerNode],
    key_of: Callable[[CustomerNode], str | None],
    wanted: Iterable[str],
) -> dict[str, CustomerId]:
    keys = set(wanted)
    found: dict[str, CustomerId] = {}
    for node in nodes:
        key = key_of(node)
        if key is not None and key in keys:
            found.setdefault(key, numeric_id(node.id))
    return found


def _first_matching(
    nodes: Iterable[CustomerNode],
    key_of: Callable[[CustomerNode], str | None],
    key: str,
) -> Customer | None:
    for node in nodes:
        if key_of(node) == key:
            return to_customer(node)
    return None


def _chunks[T](values: Sequence[T], size: int) -> Iterable[Sequence[T]]:
    for start in range(0, len(values), size):
        yield values[start : start + size]


@dataclass(slots=True)
class ShopifyCustomerPlatform:
    config: ShopifyConfig = field(default_factory=get_shopify_config)
    client_factory: Callable[[ResilienceConfig], ResilientClient] = field(
        default=_default_client_factory
    )

    # lookups -----------------------------------------------------------------

    def find_by_normalized_emails(self, emails: Iterable[str]) -> dict[str, CustomerId]:
        wanted = sorted(set(emails))
        nodes = asyncio.run(self._search_many("email", wanted, operation="find_by_emails"))
        return _index_by(nodes, _email_key, wanted)

    def find_by_normalized_phones(self, phones: Iterable[str]) -> dict[str, CustomerId]:
        wanted = sorted(set(phones))
        shopify_phones = [to_shopify_phone(phone) for phone in wanted]
        nodes = asyncio.run(self._search_many("phone", shopify_phones, operation="find_by_phones"))
        return _index_by(nodes, _phone_key, wanted)

    def find_by_external_ids(self, refs: Iterable[ExternalRef]) -> dict[ExternalRef, CustomerId]:
        unique_refs = set(refs)
        own_ids: list[str] = []
        tags: list[str] = []
        for provider, external_id in sorted(unique_refs):
            if provider is Provider.SHOPIFY:
                own_ids.append(external_id)
            else:
                tags.append(ref_tag(provider, external_id))
        return asyncio.run(self._find_by_refs(unique_refs, own_ids=own_ids, tags=tags))

    def find_by_email(self, email: str) -> Customer | None:
        nodes = asyncio.run(self._search_many("email", [email], operation="find_by_email"))
        return _first_matching(nodes, _email_key, email)

    def find_by_phone(self, phone: str) -> Customer | None:
        shopify_phone = to_shopify_phone(phone)
        nodes = asyncio.run(self._search_many("phone", [shopify_phone], operation="find_by_phone"))
        return _first_matching(nodes, _phone_key, phone)

    def get(self, customer_id: CustomerId) -> Customer | None:
        node = asyncio.run(self._get_node(customer_id))
        return to_customer(node) if node is not None else None

    # writes ------------------------------------------------------------------

    def create_customer(self, draft: CustomerDraft) -> Customer:
        result = asyncio.run(self._create(draft))
        return to_customer(result)

    def link_external_id(
        self,
        customer_id: CustomerId,
        link: IdentityLink,
        *,
        update: CustomerUpdate | None = None,
    ) -> Customer:
        return to_customer(asyncio.run(self._update(customer_id, update=update, link=link)))

    def update_customer(
        self,
        customer_id: CustomerId,
        update: CustomerUpdate,
        *,
        link: IdentityLink | None = None,
    ) -> Customer:
        return to_customer(asyncio.run(self._update(customer_id, update=update, link=link)))

    # async internals ---------------------------------------------------------

    def _client(self) -> ResilientClient:
        resilience = self.config.resilience.with_response_hooks(raise_when_throttled)
        return self.client_factory(resilience)

    async def _search_many(
        self, search_field: str, values: Sequence[str], *, operation: str
    ) -> list[CustomerNode]:
        if not values:
            return []
        nodes: list[CustomerNode] = []
        async with self._client() as client:
            for chunk in _chunks(values, SEARCH_CHUNK_SIZE):
                query = search_query(search_field, chunk)
                nodes.extend(await self._search(client, query, operation=operation))
        return nodes

    async def _find_by_refs(
        self,
        wanted: set[ExternalRef],
        *,
        own_ids: Sequence[str],
        tags: Sequence[str],
    ) -> dict[ExternalRef, CustomerId]:
        found: dict[ExternalRef, CustomerId] = {}
        if not wanted:
            return found
        async with self._client() as client:
            for chunk in _chunks(own_ids, SEARCH_CHUNK_SIZE):
                query = " OR ".join(f"id:{external_id}" for external_id in chunk)
                for node in await self._search(client, query, operation="find_by_external_ids"):
                    customer_id = numeric_id(node.id)
                    found[(Provider.SHOPIFY, str(customer_id))] = customer_id
            for chunk in _chunks(tags, SEARCH_CHUNK_SIZE):
                query = search_query("tag", chunk)
                for node in await self._search(client, query, operation="find_by_external_ids"):
                    for ref in to_customer(node).external_refs:
                        if ref in wanted:
                            found.setdefault(ref, numeric_id(node.id))
        return {ref: customer_id for ref, customer_id in found.items() if ref in wanted}

    async def _search(
        self, client: ResilientClient, query: str, *, operation: str
    ) -> list[CustomerNode]:
        data = await self._execute(
            client,
            SEARCH_CUSTOMERS,
            {"query": query, "first": SEARCH_PAGE_SIZE},
            operation=operation,
        )
        return CustomerSearchData.model_validate(data).customers.nodes

    async def _get_node(self, customer_id: CustomerId) -> CustomerNode | None:
        async with self._client() as client:
            data = await self._execute(
                client, GET_CUSTOMER, {"id": customer_gid(customer_id)}, operation="get"
            )
        return CustomerByIdData.model_validate(data).customer

    async def _create(self, draft: CustomerDraft) -> CustomerNode:
        async with self._client() as client:
            data = await self._execute(
                client,
                CREATE_CUSTOMER,
                {"input": create_input(draft)},
                operation="create_customer",
            )
        result = CustomerCreateData.model_validate(data).result
        return self._mutation_customer(result, operation="create_customer")

    async def _update(
        self,
        customer_id: CustomerId,
        *,
        update: CustomerUpdate | None,
        link: IdentityLink | None,
    ) -> CustomerNode:
        async with self._client() as client:
            data = await self._execute(
                client, GET_CUSTOMER, {"id": customer_gid(customer_id)}, operation="get"
            )
            current = CustomerByIdData.model_validate(data).customer
            if current is None:
                raise LookupError(f"customer {customer_id} does not exist")

            payload = update_input(current, update=update, link=link)
            if len(payload) == 1:
                return current
            data = await self._execute(
                client, UPDATE_CUSTOMER, {"input": payload}, operation="update_customer"
            )
        result = CustomerUpdateData.model_validate(data).result
        return self._mutation_customer(result, operation="update_customer")

    @staticmethod
    def _mutation_customer(result: CustomerMutationResult, *, operation: str) -> CustomerNode:
        duplicate = duplicate_error(result.user_errors)
        if duplicate is not None:
            raise DuplicateIdentity(
                f"{operation} rejected: {duplicate.message}",
                field=duplicate.field_name,
            )
        if result.user_errors:
            messages = ", ".join(error.message for error in result.user_errors)
            raise ShopifyAPIError(f"{operation} rejected: {messages}")
        if result.customer is None:
            raise ShopifyAPIError(f"{operation} returned no customer")
        return result.customer

    async def _execute(
        self,
        client: ResilientClient,
        query: str,
        variables: dict[str, object],
        *,
        operation: str,
    ) -> dict[str, object]:
        try:
            response = await client.post(
                self.config.graphql_url, json={"query": query, "variables": variables}
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            log.warning("Shopify %s failed: %s", operation, exc)
            raise RemoteUnavailable(
                f"Shopify {operation} failed: {exc}", operation=operation
            ) from exc

        envelope = GraphQLEnvelope.model_validate(response.json())
        if envelope.errors:
            first = envelope.errors[0]
            if first.code == THROTTLED:
                raise RemoteUnavailable(f"Shopify {operation} throttled", operation=operation)
            log.error("Shopify %s error: %s", operation, first.message)
            raise ShopifyAPIError(first.message, code=first.code)
        if envelope.data is None:
            raise ShopifyAPIError(f"Shopify {operation} returned no data")
        return envelope.data


if TYPE_CHECKING:
    _platform_check: CustomerPlatform = ShopifyCustomerPlatform()
