"""Pydantic models describing the Shopify Admin GraphQL customer payloads."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _blank_to_none(value: object) -> object:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return value


class ShopifyBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class CustomerNode(ShopifyBaseModel):
    id: str
    email: str | None = None
    phone: str | None = None
    first_name: str | None = Field(default=None, alias="firstName")
    last_name: str | None = Field(default=None, alias="lastName")
    tags: list[str] = Field(default_factory=list)
    note: str | None = None

    _normalize_blanks = field_validator(
        "email", "phone", "first_name", "last_name", "note", mode="before"
    )(_blank_to_none)


class CustomerEdge(ShopifyBaseModel):
    node: CustomerNode


class CustomerConnection(ShopifyBaseModel):
    edges: list[CustomerEdge] = Field(default_factory=list)

    @property
    def nodes(self) -> list[CustomerNode]:
        return [edge.node for edge in self.edges]


class CustomerSearchData(ShopifyBaseModel):
    customers: CustomerConnection


class CustomerByIdData(ShopifyBaseModel):
    customer: CustomerNode | None = None


class UserError(ShopifyBaseModel):
    field: list[str] | None = None
    message: str

    @property
    def field_name(self) -> str | None:
        return self.field[-1] if self.field else None


class CustomerMutationResult(ShopifyBaseModel):
    customer: CustomerNode | None = None
    user_errors: list[UserError] = Field(default_factory=list, alias="userErrors")


class CustomerCreateData(ShopifyBaseModel):
    result: CustomerMutationResult = Field(alias="customerCreate")


class CustomerUpdateData(ShopifyBaseModel):
    result: CustomerMutationResult = Field(alias="customerUpdate")


class GraphQLErrorExtensions(ShopifyBaseModel):
    code: str | None = None


class GraphQLError(ShopifyBaseModel):
    message: str
    extensions: GraphQLErrorExtensions | None = None

    @property
    def code(self) -> str | None:
        return self.extensions.code if self.extensions else None


class GraphQLEnvelope(ShopifyBaseModel):
    data: dict[str, object] | None = None
    errors: list[GraphQLError] = Field(default_factory=list)
