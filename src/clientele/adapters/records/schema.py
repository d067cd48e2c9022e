"""Pydantic request schemas for bulk imports and customer-sync notifications."""

from __future__ import annotations

from typing import Final

from pydantic import BaseModel, ConfigDict, Field, field_validator

from clientele.domain.identity.normalize import is_valid_email
from clientele.domain.model import Provider, SignalSource

MAX_IMPORT_RECORDS: Final[int] = 1000


def _blank_to_none(value: object) -> object:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return value


def _id_to_text(value: object) -> object:
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return _blank_to_none(value)


class RecordBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class CustomerRecord(RecordBaseModel):
    """One import row. A row without email, phone or external id is accepted and skipped."""

    email: str | None = None
    phone: str | None = None
    first_name: str | None = Field(default=None, alias="firstName")
    last_name: str | None = Field(default=None, alias="lastName")
    company: str | None = None
    provider: Provider = Provider.MANUAL
    external_id: str | None = Field(default=None, alias="externalId")
    metadata: dict[str, object] = Field(default_factory=dict)
    source: SignalSource = SignalSource.IMPORT

    _normalize_blanks = field_validator(
        "email", "phone", "first_name", "last_name", "company", mode="before"
    )(_blank_to_none)
    _normalize_external_id = field_validator("external_id", mode="before")(_id_to_text)

    @field_validator("email")
    @classmethod
    def _check_email(cls, value: str | None) -> str | None:
        if value is not None and not is_valid_email(value):
            raise ValueError(f"not a valid email address: {value!r}")
        return value

    @field_validator("provider", mode="before")
    @classmethod
    def _lower_provider(cls, value: object) -> object:
        return value.strip().lower() if isinstance(value, str) else value


class ImportRequest(RecordBaseModel):
    customers: list[CustomerRecord] = Field(min_length=1, max_length=MAX_IMPORT_RECORDS)
    dry_run: bool = Field(default=False, alias="dryRun")


class CustomerSyncRequest(RecordBaseModel):
    """Sender details of a freshly written ticket."""

    ticket_id: str | None = Field(default=None, alias="ticketId")
    email: str | None = Field(default=None, alias="senderEmail")
    phone: str | None = Field(default=None, alias="senderPhone")
    name: str | None = Field(default=None, alias="senderName")
    company: str | None = Field(default=None, alias="senderCompany")
    provider: Provider = Provider.MANUAL
    external_id: str | None = Field(default=None, alias="externalId")
    source: SignalSource = SignalSource.TICKET

    _normalize_blanks = field_validator(
        "email", "phone", "name", "company", mode="before"
    )(_blank_to_none)
    _normalize_ids = field_validator("ticket_id", "external_id", mode="before")(_id_to_text)
