"""Defaults for identity resolution, bulk import and the outbox worker."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from .env import env_float, env_int, optional_env_var
from .errors import InvalidConfigurationValue

DEFAULT_RACE_ATTEMPTS = 3
DEFAULT_RACE_BASE_DELAY_SECONDS = 0.1
DEFAULT_IMPORT_MAX_RECORDS = 1000
DEFAULT_IMPORT_DETAIL_LIMIT = 100
DEFAULT_OUTBOX_BATCH_SIZE = 15
DEFAULT_OUTBOX_BASE_BACKOFF_SECONDS = 5 * 60.0
DEFAULT_OUTBOX_MAX_BACKOFF_STEPS = 6
DEFAULT_OUTBOX_MAX_ATTEMPTS = 10


class PlatformKind(StrEnum):
    DATABASE = "database"
    SHOPIFY = "shopify"


@dataclass(frozen=True, slots=True)
class ResolutionConfig:
    race_attempts: int = DEFAULT_RACE_ATTEMPTS
    race_base_delay_seconds: float = DEFAULT_RACE_BASE_DELAY_SECONDS
    import_max_records: int = DEFAULT_IMPORT_MAX_RECORDS
    import_detail_limit: int = DEFAULT_IMPORT_DETAIL_LIMIT


@dataclass(frozen=True, slots=True)
class OutboxConfig:
    batch_size: int = DEFAULT_OUTBOX_BATCH_SIZE
    base_backoff_seconds: float = DEFAULT_OUTBOX_BASE_BACKOFF_SECONDS
    max_backoff_steps: int = DEFAULT_OUTBOX_MAX_BACKOFF_STEPS
    max_attempts: int = DEFAULT_OUTBOX_MAX_ATTEMPTS


def get_resolution_config() -> ResolutionConfig:
    return ResolutionConfig(
        race_attempts=env_int("CLIENTELE_RACE_ATTEMPTS", DEFAULT_RACE_ATTEMPTS, minimum=1),
        race_base_delay_seconds=env_float(
            "CLIENTELE_RACE_BASE_DELAY", DEFAULT_RACE_BASE_DELAY_SECONDS, minimum=0.0
        ),
        import_max_records=env_int(
            "CLIENTELE_IMPORT_MAX_RECORDS", DEFAULT_IMPORT_MAX_RECORDS, minimum=1
        ),
        import_detail_limit=env_int(
            "CLIENTELE_IMPORT_DETAIL_LIMIT", DEFAULT_IMPORT_DETAIL_LIMIT, minimum=0
        ),
    )


def get_outbox_config() -> OutboxConfig:
    return OutboxConfig(
        batch_size=env_int("CLIENTELE_OUTBOX_BATCH_SIZE", DEFAULT_OUTBOX_BATCH_SIZE, minimum=1),
        base_backoff_seconds=env_float(
            "CLIENTELE_OUTBOX_BASE_BACKOFF", DEFAULT_OUTBOX_BASE_BACKOFF_SECONDS, minimum=0.0
        ),
        max_backoff_steps=DEFAULT_OUTBOX_MAX_BACKOFF_STEPS,
        max_attempts=env_int(
            "CLIENTELE_OUTBOX_MAX_ATTEMPTS", DEFAULT_OUTBOX_MAX_ATTEMPTS, minimum=1
        ),
    )


def get_platform_kind() -> PlatformKind:
    raw = optional_env_var("CLIENTELE_PLATFORM", PlatformKind.DATABASE.value).lower()
    try:
        return PlatformKind(raw)
    except ValueError as exc:
        choices = ", ".join(kind.value for kind in PlatformKind)
        raise InvalidConfigurationValue(
            "CLIENTELE_PLATFORM", raw, f"must be one of {choices}"
        ) from exc
