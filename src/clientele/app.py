"""Application orchestration entry points."""

from __future__ import annotations

from datetime import timedelta
from logging import getLogger
from typing import TYPE_CHECKING

from clientele.adapters.records import (
    CustomerSyncRequest,
    ImportRequest,
    request_signals,
    sync_request_to_payload,
)
from clientele.adapters.shopify import ShopifyCustomerPlatform
from clientele.adapters.sqlalchemy import (
    SqlAlchemyCustomerPlatform,
    SqlAlchemyOutboxStore,
    SqlAlchemyReviewQueue,
    is_started,
    startup,
)
from clientele.config import (
    ConfigurationError,
    PlatformKind,
    get_outbox_config,
    get_platform_kind,
    get_resolution_config,
)
from clientele.domain.identity import RaceRetryPolicy, RemoteUpsert, ResolutionEngine
from clientele.domain.identity import import_batch as run_import
from clientele.domain.model import CUSTOMER_SYNC_EVENT
from clientele.domain.outbox import ChangeNotifier, OutboxWorker, customer_sync_handler

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence
    from datetime import datetime

    from clientele.config import OutboxConfig, ResolutionConfig
    from clientele.domain.identity import ImportReport, Resolution
    from clientele.domain.model import Customer, CustomerId, IdentitySignal, OutboxEvent, ReviewFlag
    from clientele.domain.outbox import DrainReport
    from clientele.domain.ports import CustomerPlatform, OutboxStore, ReviewQueue


log = getLogger(__name__)


def _ensure_started() -> None:
    if not is_started():
        startup()


def build_platform(kind: PlatformKind | None = None) -> CustomerPlatform:
    """Return the customer platform selected by ``CLIENTELE_PLATFORM``."""

    effective_kind = kind or get_platform_kind()
    if effective_kind is PlatformKind.SHOPIFY:
        return ShopifyCustomerPlatform()
    _ensure_started()
    return SqlAlchemyCustomerPlatform()


def build_engine(
    *,
    platform: CustomerPlatform | None = None,
    review_queue: ReviewQueue | None = None,
    config: ResolutionConfig | None = None,
) -> ResolutionEngine:
    effective_platform = platform or build_platform()
    effective_config = config or get_resolution_config()
    if review_queue is None:
        _ensure_started()
        review_queue = SqlAlchemyReviewQueue()
    policy = RaceRetryPolicy(
        attempts=effective_config.race_attempts,
        base_delay=effective_config.race_base_delay_seconds,
    )
    return ResolutionEngine(
        effective_platform,
        upsert=RemoteUpsert(effective_platform, policy),
        review_queue=review_queue,
    )


def resolve_one(signal: IdentitySignal, *, engine: ResolutionEngine | None = None) -> Resolution:
    """Resolve one signal; ``RemoteUnavailable`` propagates to the caller."""

    return (engine or build_engine()).resolve(signal)


def import_batch(
    request: ImportRequest | Mapping[str, object],
    *,
    engine: ResolutionEngine | None = None,
    config: ResolutionConfig | None = None,
) -> ImportReport:
    """Validate an import request and resolve (or predict) every record in it.

    Raises ``pydantic.ValidationError`` for a malformed request and
    ``ValueError`` when the batch exceeds the configured record limit.
    """

    validated = (
        request if isinstance(request, ImportRequest) else ImportRequest.model_validate(request)
    )
    effective_config = config or get_resolution_config()
    log.info(
        "Starting import: records=%s, dry_run=%s",
        len(validated.customers),
        validated.dry_run,
    )
    return run_import(
        request_signals(validated),
        engine=engine or build_engine(config=effective_config),
        dry_run=validated.dry_run,
        detail_limit=effective_config.import_detail_limit,
        max_records=effective_config.import_max_records,
    )


def enqueue_customer_sync(
    request: CustomerSyncRequest | Mapping[str, object],
    *,
    store: OutboxStore | None = None,
) -> OutboxEvent | None:
    """Queue the sender of a ticket for resolution. Returns None instead of raising."""

    try:
        validated = (
            request
            if isinstance(request, CustomerSyncRequest)
            else CustomerSyncRequest.model_validate(request)
        )
        if store is None:
            _ensure_started()
            store = SqlAlchemyOutboxStore()
    except Exception:  # noqa: BLE001
        log.exception("Could not prepare customer sync event")
        return None
    return ChangeNotifier(store).enqueue_customer_sync(sync_request_to_payload(validated))


def drain_outbox(
    *,
    limit: int | None = None,
    engine: ResolutionEngine | None = None,
    store: OutboxStore | None = None,
    config: OutboxConfig | None = None,
    now: datetime | None = None,
) -> DrainReport:
    effective_config = config or get_outbox_config()
    if store is None:
        _ensure_started()
        store = SqlAlchemyOutboxStore()
    effective_engine = engine or build_engine()
    worker = OutboxWorker(
        store,
        {CUSTOMER_SYNC_EVENT: customer_sync_handler(effective_engine)},
        base_backoff=timedelta(seconds=effective_config.base_backoff_seconds),
        max_backoff_steps=effective_config.max_backoff_steps,
        max_attempts=effective_config.max_attempts,
    )
    return worker.drain(limit=limit or effective_config.batch_size, now=now)


def list_review_flags(*, limit: int = 50, queue: ReviewQueue | None = None) -> list[ReviewFlag]:
    if queue is None:
        _ensure_started()
        queue = SqlAlchemyReviewQueue()
    return queue.list_open(limit=limit)


def merge_customers(
    primary_id: CustomerId,
    merge_ids: Sequence[CustomerId],
    *,
    platform: SqlAlchemyCustomerPlatform | None = None,
) -> Customer:
    """Fold ``merge_ids`` into ``primary_id``; only the database platform supports merging."""

    if platform is None:
        if get_platform_kind() is not PlatformKind.DATABASE:
            raise ConfigurationError("Merging customers requires CLIENTELE_PLATFORM=database")
        _ensure_started()
        platform = SqlAlchemyCustomerPlatform()
    return platform.merge_customers(primary_id, merge_ids)
