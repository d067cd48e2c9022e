"""SQLAlchemy implementations of the customer platform, outbox and review ports.

Every public call runs in its own unit of work, so one call is one round trip
to the store and the store's unique constraints decide every race.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING

from sqlalchemy import and_, or_, select
from sqlalchemy.exc import DBAPIError, IntegrityError

from clientele.domain.errors import DuplicateIdentity, RemoteUnavailable
from clientele.domain.model import (
    Customer,
    OutboxEvent,
    OutboxStatus,
    Provider,
    ReviewFlag,
    ReviewStatus,
)

from .mappings import (
    customer_identity_table,
    customer_table,
    outbox_event_table,
    review_flag_table,
    utcnow,
)
from .unit_of_work import SqlAlchemyUnitOfWork

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Iterator, Mapping, Sequence
    from datetime import datetime

    from sqlalchemy import ColumnElement, Select
    from sqlalchemy.orm import Session

    from clientele.domain.model import (
        CustomerDraft,
        CustomerId,
        CustomerUpdate,
        ExternalRef,
        IdentityLink,
    )

    type UnitOfWorkFactory = Callable[[], SqlAlchemyUnitOfWork]

log = logging.getLogger(__name__)

_CONFLICT_FIELDS = (
    ("primary_email", "email"),
    ("primary_phone", "phone"),
    ("customer_identity", "external_id"),
)


def _conflict_field(exc: IntegrityError) -> str | None:
    message = str(exc.orig)
    for marker, field in _CONFLICT_FIELDS:
        if marker in message:
            return field
    return None


@contextmanager
def _translated_errors(operation: str, *, value: str | None = None) -> Iterator[None]:
    """Map SQLAlchemy failures onto the domain error taxonomy."""

    try:
        yield
    except IntegrityError as exc:
        field = _conflict_field(exc)
        raise DuplicateIdentity(
            f"{operation} rejected: {field or 'unique'} constraint violated",
            field=field,
            value=value,
        ) from exc
    except DBAPIError as exc:
        raise RemoteUnavailable(f"{operation} failed: {exc.orig}", operation=operation) from exc


def _missing(kind: str, identifier: int) -> LookupError:
    return LookupError(f"{kind} {identifier} does not exist")


class SqlAlchemyCustomerPlatform:
    """Customer store backed by the local database."""

    def __init__(self, unit_of_work: UnitOfWorkFactory = SqlAlchemyUnitOfWork) -> None:
        self._unit_of_work = unit_of_work

    # lookups -----------------------------------------------------------------

    def find_by_normalized_emails(self, emails: Iterable[str]) -> dict[str, CustomerId]:
        keys = list(emails)
        if not keys:
            return {}
        column = customer_table.c.primary_email
        statement = select(column, customer_table.c.id).where(column.in_(keys))
        return self._key_lookup("find_by_normalized_emails", statement)

    def find_by_normalized_phones(self, phones: Iterable[str]) -> dict[str, CustomerId]:
        keys = list(phones)
        if not keys:
            return {}
        column = customer_table.c.primary_phone
        statement = select(column, customer_table.c.id).where(column.in_(keys))
        return self._key_lookup("find_by_normalized_phones", statement)

    def find_by_external_ids(self, refs: Iterable[ExternalRef]) -> dict[ExternalRef, CustomerId]:
        ids_by_provider: dict[Provider, list[str]] = {}
        for provider, external_id in refs:
            ids_by_provider.setdefault(provider, []).append(external_id)
        if not ids_by_provider:
            return {}

        table = customer_identity_table
        statement = select(table.c.provider, table.c.external_id, table.c.customer_id).where(
            or_(
                *(
                    and_(table.c.provider == provider, table.c.external_id.in_(external_ids))
                    for provider, external_ids in ids_by_provider.items()
                )
            )
        )
        with _translated_errors("find_by_external_ids"), self._unit_of_work() as uow:
            rows = uow.session.execute(statement).all()
        return {
            (Provider(provider), external_id): customer_id
            for provider, external_id, customer_id in rows
        }

    def find_by_email(self, email: str) -> Customer | None:
        return self._find_one("find_by_email", customer_table.c.primary_email == email)

    def find_by_phone(self, phone: str) -> Customer | None:
        return self._find_one("find_by_phone", customer_table.c.primary_phone == phone)

    def get(self, customer_id: CustomerId) -> Customer | None:
        with _translated_errors("get"), self._unit_of_work() as uow:
            return uow.session.get(Customer, customer_id)

    # writes ------------------------------------------------------------------

    def create_customer(self, draft: CustomerDraft) -> Customer:
        customer = Customer.from_draft(draft)
        now = utcnow()
        customer.created_at = now
        customer.updated_at = now
        for identity in customer.identities:
            identity.created_at = now
            identity.updated_at = now

        with (
            _translated_errors("create_customer", value=draft.email or draft.phone),
            self._unit_of_work() as uow,
        ):
            uow.session.add(customer)
            uow.commit()
        log.debug("Created customer %s", customer.id)
        return customer

    def link_external_id(
        self,
        customer_id: CustomerId,
        link: IdentityLink,
        *,
        update: CustomerUpdate | None = None,
    ) -> Customer:
        return self._modify("link_external_id", customer_id, update=update, link=link)

    def update_customer(
        self,
        customer_id: CustomerId,
        update: CustomerUpdate,
        *,
        link: IdentityLink | None = None,
    ) -> Customer:
        return self._modify("update_customer", customer_id, update=update, link=link)

    def merge_customers(self, primary_id: CustomerId, merge_ids: Sequence[CustomerId]) -> Customer:
        """Fold ``merge_ids`` into ``primary_id`` and delete them.

        Identities move to the primary, its missing keys and profile fields are
        filled from the merged records, and open review flags that reference a
        merged customer are resolved.
        """

        others = list(dict.fromkeys(merge_ids))
        if not others:
            raise ValueError("nothing to merge")
        if primary_id in others:
            raise ValueError("cannot merge a customer into itself")

        with _translated_errors("merge_customers"), self._unit_of_work() as uow:
            session = uow.session
            primary = self._require(session, primary_id)
            merged = [self._require(session, other_id) for other_id in others]
            now = utcnow()

            released = [(customer, *customer.release_keys()) for customer in merged]
            # keys must leave the merged rows before the primary may claim them
            session.flush()
            for customer, email, phone in released:
                primary.absorb(customer, email=email, phone=phone)
                session.delete(customer)
            for identity in primary.identities:
                identity.updated_at = now
            primary.updated_at = now

            flags = review_flag_table.c
            session.execute(
                review_flag_table.update()
                .where(flags.status == ReviewStatus.OPEN)
                .where(or_(flags.customer_id.in_(others), flags.conflicting_customer_id.in_(others)))
                .values(status=ReviewStatus.RESOLVED, resolved_at=now)
            )
            uow.commit()

        log.info("Merged customers %s into %s", others, primary_id)
        return primary

    # helpers -----------------------------------------------------------------

    def _key_lookup(
        self, operation: str, statement: Select[tuple[str | None, CustomerId]]
    ) -> dict[str, CustomerId]:
        with _translated_errors(operation), self._unit_of_work() as uow:
            rows = uow.session.execute(statement).all()
        return {key: customer_id for key, customer_id in rows if key is not None}

    def _find_one(self, operation: str, criterion: ColumnElement[bool]) -> Customer | None:
        with _translated_errors(operation), self._unit_of_work() as uow:
            return uow.session.scalars(select(Customer).where(criterion)).one_or_none()

    @staticmethod
    def _require(session: Session, customer_id: CustomerId) -> Customer:
        customer = session.get(Customer, customer_id)
        if customer is None:
            raise _missing("customer", customer_id)
        return customer

    def _modify(
        self,
        operation: str,
        customer_id: CustomerId,
        *,
        update: CustomerUpdate | None,
        link: IdentityLink | None,
    ) -> Customer:
        value = None
        if update is not None:
            value = update.fill_email or update.fill_phone
        if value is None and link is not None:
            value = link.external_id

        with _translated_errors(operation, value=value), self._unit_of_work() as uow:
            customer = self._require(uow.session, customer_id)
            now = utcnow()
            if update is not None:
                customer.apply_update(update)
            if link is not None and link.has_identifier:
                identity = customer.link_identity(link)
                identity.created_at = identity.created_at or now
                identity.updated_at = now
            customer.updated_at = now
            uow.commit()
        return customer


class SqlAlchemyOutboxStore:
    def __init__(self, unit_of_work: UnitOfWorkFactory = SqlAlchemyUnitOfWork) -> None:
        self._unit_of_work = unit_of_work

    def append(self, event_type: str, payload: Mapping[str, object]) -> OutboxEvent:
        now = utcnow()
        event = OutboxEvent(
            event_type=event_type,
            payload=dict(payload),
            next_run_at=now,
            created_at=now,
            updated_at=now,
        )
        with self._unit_of_work() as uow:
            uow.session.add(event)
            uow.commit()
        return event

    def fetch_due(self, *, limit: int, now: datetime) -> list[OutboxEvent]:
        columns = outbox_event_table.c
        statement = (
            select(OutboxEvent)
            .where(columns.status == OutboxStatus.PENDING)
            .where(columns.next_run_at <= now)
            .order_by(columns.next_run_at, columns.id)
            .limit(limit)
        )
        with self._unit_of_work() as uow:
            return list(uow.session.scalars(statement))

    def mark_processing(self, event_id: int) -> OutboxEvent:
        def claim(event: OutboxEvent) -> None:
            event.status = OutboxStatus.PROCESSING
            event.attempts += 1

        return self._transition(event_id, claim)

    def mark_done(self, event_id: int) -> None:
        def finish(event: OutboxEvent) -> None:
            event.status = OutboxStatus.DONE
            event.last_error = None

        self._transition(event_id, finish)

    def reschedule(self, event_id: int, *, next_run_at: datetime, error: str) -> None:
        def retry(event: OutboxEvent) -> None:
            event.status = OutboxStatus.PENDING
            event.next_run_at = next_run_at
            event.last_error = error

        self._transition(event_id, retry)

    def mark_failed(self, event_id: int, *, error: str) -> None:
        def fail(event: OutboxEvent) -> None:
            event.status = OutboxStatus.FAILED
            event.last_error = error

        self._transition(event_id, fail)

    def get(self, event_id: int) -> OutboxEvent | None:
        with self._unit_of_work() as uow:
            return uow.session.get(OutboxEvent, event_id)

    def _transition(self, event_id: int, change: Callable[[OutboxEvent], None]) -> OutboxEvent:
        with self._unit_of_work() as uow:
            event = uow.session.get(OutboxEvent, event_id)
            if event is None:
                raise _missing("outbox event", event_id)
            change(event)
            event.updated_at = utcnow()
            uow.commit()
        return event


class SqlAlchemyReviewQueue:
    def __init__(self, unit_of_work: UnitOfWorkFactory = SqlAlchemyUnitOfWork) -> None:
        self._unit_of_work = unit_of_work

    def flag(self, flag: ReviewFlag) -> ReviewFlag:
        columns = review_flag_table.c
        open_for_pair = (
            select(ReviewFlag)
            .where(columns.status == ReviewStatus.OPEN)
            .where(columns.customer_id == flag.customer_id)
            .where(columns.conflicting_customer_id == flag.conflicting_customer_id)
            .limit(1)
        )
        flag.created_at = flag.created_at or utcnow()
        with self._unit_of_work() as uow:
            existing = uow.session.scalars(open_for_pair).first()
            if existing is not None:
                log.debug(
                    "Customers %s and %s already await review",
                    flag.customer_id,
                    flag.conflicting_customer_id,
                )
                return existing
            uow.session.add(flag)
            uow.commit()
        log.info(
            "Flagged customers %s and %s for review",
            flag.customer_id,
            flag.conflicting_customer_id,
        )
        return flag

    def list_open(self, *, limit: int = 50) -> list[ReviewFlag]:
        columns = review_flag_table.c
        statement = (
            select(ReviewFlag)
            .where(columns.status == ReviewStatus.OPEN)
            .order_by(columns.id)
            .limit(limit)
        )
        with self._unit_of_work() as uow:
            return list(uow.session.scalars(statement))

    def resolve(self, flag_id: int) -> None:
        with self._unit_of_work() as uow:
            flag = uow.session.get(ReviewFlag, flag_id)
            if flag is None:
                raise _missing("review flag", flag_id)
            flag.status = ReviewStatus.RESOLVED
            flag.resolved_at = utcnow()
            uow.commit()
