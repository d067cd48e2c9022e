"""Best-effort batch import over the resolution engine.

Every record is resolved on its own; one failing record is reported and the
rest of the batch carries on. Dry runs do a single bulk lookup for the whole
batch and never write.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

from clientele.domain.model import ResolutionAction

from .contracts import NO_CUSTOMER, CandidateMatches

if TYPE_CHECKING:
    from collections.abc import Sequence

    from clientele.domain.model import CustomerId, IdentitySignal

    from .contracts import Resolution
    from .engine import ResolutionEngine

log = getLogger(__name__)

DEFAULT_MAX_RECORDS = 1000
DEFAULT_DETAIL_LIMIT = 100


@dataclass(frozen=True, slots=True, kw_only=True)
class ImportEntry:
    index: int
    customer_id: CustomerId = NO_CUSTOMER
    action: ResolutionAction | None = None
    error: str | None = None

    @property
    def errored(self) -> bool:
        return self.error is not None

    def to_dict(self) -> dict[str, object]:
        return {
            "index": self.index,
            "customer_id": self.customer_id,
            "action": self.action.value if self.action is not None else None,
            "error": self.error,
        }


@dataclass(slots=True, kw_only=True)
class ImportReport:
    """Aggregate outcome of one batch call. Ambiguous outcomes count as linked."""

    dry_run: bool
    total: int = 0
    created: int = 0
    updated: int = 0
    linked: int = 0
    skipped: int = 0
    errored: int = 0
    review: int = 0
    entries: list[ImportEntry] = field(default_factory=list[ImportEntry])
    errors: list[ImportEntry] = field(default_factory=list[ImportEntry])
    detail_limit: int = DEFAULT_DETAIL_LIMIT

    @property
    def truncated(self) -> bool:
        return self.total > len(self.entries)

    def record(self, entry: ImportEntry) -> None:
        self.total += 1
        if entry.errored:
            self.errored += 1
            self.errors.append(entry)
        else:
            match entry.action:
                case ResolutionAction.CREATED:
                    self.created += 1
                case ResolutionAction.UPDATED:
                    self.updated += 1
                case ResolutionAction.LINKED:
                    self.linked += 1
                case ResolutionAction.AMBIGUOUS:
                    self.linked += 1
                    self.review += 1
                case _:
                    self.skipped += 1
        if len(self.entries) < self.detail_limit:
            self.entries.append(entry)

    def to_dict(self) -> dict[str, object]:
        return {
            "dry_run": self.dry_run,
            "total": self.total,
            "created": self.created,
            "updated": self.updated,
            "linked": self.linked,
            "skipped": self.skipped,
            "errored": self.errored,
            "review": self.review,
            "truncated": self.truncated,
            "entries": [entry.to_dict() for entry in self.entries],
            "errors": [entry.to_dict() for entry in self.errors],
        }


def import_batch(
    records: Sequence[IdentitySignal],
    *,
    engine: ResolutionEngine,
    dry_run: bool = False,
    detail_limit: int = DEFAULT_DETAIL_LIMIT,
    max_records: int = DEFAULT_MAX_RECORDS,
) -> ImportReport:
    """Resolve ``records`` one by one, or predict the outcome when ``dry_run``.

    Raises ``ValueError`` for an empty batch or one larger than ``max_records``;
    per-record failures are captured in the report instead.
    """

    if not records:
        raise ValueError("batch must contain at least one record")
    if len(records) > max_records:
        raise ValueError(f"batch of {len(records)} records exceeds the limit of {max_records}")

    report = ImportReport(dry_run=dry_run, detail_limit=detail_limit)
    if dry_run:
        _predict_all(records, engine=engine, report=report)
    else:
        _resolve_all(records, engine=engine, report=report)

    log.info(
        "Import%s finished: %s created, %s updated, %s linked (%s for review), "
        "%s skipped, %s errored of %s",
        " dry run" if dry_run else "",
        report.created,
        report.updated,
        report.linked,
        report.review,
        report.skipped,
        report.errored,
        report.total,
    )
    return report


def _entry(index: int, resolution: Resolution) -> ImportEntry:
    return ImportEntry(index=index, customer_id=resolution.customer_id, action=resolution.action)


def _resolve_all(
    records: Sequence[IdentitySignal], *, engine: ResolutionEngine, report: ImportReport
) -> None:
    for index, signal in enumerate(records):
        try:
            resolution = engine.resolve(signal)
        except Exception as exc:  # noqa: BLE001
            log.exception("Import record %s failed", index)
            report.record(ImportEntry(index=index, error=str(exc) or type(exc).__name__))
        else:
            report.record(_entry(index, resolution))


def _predict_all(
    records: Sequence[IdentitySignal], *, engine: ResolutionEngine, report: ImportReport
) -> None:
    identified = [signal for signal in records if signal.has_identity]
    try:
        matches = engine.matcher.match_signals(identified) if identified else CandidateMatches()
    except Exception as exc:  # noqa: BLE001
        log.exception("Bulk lookup for dry run failed")
        message = str(exc) or type(exc).__name__
        for index in range(len(records)):
            report.record(ImportEntry(index=index, error=message))
        return

    for index, signal in enumerate(records):
        prediction = engine.predict(signal, matches)
        if prediction.action is not ResolutionAction.SKIPPED:
            # later records in this batch see this one as already present
            matches.claim(signal, prediction.customer_id)
        report.record(_entry(index, prediction))
