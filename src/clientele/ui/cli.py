# ruff: noqa: T201

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from clientele.app import (
    enqueue_customer_sync,
    import_batch,
    list_review_flags,
    merge_customers,
    resolve_one,
)
from clientele.app import drain_outbox as run_drain
from clientele.config import configure_logging
from clientele.domain.identity import build_signal
from clientele.domain.model import Provider, SignalSource

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

    from clientele.domain.model import Customer, ReviewFlag

log = logging.getLogger(__name__)


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Resolve and deduplicate customer identities")
    subparsers = parser.add_subparsers(dest="command", required=True)

    importer = subparsers.add_parser("import", help="Import customers from a JSON file")
    importer.add_argument(
        "file",
        type=str,
        help='JSON file with a list of customers or an object {"customers": [...]}',
    )
    importer.add_argument(
        "--dry-run",
        action="store_true",
        help="Report what would happen without writing anything",
    )

    resolve = subparsers.add_parser("resolve", help="Resolve a single identity signal")
    _add_identity_arguments(resolve)
    resolve.add_argument("--first-name", type=str, help="Given name")
    resolve.add_argument("--last-name", type=str, help="Family name")
    resolve.add_argument(
        "--source",
        type=str,
        choices=[source.value for source in SignalSource],
        default=SignalSource.IMPORT.value,
        help="Entry point that produced the signal (default: %(default)s)",
    )

    enqueue = subparsers.add_parser(
        "enqueue-sync",
        help="Queue a ticket sender for deferred customer resolution",
    )
    enqueue.add_argument("--ticket-id", type=str, required=True, help="Ticket identifier")
    _add_identity_arguments(enqueue)
    enqueue.add_argument("--name", type=str, help="Sender full name")

    outbox = subparsers.add_parser("outbox", help="Outbox commands")
    outbox_sub = outbox.add_subparsers(dest="outbox_command", required=True)
    drain = outbox_sub.add_parser("drain", help="Process due outbox events once")
    drain.add_argument(
        "--limit",
        type=int,
        default=None,
        help="Maximum number of events to process (defaults to config)",
    )

    review = subparsers.add_parser("review", help="Manual review commands")
    review_sub = review.add_subparsers(dest="review_command", required=True)
    review_list = review_sub.add_parser("list", help="List open review flags")
    review_list.add_argument(
        "--limit",
        type=int,
        default=50,
        help="Maximum number of flags to list (default: %(default)s)",
    )

    merge = subparsers.add_parser("merge", help="Merge duplicate customers into one")
    merge.add_argument("--primary", type=int, required=True, help="Customer id to keep")
    merge.add_argument(
        "--merge",
        type=int,
        nargs="+",
        required=True,
        help="Customer ids to fold into the primary customer",
    )

    return parser.parse_args(list(argv))


def _add_identity_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--email", type=str, help="Email address")
    parser.add_argument("--phone", type=str, help="Phone number in any format")
    parser.add_argument(
        "--provider",
        type=str,
        choices=[provider.value for provider in Provider],
        default=Provider.MANUAL.value,
        help="Platform the identity was seen on (default: %(default)s)",
    )
    parser.add_argument("--external-id", type=str, help="Identifier on that platform")
    parser.add_argument("--company", type=str, help="Company name")


def _load_import_file(path: str, *, dry_run: bool) -> dict[str, object]:
    try:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ValueError(f"Cannot read import file {path}: {exc}") from exc
    request = {"customers": raw} if isinstance(raw, list) else raw
    if not isinstance(request, dict):
        raise ValueError("Import file must hold a list of customers or an object")  # noqa: TRY004
    if dry_run:
        request["dryRun"] = True
    return request


def _customer_to_dict(customer: Customer) -> dict[str, object]:
    return {
        "id": customer.id,
        "email": customer.primary_email,
        "phone": customer.primary_phone,
        "name": customer.display_name,
        "company": customer.company,
        "identities": sorted(f"{provider.value}:{ref}" for provider, ref in customer.external_refs),
    }


def _flag_to_dict(flag: ReviewFlag) -> dict[str, object]:
    return {
        "id": flag.id,
        "customer_id": flag.customer_id,
        "conflicting_customer_id": flag.conflicting_customer_id,
        "reason": flag.reason,
        "email": flag.email,
        "phone": flag.phone,
        "created_at": flag.created_at.isoformat() if flag.created_at else None,
    }


def _emit(document: object) -> None:
    print(json.dumps(document, indent=2, sort_keys=True))


def _run_command(args: argparse.Namespace) -> int:  # noqa: PLR0911
    if args.command == "import":
        request = _load_import_file(args.file, dry_run=args.dry_run)
        _emit(import_batch(request).to_dict())
        return 0
    if args.command == "resolve":
        signal_ = build_signal(
            email=args.email,
            phone=args.phone,
            provider=args.provider,
            external_id=args.external_id,
            first_name=args.first_name,
            last_name=args.last_name,
            company=args.company,
            source=args.source,
        )
        resolution = resolve_one(signal_)
        _emit(
            {
                "customer_id": resolution.customer_id,
                "action": resolution.action.value,
                "already_exists": resolution.already_exists,
                "conflicting_customer_id": resolution.conflicting_customer_id,
                "reason": resolution.reason,
            }
        )
        return 0
    if args.command == "enqueue-sync":
        event = enqueue_customer_sync(
            {
                "ticketId": args.ticket_id,
                "senderEmail": args.email,
                "senderPhone": args.phone,
                "senderName": args.name,
                "senderCompany": args.company,
                "provider": args.provider,
                "externalId": args.external_id,
            }
        )
        _emit({"queued": event is not None, "event_id": event.id if event else None})
        return 0 if event is not None else 1
    if args.command == "outbox" and args.outbox_command == "drain":
        _emit(run_drain(limit=args.limit).to_dict())
        return 0
    if args.command == "review" and args.review_command == "list":
        _emit([_flag_to_dict(flag) for flag in list_review_flags(limit=args.limit)])
        return 0
    if args.command == "merge":
        _emit(_customer_to_dict(merge_customers(args.primary, args.merge)))
        return 0
    raise ValueError(f"Unsupported command: {args.command}")


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    configure_logging()
    parsed_args: argparse.Namespace
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    try:
        parsed_args = _parse_args(args_list)
    except ValueError:
        log.exception("CLI validation error")
        sys.exit(2)

    try:
        exit_code = _run_command(parsed_args)
    except ValueError:
        log.exception("Invalid request")
        sys.exit(2)
    except Exception:
        log.exception("Fatal error")
        sys.exit(1)
    if exit_code:
        sys.exit(exit_code)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
