"""Command-line trigger for payment sync and identifier migration.

Usage:
    billing-reconciler sync [--type regular|clearance|all] [--dry-run]
    billing-reconciler migrate-numbers [--kind regular|clearance|trip|all]

Per-record failures are printed but do not change the exit code; a run that
cannot start or read the store exits with status 1.
"""

import argparse
import logging
import signal
import sys
import threading
from typing import List, Optional

from billing_reconciler.config import settings
from billing_reconciler.infrastructure.database.session import session_scope
from billing_reconciler.infrastructure.observability.logging import setup_logging
from billing_reconciler.services.numbering import SequentialNumberAllocator, document_kinds_for
from billing_reconciler.services.reporter import ReconciliationReporter, format_report, format_sync_outcome
from billing_reconciler.services.synchronizer import InvoiceSynchronizer, document_classes_for


def _install_cancel_handlers(cancel_event: threading.Event) -> None:
    def _cancel(signum, frame):
        logging.warning("Cancellation requested, stopping after the current invoice")
        cancel_event.set()

    signal.signal(signal.SIGINT, _cancel)
    signal.signal(signal.SIGTERM, _cancel)


def run_sync(sync_type: str, dry_run: bool = False, cancel_event: Optional[threading.Event] = None) -> int:
    document_classes = document_classes_for(sync_type)

    print(f"Payment sync ({sync_type})" + (" - dry run" if dry_run else ""))
    print("=" * 60)

    with session_scope() as db:
        outcomes = InvoiceSynchronizer(db).sync_all(document_classes, dry_run=dry_run, cancel_event=cancel_event)
        for outcome in outcomes:
            print("\n".join(format_sync_outcome(outcome)))

        report = ReconciliationReporter(db).build_report(document_classes)
        print()
        print(format_report(report))

    print("=" * 60)
    return 0


def run_migration(kind: str) -> int:
    with session_scope() as db:
        allocator = SequentialNumberAllocator(db)
        for document_kind in document_kinds_for(kind):
            outcome = allocator.migrate(document_kind)
            print(
                f"{document_kind.value}: {outcome.success_count} renumbered, "
                f"{outcome.conflict_count} conflicts, {outcome.error_count} errors"
            )
            for failure in outcome.failures:
                print(f"  ! {failure.old_identifier}: {failure.status} ({failure.error})")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="billing-reconciler", description="Invoice payment reconciliation")
    subparsers = parser.add_subparsers(dest="command", required=True)

    sync_parser = subparsers.add_parser("sync", help="Recompute payment fields and correct drift")
    sync_parser.add_argument("--type", choices=["regular", "clearance", "all"], default="all")
    sync_parser.add_argument("--dry-run", action="store_true", help="Report drift without writing")

    migrate_parser = subparsers.add_parser("migrate-numbers", help="Renumber legacy document identifiers")
    migrate_parser.add_argument("--kind", choices=["regular", "clearance", "trip", "all"], default="all")

    args = parser.parse_args(argv)
    setup_logging(settings.log_level)

    try:
        if args.command == "sync":
            cancel_event = threading.Event()
            _install_cancel_handlers(cancel_event)
            return run_sync(args.type, dry_run=args.dry_run, cancel_event=cancel_event)
        return run_migration(args.kind)
    except Exception as e:
        logging.exception(f"{args.command} failed: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
