"""Structured JSON logging for production observability"""

import logging
import sys
from typing import Any, Dict
from pythonjsonlogger import jsonlogger

from billing_reconciler.config import settings
from billing_reconciler.domain.models import InvoiceChange, MigrationOutcome, SyncOutcome
from billing_reconciler.utils.date_utils import utc_now


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = utc_now().isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = settings.service_name


def setup_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging"""
    logger = logging.getLogger()
    logger.setLevel(level)

    # Remove existing handlers
    logger.handlers.clear()

    # JSON handler for stdout
    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def log_invoice_change(document_class: str, change: InvoiceChange) -> None:
    """Log one corrected invoice with old and new derived values"""
    logging.info(
        "Invoice reconciled",
        extra={
            "step": "invoice_updated",
            "document_class": document_class,
            "invoice_number": change.invoice_number,
            "amount_paid": f"{change.old_amount_paid} -> {change.new_amount_paid}",
            "remaining_amount": f"{change.old_remaining_amount} -> {change.new_remaining_amount}",
            "payment_status": f"{change.old_payment_status} -> {change.new_payment_status}",
        },
    )


def log_sync_outcome(outcome: SyncOutcome) -> None:
    """Log structured sync run outcome for analysis"""
    logging.info(
        "Sync completed",
        extra={
            "step": "sync_complete",
            "document_class": outcome.document_class.value,
            "updated_count": outcome.updated_count,
            "unchanged_count": outcome.unchanged_count,
            "error_count": outcome.error_count,
            "cancelled": outcome.cancelled,
            "dry_run": outcome.dry_run,
            "duration_ms": outcome.duration_seconds * 1000,
        },
    )


def log_migration_outcome(outcome: MigrationOutcome) -> None:
    logging.info(
        "Identifier migration completed",
        extra={
            "step": "migration_complete",
            "kind": outcome.kind.value,
            "success_count": outcome.success_count,
            "conflict_count": outcome.conflict_count,
            "error_count": outcome.error_count,
        },
    )
