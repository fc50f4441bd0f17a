"""Prometheus metrics for monitoring reconciliation drift, sync duration and identifier migration"""

from prometheus_client import Counter, Histogram

from billing_reconciler.domain.models import MigrationOutcome, SyncOutcome

# Reconciliation metrics
invoices_reconciled_counter = Counter(
    "billing_invoices_reconciled_total",
    "Invoices processed by the synchronizer",
    ["document_class", "outcome"],  # updated | unchanged | error
)

sync_duration_histogram = Histogram(
    "billing_sync_duration_seconds",
    "Duration of a synchronization run per document class",
    ["document_class"],
    buckets=[0.1, 0.5, 1.0, 5.0, 15.0, 60.0, 300.0],
)

# Identifier migration metrics
identifier_migration_counter = Counter(
    "billing_identifier_migrations_total",
    "Legacy identifiers processed by the migration pass",
    ["kind", "outcome"],  # success | conflict | error
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_sync_outcome(outcome: SyncOutcome) -> None:
    """Record per-outcome counts of a sync run (dry runs are not counted)"""
    if outcome.dry_run:
        return

    document_class = outcome.document_class.value
    invoices_reconciled_counter.labels(document_class=document_class, outcome="updated").inc(outcome.updated_count)
    invoices_reconciled_counter.labels(document_class=document_class, outcome="unchanged").inc(outcome.unchanged_count)
    invoices_reconciled_counter.labels(document_class=document_class, outcome="error").inc(outcome.error_count)
    sync_duration_histogram.labels(document_class=document_class).observe(outcome.duration_seconds)


def record_migration_outcome(outcome: MigrationOutcome) -> None:
    kind = outcome.kind.value
    identifier_migration_counter.labels(kind=kind, outcome="success").inc(outcome.success_count)
    identifier_migration_counter.labels(kind=kind, outcome="conflict").inc(outcome.conflict_count)
    identifier_migration_counter.labels(kind=kind, outcome="error").inc(outcome.error_count)
