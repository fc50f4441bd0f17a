"""Sequential number allocator - date-partitioned document identifiers with collision retry"""

import logging
from datetime import datetime
from itertools import groupby
from typing import Callable, List, Optional, Tuple

from sqlalchemy.orm import Session

from billing_reconciler.config import settings
from billing_reconciler.domain.exceptions import DomainException, IdentifierConflictError
from billing_reconciler.domain.identifiers import day_prefix, format_identifier, prefix_for
from billing_reconciler.domain.models import (
    DocumentKind,
    LegacyRecord,
    MigrationDetail,
    MigrationOutcome,
    MigrationStatus,
)
from billing_reconciler.infrastructure.database.repositories import IdentifierRepository
from billing_reconciler.infrastructure.observability.logging import log_migration_outcome
from billing_reconciler.infrastructure.observability.metrics import record_migration_outcome
from billing_reconciler.utils.date_utils import date_key, utc_now


def document_kinds_for(selector: str) -> List[DocumentKind]:
    """Resolve a "regular" / "clearance" / "trip" / "all" selector"""
    if selector == "all":
        return list(DocumentKind)
    return [DocumentKind(selector)]


class SequentialNumberAllocator:
    """Issues {PREFIX}-{YYYYMMDD}-{NNN} identifiers and renumbers legacy records"""

    def __init__(
        self,
        db: Session,
        clock: Callable[[], datetime] = utc_now,
        detail_limit: Optional[int] = None,
    ):
        self.db = db
        self.clock = clock
        self.detail_limit = settings.error_sample_limit if detail_limit is None else detail_limit

    def allocate(self, kind: DocumentKind, sequence_index: int, created_at: Optional[datetime] = None) -> str:
        """
        Identifier for the given day and sequence that does not exist yet.

        When the identifier is taken the next sequence is tried once.

        Raises:
            IdentifierConflictError: Both candidates already exist
        """
        identifier, _ = self._allocate(IdentifierRepository(self.db, kind), sequence_index, created_at)
        return identifier

    def allocate_next(self, kind: DocumentKind, created_at: Optional[datetime] = None) -> str:
        """Next identifier of the day: issued-so-far + 1"""
        created_at = created_at or self.clock()
        repository = IdentifierRepository(self.db, kind)
        issued = repository.count_with_prefix(day_prefix(kind, created_at))
        identifier, _ = self._allocate(repository, issued + 1, created_at)
        return identifier

    def _allocate(
        self,
        repository: IdentifierRepository,
        sequence_index: int,
        created_at: Optional[datetime],
    ) -> Tuple[str, int]:
        created_at = created_at or self.clock()
        kind = repository.kind

        identifier = format_identifier(kind, created_at, sequence_index)
        if not repository.exists(identifier):
            return identifier, sequence_index

        alternative = format_identifier(kind, created_at, sequence_index + 1)
        if not repository.exists(alternative):
            return alternative, sequence_index + 1

        raise IdentifierConflictError(identifier, alternative)

    def migrate(self, kind: DocumentKind) -> MigrationOutcome:
        """
        Renumber every legacy-format record of a kind.

        Records are grouped by UTC creation day and numbered in ascending
        creation order within each day, starting at 001. A record whose
        candidate and retry are both taken is reported as a conflict and left
        unchanged; failures never stop the pass.

        Raises:
            PersistenceError: Legacy records could not be read
        """
        repository = IdentifierRepository(self.db, kind)
        outcome = MigrationOutcome(kind=kind)

        legacy = repository.list_legacy(settings.legacy_prefixes[kind.value])
        legacy = sorted(legacy, key=lambda record: record.created_at)

        for day, records in groupby(legacy, key=lambda record: date_key(record.created_at)):
            sequence = 1
            for record in records:
                try:
                    identifier, used = self._allocate(repository, sequence, record.created_at)
                    repository.rename(record.id, identifier)
                    sequence = used + 1
                    outcome.success_count += 1
                    self._add_detail(outcome, MigrationDetail(record.identifier, identifier, "success"))
                except IdentifierConflictError as e:
                    sequence += 2
                    outcome.conflict_count += 1
                    logging.warning(
                        f"Identifier conflict: {e}",
                        extra={"kind": kind.value, "identifier": record.identifier, "day": day},
                    )
                    self._add_detail(outcome, MigrationDetail(record.identifier, None, "conflict", str(e)))
                except DomainException as e:
                    self._record_error(outcome, record, e)
                except Exception as e:
                    self.db.rollback()
                    logging.exception(f"Unexpected error migrating identifier: {e}", extra={"kind": kind.value})
                    self._record_error(outcome, record, e)

        record_migration_outcome(outcome)
        log_migration_outcome(outcome)
        return outcome

    def migration_status(self, kind: DocumentKind, sample_size: int = 5) -> MigrationStatus:
        """How many records still carry legacy identifiers"""
        repository = IdentifierRepository(self.db, kind)
        prefixes = settings.legacy_prefixes[kind.value]
        return MigrationStatus(
            kind=kind,
            legacy_count=sum(repository.count_with_prefix(prefix) for prefix in prefixes),
            new_format_count=repository.count_with_prefix(f"{prefix_for(kind)}-"),
            samples=repository.list_legacy(prefixes, newest_first=True, limit=sample_size),
        )

    def _record_error(self, outcome: MigrationOutcome, record: LegacyRecord, error: Exception) -> None:
        outcome.error_count += 1
        logging.error(
            f"Identifier migration failed: {error}",
            extra={"kind": outcome.kind.value, "identifier": record.identifier},
        )
        self._add_detail(outcome, MigrationDetail(record.identifier, None, "error", str(error)))

    def _add_detail(self, outcome: MigrationOutcome, detail: MigrationDetail) -> None:
        if len(outcome.details) < self.detail_limit:
            outcome.details.append(detail)
        # Conflicts and errors are capped independently of details
        if detail.status != "success" and len(outcome.failures) < self.detail_limit:
            outcome.failures.append(detail)
