"""Legacy identifier migration: GET /v1/identifiers/migration-status, POST /v1/identifiers/migrate"""

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from billing_reconciler.api.v1.schemas import MigrationOutcomeSchema, MigrationStatusSchema
from billing_reconciler.domain.exceptions import PersistenceError
from billing_reconciler.infrastructure.database.session import get_db
from billing_reconciler.services.numbering import SequentialNumberAllocator, document_kinds_for

router = APIRouter()

KIND_PATTERN = "^(regular|clearance|trip|all)$"


@router.get("/identifiers/migration-status", response_model=List[MigrationStatusSchema])
def migration_status(kind: str = Query("all", pattern=KIND_PATTERN), db: Session = Depends(get_db)):
    """Legacy and new-format identifier counts with the newest legacy samples"""
    allocator = SequentialNumberAllocator(db)
    try:
        statuses = [allocator.migration_status(k) for k in document_kinds_for(kind)]
    except PersistenceError as e:
        logging.error(f"Migration status failed: {e}")
        raise HTTPException(status_code=503, detail="Record store unavailable")
    return [MigrationStatusSchema.model_validate(status) for status in statuses]


@router.post("/identifiers/migrate", response_model=List[MigrationOutcomeSchema])
def migrate_identifiers(kind: str = Query("all", pattern=KIND_PATTERN), db: Session = Depends(get_db)):
    """
    Renumber legacy identifiers in creation-date order.

    Conflicts and per-record failures are listed in the outcome (first 25 records).
    """
    allocator = SequentialNumberAllocator(db)
    try:
        outcomes = [allocator.migrate(k) for k in document_kinds_for(kind)]
    except PersistenceError as e:
        logging.error(f"Identifier migration failed: {e}")
        raise HTTPException(status_code=503, detail="Record store unavailable")
    return [MigrationOutcomeSchema.model_validate(outcome) for outcome in outcomes]
