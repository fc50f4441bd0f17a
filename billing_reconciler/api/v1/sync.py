"""POST /v1/sync - reconcile stored payment fields; GET /v1/sync/status - dry-run drift"""

import logging
from datetime import datetime
from typing import Callable

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from billing_reconciler.api.dependencies import get_clock, get_request_id
from billing_reconciler.api.v1.schemas import (
    SyncOutcomeSchema,
    SyncResponse,
    SyncStatusResponse,
    report_response,
)
from billing_reconciler.domain.exceptions import PersistenceError
from billing_reconciler.infrastructure.database.session import get_db
from billing_reconciler.services.reporter import ReconciliationReporter
from billing_reconciler.services.synchronizer import InvoiceSynchronizer, document_classes_for

router = APIRouter()


@router.post("/sync", response_model=SyncResponse)
def run_sync(
    request: Request,
    sync_type: str = Query("all", alias="type", pattern="^(regular|clearance|all)$"),
    db: Session = Depends(get_db),
    clock: Callable[[], datetime] = Depends(get_clock),
):
    """
    Reconcile invoices and return the payment report.

    Flow:
    1. Recompute derived fields of every invoice in the selected classes
    2. Persist corrections (per-invoice failures are reported, not raised)
    3. Build the grouped report from the corrected store
    """
    request_id = get_request_id(request)
    document_classes = document_classes_for(sync_type)

    try:
        outcomes = InvoiceSynchronizer(db, clock=clock).sync_all(document_classes)
        report = ReconciliationReporter(db, clock=clock).build_report(document_classes)
    except PersistenceError as e:
        logging.error(f"Sync failed: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=503, detail="Record store unavailable")

    return SyncResponse(
        outcomes=[SyncOutcomeSchema.model_validate(outcome) for outcome in outcomes],
        report=report_response(report),
    )


@router.get("/sync/status", response_model=SyncStatusResponse)
def sync_status(
    request: Request,
    db: Session = Depends(get_db),
    clock: Callable[[], datetime] = Depends(get_clock),
):
    """Report plus the number of invoices a sync run would correct"""
    request_id = get_request_id(request)

    try:
        outcomes = InvoiceSynchronizer(db, clock=clock).sync_all(dry_run=True)
        report = ReconciliationReporter(db, clock=clock).build_report()
    except PersistenceError as e:
        logging.error(f"Sync status failed: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=503, detail="Record store unavailable")

    return SyncStatusResponse(
        needs_sync_count=sum(outcome.updated_count for outcome in outcomes),
        outcomes=[SyncOutcomeSchema.model_validate(outcome) for outcome in outcomes],
        report=report_response(report),
    )
