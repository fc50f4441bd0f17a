"""GET /v1/reports/payments - grouped payment summaries"""

import logging
from datetime import datetime
from typing import Callable

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from billing_reconciler.api.dependencies import get_clock, get_request_id
from billing_reconciler.api.v1.schemas import ReportResponse, report_response
from billing_reconciler.domain.exceptions import PersistenceError
from billing_reconciler.infrastructure.database.session import get_db
from billing_reconciler.services.reporter import ReconciliationReporter

router = APIRouter()


@router.get("/reports/payments", response_model=ReportResponse)
def get_payment_report(
    request: Request,
    db: Session = Depends(get_db),
    clock: Callable[[], datetime] = Depends(get_clock),
):
    """Counts and sums per payment status plus the installment invoices of each class"""
    try:
        report = ReconciliationReporter(db, clock=clock).build_report()
    except PersistenceError as e:
        logging.error(f"Payment report failed: {e}", extra={"request_id": get_request_id(request)})
        raise HTTPException(status_code=503, detail="Record store unavailable")
    return report_response(report)
