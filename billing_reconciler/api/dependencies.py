"""Dependency injection for FastAPI endpoints"""

from datetime import datetime
from typing import Callable

from fastapi import Request
from billing_reconciler.utils.date_utils import utc_now


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_clock() -> Callable[[], datetime]:
    """Provide the clock used as "now" by reconciliation runs"""
    return utc_now
