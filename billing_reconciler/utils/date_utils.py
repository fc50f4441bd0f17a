"""Date manipulation utilities"""

import calendar
from datetime import datetime, timezone


def utc_now() -> datetime:
    """Current time as a naive UTC datetime (the store keeps naive UTC values)"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_naive_utc(value: datetime) -> datetime:
    """Normalise an aware datetime to naive UTC; naive values pass through"""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def add_months(value: datetime, months: int) -> datetime:
    """
    Advance by calendar months, clamping the day to the end of the target month.

    Jan 31 + 1 month -> Feb 28 (Feb 29 in leap years), time of day is kept.
    """
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1

    max_day = calendar.monthrange(year, month)[1]
    return value.replace(year=year, month=month, day=min(value.day, max_day))


def date_key(value: datetime) -> str:
    """YYYYMMDD key of the UTC calendar day"""
    return as_naive_utc(value).strftime("%Y%m%d")
