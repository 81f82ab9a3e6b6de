"""
Helper utilities
"""
from datetime import date, datetime, timedelta, timezone
from typing import Any, Iterable, List, Optional
from zoneinfo import ZoneInfo

SHOPEE_DATE_FORMAT = "%d-%m-%Y"


def safe_divide(numerator: float, denominator: float, default: float = 0.0) -> float:
    """Safely divide two numbers"""
    try:
        return numerator / denominator if denominator != 0 else default
    except (TypeError, ZeroDivisionError):
        return default


def chunk_list(lst: List, chunk_size: int) -> List[List]:
    """Split list into chunks"""
    return [lst[i:i + chunk_size] for i in range(0, len(lst), chunk_size)]


def unique_in_order(values: Iterable[Any]) -> List[Any]:
    seen = set()
    result = []
    for v in values:
        if v in seen:
            continue
        seen.add(v)
        result.append(v)
    return result


def to_shopee_date(value: date) -> str:
    """Format a date the way the ads endpoints expect it (DD-MM-YYYY)"""
    return value.strftime(SHOPEE_DATE_FORMAT)


def parse_shopee_date(value: Optional[str]) -> Optional[date]:
    """Parse DD-MM-YYYY, returning None for anything else"""
    if not value:
        return None
    try:
        return datetime.strptime(value, SHOPEE_DATE_FORMAT).date()
    except (TypeError, ValueError):
        return None


def marketplace_today(tz_name: str, now: Optional[datetime] = None) -> date:
    """Calendar date in the marketplace timezone"""
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(ZoneInfo(tz_name)).date()


def date_window(end: date, days: int) -> tuple[date, date]:
    """Inclusive window of `days` calendar days ending at `end`"""
    return end - timedelta(days=max(days, 1) - 1), end


def from_epoch(value: Any) -> Optional[datetime]:
    """Naive UTC datetime from a unix timestamp (seconds)"""
    if value in (None, "", 0):
        return None
    try:
        return datetime.utcfromtimestamp(int(value))
    except (TypeError, ValueError, OverflowError, OSError):
        return None


def to_float(value: Any, default: float = 0.0) -> float:
    try:
        return float(value) if value is not None else default
    except (TypeError, ValueError):
        return default


def to_int(value: Any, default: int = 0) -> int:
    try:
        return int(value) if value is not None else default
    except (TypeError, ValueError):
        return default
