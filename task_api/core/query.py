"""
Helpers for query-string parsing shared by the routers.
"""
from datetime import date, datetime, time, timedelta, timezone
from typing import Iterable, Optional, Set, Tuple

from fastapi import HTTPException, status


def convert_datetime_to_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Convert datetime to UTC timezone-aware datetime"""
    if dt is None:
        return None
    if dt.tzinfo is None:
        # Naive datetime, assume UTC
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_fields(fields: Optional[str], allowed: Iterable[str]) -> Optional[Set[str]]:
    """
    Parse a comma separated ?fields= value.

    Unknown names are ignored. Returns None (meaning every field) when
    nothing usable was requested.
    """
    if not fields:
        return None
    allowed = set(allowed)
    selected = {name.strip() for name in fields.split(",") if name.strip() in allowed}
    return selected or None


def _parse_bound(value: str, end: bool) -> datetime:
    value = value.strip()
    try:
        if len(value) == 10:
            day = date.fromisoformat(value)
            # A bare end date covers the whole day
            if end:
                day = day + timedelta(days=1)
            return datetime.combine(day, time.min, tzinfo=timezone.utc)
        return convert_datetime_to_utc(datetime.fromisoformat(value))
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid date in date_range: {value!r}"
        )


def parse_date_range(value: Optional[str]) -> Optional[Tuple[datetime, datetime]]:
    """
    Parse ?date_range=start,end into a half-open [start, end) UTC interval.
    """
    if not value:
        return None
    parts = value.split(",")
    if len(parts) != 2 or not all(part.strip() for part in parts):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="date_range must be formatted as start,end"
        )
    start = _parse_bound(parts[0], end=False)
    end = _parse_bound(parts[1], end=True)
    if start >= end:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="date_range start must be before its end"
        )
    return start, end
