"""
Shared request dependencies

Each request gets its own engine (and therefore its own connectors); tests
swap it out through `app.dependency_overrides[get_sync_engine]`.
"""
from datetime import timedelta
from typing import Optional

from fastapi import Depends, HTTPException, Query
from pydantic import ValidationError

from app.config import Settings, get_settings
from app.models.common import DateRange
from app.services.sync_engine import DataSyncEngine
from app.utils.helpers import parse_datetime, utcnow


def get_sync_engine(settings: Settings = Depends(get_settings)) -> DataSyncEngine:
    return DataSyncEngine(settings)


def get_date_range(
    start: Optional[str] = Query(None, description="Range start (ISO 8601)"),
    end: Optional[str] = Query(None, description="Range end (ISO 8601), defaults to now"),
    settings: Settings = Depends(get_settings)
) -> DateRange:
    """Date range from query params; a missing start means the default lookback"""
    end_at = parse_datetime(end) if end else utcnow()
    if end_at is None:
        raise HTTPException(status_code=400, detail=f"Invalid end date: {end}")

    start_at = parse_datetime(start) if start else end_at - timedelta(days=settings.default_lookback_days)
    if start_at is None:
        raise HTTPException(status_code=400, detail=f"Invalid start date: {start}")

    try:
        return DateRange(start=start_at, end=end_at)
    except ValidationError:
        raise HTTPException(status_code=400, detail="start must not be after end")


def get_optional_date_range(
    start: Optional[str] = Query(None, description="Range start (ISO 8601)"),
    end: Optional[str] = Query(None, description="Range end (ISO 8601)"),
    settings: Settings = Depends(get_settings)
) -> Optional[DateRange]:
    """Like get_date_range, but no params at all means no date filter"""
    if start is None and end is None:
        return None
    return get_date_range(start=start, end=end, settings=settings)
