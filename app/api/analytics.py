"""
Cross-platform analytics API

Revenue attribution and the overview dashboard snapshot.
"""
from fastapi import APIRouter, Depends, HTTPException

from app.api.deps import get_date_range, get_sync_engine
from app.connectors.base_connector import ConnectorError
from app.models.common import DateRange
from app.models.unified import DashboardSnapshot, RevenueAttribution
from app.services.sync_engine import DataSyncEngine
from app.utils.logger import log

router = APIRouter(prefix="/analytics", tags=["analytics"])


@router.get("/attribution", response_model=RevenueAttribution)
async def get_revenue_attribution(
    date_range: DateRange = Depends(get_date_range),
    engine: DataSyncEngine = Depends(get_sync_engine)
):
    """
    Email revenue attribution

    Only computed from live data: if either platform cannot be reached
    the endpoint answers 503 instead of mixing in placeholder figures.
    """
    try:
        return await engine.calculate_revenue_attribution(date_range)
    except ConnectorError as e:
        log.error(f"Revenue attribution unavailable: {str(e)}")
        raise HTTPException(status_code=503, detail=f"Failed to calculate revenue attribution: {e}")
    except Exception as e:
        log.error(f"Error calculating revenue attribution: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/dashboard", response_model=DashboardSnapshot)
async def get_dashboard(
    date_range: DateRange = Depends(get_date_range),
    engine: DataSyncEngine = Depends(get_sync_engine)
):
    """
    Overview snapshot

    Returns:
    - Klaviyo and Triple Whale metrics (live or fallback)
    - Unified customers
    - Revenue attribution, or `attribution_error` when it is unavailable
    """
    try:
        return await engine.sync_all_data(date_range)
    except ConnectorError as e:
        log.error(f"Dashboard sync failed: {str(e)}")
        raise HTTPException(status_code=503, detail=str(e))
    except Exception as e:
        log.error(f"Error building dashboard: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))
