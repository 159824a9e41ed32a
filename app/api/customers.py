"""
Unified customer API
"""
from fastapi import APIRouter, Depends, HTTPException

from app.api.deps import get_date_range, get_sync_engine
from app.models.common import DateRange
from app.models.unified import CustomerMatchReport
from app.services.sync_engine import DataSyncEngine
from app.utils.logger import log

router = APIRouter(prefix="/customers", tags=["customers"])


@router.get("/unified", response_model=CustomerMatchReport)
async def get_unified_customers(
    date_range: DateRange = Depends(get_date_range),
    engine: DataSyncEngine = Depends(get_sync_engine)
):
    """
    Customers joined across Klaviyo and Triple Whale by email

    Each customer carries engagement and churn-risk scores. `sources` says
    whether each platform answered live or with fallback data.
    """
    try:
        return await engine.match_customers_report(date_range)
    except Exception as e:
        log.error(f"Error matching customers: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))
