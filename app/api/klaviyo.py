"""
Klaviyo data API

Pass-through reads of the email platform. Every response is an ApiResponse
envelope; `source` is "fallback" when Klaviyo could not be reached.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends

from app.api.deps import get_date_range, get_optional_date_range, get_sync_engine
from app.models.common import ApiResponse, DateRange
from app.models.klaviyo import KlaviyoCampaign, KlaviyoFlow, KlaviyoMetrics, KlaviyoProfile, KlaviyoSegment
from app.services.sync_engine import DataSyncEngine

router = APIRouter(prefix="/klaviyo", tags=["klaviyo"])


@router.get("/metrics", response_model=ApiResponse[KlaviyoMetrics])
async def get_klaviyo_metrics(
    date_range: DateRange = Depends(get_date_range),
    engine: DataSyncEngine = Depends(get_sync_engine)
):
    """Email revenue, rates and counts for the range"""
    return await engine.email_connector.get_metrics(date_range)


@router.get("/campaigns", response_model=ApiResponse[List[KlaviyoCampaign]])
async def get_klaviyo_campaigns(
    date_range: Optional[DateRange] = Depends(get_optional_date_range),
    engine: DataSyncEngine = Depends(get_sync_engine)
):
    """Campaigns with performance figures, optionally limited to sends in the range"""
    return await engine.email_connector.get_campaigns(date_range)


@router.get("/flows", response_model=ApiResponse[List[KlaviyoFlow]])
async def get_klaviyo_flows(engine: DataSyncEngine = Depends(get_sync_engine)):
    return await engine.email_connector.get_flows()


@router.get("/segments", response_model=ApiResponse[List[KlaviyoSegment]])
async def get_klaviyo_segments(engine: DataSyncEngine = Depends(get_sync_engine)):
    return await engine.email_connector.get_segments()


@router.get("/profiles", response_model=ApiResponse[List[KlaviyoProfile]])
async def get_klaviyo_profiles(engine: DataSyncEngine = Depends(get_sync_engine)):
    return await engine.email_connector.get_profiles()
