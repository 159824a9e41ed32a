"""
Triple Whale data API

Pass-through reads of the commerce platform, over whichever transport is
configured (REST or MCP).
"""
from typing import List, Optional

from fastapi import APIRouter, Depends

from app.api.deps import get_date_range, get_optional_date_range, get_sync_engine
from app.models.common import ApiResponse, DateRange
from app.models.triple_whale import TripleWhaleCustomer, TripleWhaleMetrics, TripleWhaleOrder
from app.services.sync_engine import DataSyncEngine

router = APIRouter(prefix="/triple-whale", tags=["triple-whale"])


@router.get("/metrics", response_model=ApiResponse[TripleWhaleMetrics])
async def get_triple_whale_metrics(
    date_range: DateRange = Depends(get_date_range),
    engine: DataSyncEngine = Depends(get_sync_engine)
):
    """Store revenue, orders, AOV, CLV and ad efficiency for the range"""
    return await engine.commerce_connector.get_metrics(date_range)


@router.get("/orders", response_model=ApiResponse[List[TripleWhaleOrder]])
async def get_triple_whale_orders(
    date_range: DateRange = Depends(get_date_range),
    engine: DataSyncEngine = Depends(get_sync_engine)
):
    return await engine.commerce_connector.get_orders(date_range)


@router.get("/customers", response_model=ApiResponse[List[TripleWhaleCustomer]])
async def get_triple_whale_customers(
    date_range: Optional[DateRange] = Depends(get_optional_date_range),
    engine: DataSyncEngine = Depends(get_sync_engine)
):
    return await engine.commerce_connector.get_customers(date_range)
