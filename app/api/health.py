"""
Health check, status and connectivity endpoints
"""
from fastapi import APIRouter, Depends

from app import __version__
from app.api.deps import get_sync_engine
from app.config import Settings, get_settings
from app.models.unified import ConnectionStatus
from app.services.sync_engine import DataSyncEngine
from app.utils.helpers import utcnow

router = APIRouter()


@router.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "timestamp": utcnow().isoformat(),
        "version": __version__
    }


@router.get("/status")
async def get_status(settings: Settings = Depends(get_settings)):
    """Configuration summary (never includes the keys themselves)"""
    return {
        "app_name": settings.app_name,
        "version": __version__,
        "environment": settings.environment,
        "commerce_transport": settings.commerce_transport,
        "configured": {
            "klaviyo": bool(settings.klaviyo_api_key),
            "triple_whale": bool(settings.triple_whale_api_key),
        },
        "timestamp": utcnow().isoformat()
    }


@router.get("/connections/test", response_model=ConnectionStatus)
async def test_connections(engine: DataSyncEngine = Depends(get_sync_engine)):
    """Live reachability of both platforms"""
    return await engine.test_connections()
