"""
Unified Marketing Dashboard
Main FastAPI application
"""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from app.config import get_settings
from app.utils.logger import log
from app import __version__

# Import routers
from app.api import health, customers, analytics, klaviyo, triple_whale, validation

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events"""
    log.info(f"Starting {settings.app_name} v{__version__}")
    log.info(f"Environment: {settings.environment}")
    log.info(f"Commerce transport: {settings.commerce_transport}")

    if not settings.klaviyo_api_key:
        log.warning("KLAVIYO_API_KEY is not set; Klaviyo endpoints will serve fallback data")
    if not settings.triple_whale_api_key:
        log.warning("TRIPLE_WHALE_API_KEY is not set; Triple Whale endpoints will serve fallback data")

    yield

    log.info("Shutting down application")


# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    version=__version__,
    description="""
    Unified marketing analytics over Klaviyo and Triple Whale

    - Joins email profiles and store customers by email address
    - Scores engagement and churn risk per customer
    - Attributes store revenue to email campaigns
    - Serves live platform data, or clearly tagged fallback data when a
      platform is unreachable
    """,
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router, tags=["health"])
app.include_router(customers.router)
app.include_router(analytics.router)
app.include_router(klaviyo.router)
app.include_router(triple_whale.router)
app.include_router(validation.router)


@app.get("/")
async def root():
    """Root endpoint with API information"""
    return {
        "app": settings.app_name,
        "version": __version__,
        "docs": "/docs",
        "health": "/health",
        "status": "/status",
        "endpoints": {
            "test_connections": "GET /connections/test",
            "unified_customers": "GET /customers/unified",
            "revenue_attribution": "GET /analytics/attribution",
            "dashboard": "GET /analytics/dashboard",
            "klaviyo": "GET /klaviyo/{metrics,campaigns,flows,segments,profiles}",
            "triple_whale": "GET /triple-whale/{metrics,orders,customers}",
            "validate_api_keys": "POST /validate-api-keys",
        }
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug
    )
