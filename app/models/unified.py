"""
Derived cross-platform models: unified customers and revenue attribution
"""
from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from app.models.common import ApiResponse, DataSource
from app.models.klaviyo import EmailEngagement, KlaviyoMetrics
from app.models.triple_whale import TripleWhaleMetrics
from app.utils.helpers import utcnow


class UnifiedCustomer(BaseModel):
    """
    One customer per distinct (case-insensitive) email across both platforms.

    `email_engagement` is None for commerce-only customers: "no engagement
    data" is a different state from "zero engagement".
    """
    email: str
    klaviyo_id: Optional[str] = None
    triple_whale_id: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    klaviyo_segments: List[str] = Field(default_factory=list)
    email_engagement: Optional[EmailEngagement] = None
    total_spent: float = 0.0
    order_count: int = 0
    average_order_value: float = 0.0
    lifetime_value: float = 0.0
    accepts_marketing: bool = False
    tags: List[str] = Field(default_factory=list)
    engagement_score: int = 0
    risk_score: int = 0
    predicted_churn: bool = False


class CustomerMatchReport(BaseModel):
    customers: List[UnifiedCustomer]
    sources: Dict[str, DataSource]
    matched: int = 0  # customers present on both platforms


class CampaignAttribution(BaseModel):
    campaign_id: str
    campaign_name: str
    sent_at: Optional[datetime] = None
    revenue: float = 0.0
    orders: int = 0
    attribution_type: Literal["direct", "assisted", "view-through"] = "direct"


class RevenueAttribution(BaseModel):
    email_revenue: float = 0.0
    total_revenue: float = 0.0
    attribution_rate: float = 0.0
    direct_attribution: float = 0.0
    # email_revenue - direct_attribution; negative values are reported as-is
    assisted_attribution: float = 0.0
    campaigns: List[CampaignAttribution] = Field(default_factory=list)
    window_days: int = 7


class ConnectionStatus(BaseModel):
    email_platform: bool = False
    commerce_platform: bool = False
    checked_at: datetime = Field(default_factory=utcnow)


class DashboardSnapshot(BaseModel):
    klaviyo_metrics: ApiResponse[KlaviyoMetrics]
    triple_whale_metrics: ApiResponse[TripleWhaleMetrics]
    customers: CustomerMatchReport
    revenue_attribution: Optional[RevenueAttribution] = None
    attribution_error: Optional[str] = None
    generated_at: datetime = Field(default_factory=utcnow)
