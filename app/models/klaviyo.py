"""
Klaviyo (email platform) data models
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class EmailEngagement(BaseModel):
    """Per-profile engagement summary; rates are 0-100"""
    open_rate: float = 0.0
    click_rate: float = 0.0
    last_engaged: Optional[datetime] = None


class KlaviyoProfile(BaseModel):
    id: str
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    segments: List[str] = Field(default_factory=list)
    engagement: Optional[EmailEngagement] = None


class KlaviyoCampaign(BaseModel):
    id: str
    name: str = "Untitled Campaign"
    subject: Optional[str] = None
    status: str = "draft"
    sent_at: Optional[datetime] = None
    recipients: int = 0
    opens: int = 0
    clicks: int = 0
    conversions: int = 0
    revenue: float = 0.0
    open_rate: float = 0.0
    click_rate: float = 0.0
    conversion_rate: float = 0.0


class KlaviyoFlow(BaseModel):
    id: str
    name: str = "Untitled Flow"
    status: str = "draft"
    emails: int = 0
    revenue: float = 0.0
    conversion_rate: float = 0.0
    subscribers: int = 0


class KlaviyoSegment(BaseModel):
    id: str
    name: str = "Untitled Segment"
    count: int = 0
    estimated_count: int = 0
    is_processing: bool = False


class KlaviyoMetrics(BaseModel):
    """Account-level email metrics for a date range"""
    total_revenue: float = 0.0
    email_revenue: float = 0.0
    subscribers: int = 0
    open_rate: float = 0.0
    click_rate: float = 0.0
    conversion_rate: float = 0.0
    active_flows: int = 0
    total_campaigns: int = 0
    average_order_value: float = 0.0
