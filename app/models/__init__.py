"""Data models for the Unified Marketing Dashboard"""

from app.models.common import ApiResponse, DataSource, DateRange
from app.models.klaviyo import (
    EmailEngagement,
    KlaviyoCampaign,
    KlaviyoFlow,
    KlaviyoMetrics,
    KlaviyoProfile,
    KlaviyoSegment,
)
from app.models.triple_whale import (
    TripleWhaleCustomer,
    TripleWhaleMetrics,
    TripleWhaleOrder,
    TripleWhaleOrderItem,
)
from app.models.unified import (
    CampaignAttribution,
    ConnectionStatus,
    CustomerMatchReport,
    DashboardSnapshot,
    RevenueAttribution,
    UnifiedCustomer,
)

__all__ = [
    "ApiResponse",
    "DataSource",
    "DateRange",
    "EmailEngagement",
    "KlaviyoCampaign",
    "KlaviyoFlow",
    "KlaviyoMetrics",
    "KlaviyoProfile",
    "KlaviyoSegment",
    "TripleWhaleCustomer",
    "TripleWhaleMetrics",
    "TripleWhaleOrder",
    "TripleWhaleOrderItem",
    "CampaignAttribution",
    "ConnectionStatus",
    "CustomerMatchReport",
    "DashboardSnapshot",
    "RevenueAttribution",
    "UnifiedCustomer",
]
