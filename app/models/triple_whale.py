"""
Triple Whale (commerce platform) data models
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class TripleWhaleCustomer(BaseModel):
    id: str
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    orders_count: int = 0
    total_spent: float = 0.0
    average_order_value: float = 0.0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    accepts_marketing: bool = False
    tags: List[str] = Field(default_factory=list)


class TripleWhaleOrderItem(BaseModel):
    id: str
    product_id: Optional[str] = None
    name: Optional[str] = None
    quantity: int = 1
    price: float = 0.0
    total: float = 0.0


class TripleWhaleOrder(BaseModel):
    id: str
    customer_id: Optional[str] = None
    email: Optional[str] = None
    total: float = 0.0
    currency: str = "USD"
    created_at: Optional[datetime] = None
    status: str = "pending"
    items: List[TripleWhaleOrderItem] = Field(default_factory=list)
    source: Optional[str] = None  # sales channel tag, e.g. "klaviyo"
    campaign: Optional[str] = None  # utm_campaign


class TripleWhaleMetrics(BaseModel):
    """Store-wide commerce metrics for a date range"""
    total_revenue: float = 0.0
    orders: int = 0
    customers: int = 0
    average_order_value: float = 0.0
    customer_lifetime_value: float = 0.0
    return_customer_rate: float = 0.0
    new_customer_rate: float = 0.0
    conversion_rate: float = 0.0
    ad_spend: float = 0.0
    roas: float = 0.0
