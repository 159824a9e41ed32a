"""
Triple Whale data connector
Fetches customers, orders and store metrics over the REST API
"""
from typing import Any, Dict, List, Optional
from datetime import datetime
import asyncio

import pytz

from app.config import Settings
from app.connectors.base_connector import BaseConnector, ConnectorError
from app.models.common import ApiResponse, DateRange
from app.models.triple_whale import (
    TripleWhaleCustomer,
    TripleWhaleMetrics,
    TripleWhaleOrder,
    TripleWhaleOrderItem,
)
from app.utils.helpers import parse_datetime, safe_divide, to_float, to_int
from app.utils.logger import log


# ---------------------------------------------------------------------------
# Normalization (vendor snake_case records -> internal models)
# ---------------------------------------------------------------------------

def _records(payload: Any) -> List[Dict[str, Any]]:
    """Pull the record list out of `{"data": [...]}` (or a bare list)"""
    items = payload.get("data") if isinstance(payload, dict) else payload
    if not isinstance(items, list):
        return []
    return [item for item in items if isinstance(item, dict) and item.get("id") is not None]


def _tags(value: Any) -> List[str]:
    if isinstance(value, str):
        return [tag.strip() for tag in value.split(",") if tag.strip()]
    if isinstance(value, list):
        return [str(tag) for tag in value if tag]
    return []


def _optional_str(value: Any) -> Optional[str]:
    return str(value) if value not in (None, "") else None


def normalize_customer(raw: Dict[str, Any]) -> TripleWhaleCustomer:
    orders_count = to_int(raw.get("orders_count"))
    total_spent = to_float(raw.get("total_spent"))
    return TripleWhaleCustomer(
        id=str(raw["id"]),
        email=raw.get("email") or None,
        first_name=raw.get("first_name") or None,
        last_name=raw.get("last_name") or None,
        phone=raw.get("phone") or None,
        orders_count=orders_count,
        total_spent=total_spent,
        average_order_value=safe_divide(total_spent, orders_count),
        created_at=parse_datetime(raw.get("created_at")),
        updated_at=parse_datetime(raw.get("updated_at")),
        accepts_marketing=bool(raw.get("accepts_marketing", False)),
        tags=_tags(raw.get("tags")),
    )


def normalize_order_item(raw: Dict[str, Any]) -> TripleWhaleOrderItem:
    quantity = to_int(raw.get("quantity"), 1) or 1
    price = to_float(raw.get("price"))
    return TripleWhaleOrderItem(
        id=str(raw.get("id", "")),
        product_id=_optional_str(raw.get("product_id")),
        name=raw.get("name") or raw.get("title"),
        quantity=quantity,
        price=price,
        total=price * quantity,
    )


def normalize_order(raw: Dict[str, Any]) -> TripleWhaleOrder:
    line_items = raw.get("line_items") if isinstance(raw.get("line_items"), list) else []
    return TripleWhaleOrder(
        id=str(raw["id"]),
        customer_id=_optional_str(raw.get("customer_id")),
        email=raw.get("email") or None,
        total=to_float(raw.get("total_price")),
        currency=raw.get("currency") or "USD",
        created_at=parse_datetime(raw.get("created_at")),
        status=raw.get("financial_status") or "pending",
        items=[normalize_order_item(item) for item in line_items if isinstance(item, dict)],
        source=raw.get("source_name") or None,
        campaign=raw.get("utm_campaign") or None,
    )


def summarize_metrics(orders: List[TripleWhaleOrder], customers: List[TripleWhaleCustomer]) -> TripleWhaleMetrics:
    """Store metrics derived from the orders and customers of a window"""
    total_revenue = sum(order.total for order in orders)
    ordering_customers = {order.customer_id or (order.email or "").lower() for order in orders}
    ordering_customers.discard("")
    returning = sum(1 for c in customers if c.orders_count > 1)
    new = sum(1 for c in customers if c.orders_count == 1)

    return TripleWhaleMetrics(
        total_revenue=total_revenue,
        orders=len(orders),
        customers=len(ordering_customers),
        average_order_value=safe_divide(total_revenue, len(orders)),
        customer_lifetime_value=safe_divide(sum(c.total_spent for c in customers), len(customers)),
        return_customer_rate=safe_divide(returning, len(customers)) * 100,
        new_customer_rate=safe_divide(new, len(customers)) * 100,
    )


# ---------------------------------------------------------------------------
# Fallback values
# ---------------------------------------------------------------------------

def fallback_customers() -> List[TripleWhaleCustomer]:
    return [
        TripleWhaleCustomer(
            id="customer_fallback_1",
            email="customer@example.com",
            first_name="Example",
            last_name="Customer",
            orders_count=3,
            total_spent=450.0,
            average_order_value=150.0,
            accepts_marketing=True,
        )
    ]


def fallback_orders() -> List[TripleWhaleOrder]:
    return [
        TripleWhaleOrder(
            id="order_fallback_1",
            customer_id="customer_fallback_1",
            email="customer@example.com",
            total=150.0,
            status="paid",
            source="klaviyo",
        )
    ]


def fallback_metrics() -> TripleWhaleMetrics:
    return TripleWhaleMetrics(
        total_revenue=45230.75,
        orders=156,
        customers=156,
        average_order_value=290.07,
        customer_lifetime_value=425.50,
        return_customer_rate=42.9,
        new_customer_rate=57.1,
        conversion_rate=3.2,
        ad_spend=8450.25,
        roas=5.35,
    )


class TripleWhaleConnector(BaseConnector):
    """Connector for the Triple Whale e-commerce analytics platform"""

    def __init__(self, settings: Settings):
        super().__init__("Triple Whale", settings)
        self.base_url = settings.triple_whale_base_url.rstrip("/")
        self.headers = {
            "x-api-key": settings.triple_whale_api_key,
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        self.timezone = pytz.timezone(settings.shop_timezone)

    def _shop_date(self, moment: datetime) -> str:
        """Calendar date of `moment` in the shop's timezone (API date params)"""
        return moment.astimezone(self.timezone).date().isoformat()

    def _date_params(self, date_range: DateRange) -> Dict[str, str]:
        return {
            "start_date": self._shop_date(date_range.start),
            "end_date": self._shop_date(date_range.end),
        }

    async def test_connection(self) -> bool:
        """Test Triple Whale API connection"""
        try:
            await self._request("GET", "/account")
            log.info("Connected to Triple Whale API")
            return True
        except ConnectorError as e:
            log.error(f"Triple Whale connection test failed: {e}")
            return False

    async def get_customers(
        self, date_range: Optional[DateRange] = None, allow_fallback: bool = True
    ) -> ApiResponse[List[TripleWhaleCustomer]]:
        return await self._respond(
            "get_customers", lambda: self._fetch_customers(date_range), fallback_customers, allow_fallback
        )

    async def get_orders(self, date_range: DateRange, allow_fallback: bool = True) -> ApiResponse[List[TripleWhaleOrder]]:
        return await self._respond(
            "get_orders", lambda: self._fetch_orders(date_range), fallback_orders, allow_fallback
        )

    async def get_metrics(self, date_range: DateRange, allow_fallback: bool = True) -> ApiResponse[TripleWhaleMetrics]:
        return await self._respond(
            "get_metrics", lambda: self._fetch_metrics(date_range), fallback_metrics, allow_fallback
        )

    async def metrics_from(
        self,
        date_range: DateRange,
        orders: ApiResponse[List[TripleWhaleOrder]],
        customers: ApiResponse[List[TripleWhaleCustomer]]
    ) -> ApiResponse[TripleWhaleMetrics]:
        """Same figures as get_metrics, computed from the range's orders and customers already in hand"""
        return self._derive(
            "get_metrics",
            (orders, customers),
            lambda: summarize_metrics(orders.data, customers.data),
            fallback_metrics,
        )

    async def _fetch_customers(self, date_range: Optional[DateRange]) -> List[TripleWhaleCustomer]:
        params = self._date_params(date_range) if date_range is not None else None
        payload = await self._request("GET", "/customers", params=params)
        customers = [normalize_customer(raw) for raw in _records(payload)]
        log.info(f"Fetched {len(customers)} customers from Triple Whale")
        return customers

    async def _fetch_orders(self, date_range: DateRange) -> List[TripleWhaleOrder]:
        params = {**self._date_params(date_range), "include": "line_items"}
        payload = await self._request("GET", "/orders", params=params)
        orders = [normalize_order(raw) for raw in _records(payload)]
        log.info(f"Fetched {len(orders)} orders from Triple Whale")
        return orders

    async def _fetch_metrics(self, date_range: DateRange) -> TripleWhaleMetrics:
        orders, customers = await asyncio.gather(
            self._fetch_orders(date_range),
            self._fetch_customers(date_range),
        )
        return summarize_metrics(orders, customers)
