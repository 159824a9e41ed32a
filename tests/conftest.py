"""Shared pytest configuration: quiet environment and common fixtures"""
import os
from unittest.mock import AsyncMock, patch

import pytest

# Set test environment before app modules read settings
os.environ["LOG_TO_FILE"] = "false"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["RETRY_MAX_ATTEMPTS"] = "1"
os.environ.setdefault("KLAVIYO_API_KEY", "pk_test")
os.environ.setdefault("TRIPLE_WHALE_API_KEY", "tw_test")
os.environ.setdefault("TRIPLE_WHALE_SHOP_ID", "test-shop.myshopify.com")

from app.config import Settings  # noqa: E402
from app.connectors.base_connector import ConnectorError  # noqa: E402
from app.connectors.klaviyo_connector import KlaviyoConnector  # noqa: E402
from app.connectors.triple_whale_connector import TripleWhaleConnector  # noqa: E402
from app.models.common import DateRange  # noqa: E402


@pytest.fixture
def settings():
    return Settings(
        klaviyo_api_key="pk_test",
        triple_whale_api_key="tw_test",
        triple_whale_shop_id="test-shop.myshopify.com",
        log_to_file=False,
        retry_max_attempts=1,
        retry_base_delay=0.0,
        request_timeout_seconds=5.0,
    )


# ---------------------------------------------------------------------------
# Canned platform payloads, served in place of BaseConnector._request
# ---------------------------------------------------------------------------

KLAVIYO_PAYLOADS = {
    "/accounts/": {"data": [{"type": "account", "id": "acct_1"}]},
    "/profiles/": {
        "data": [
            {
                "type": "profile",
                "id": "p1",
                "attributes": {
                    "email": "Jane@Example.com",
                    "first_name": "Jane",
                    "engagement": {"open_rate": 40, "click_rate": 5},
                    "last_event_date": "2024-03-02T09:00:00Z",
                },
                "relationships": {"segments": {"data": [{"type": "segment", "id": "s1"}]}},
            },
            {"type": "profile", "id": "p2", "attributes": {"email": "reader@example.com"}},
        ],
        "included": [{"type": "segment", "id": "s1", "attributes": {"name": "VIP"}}],
        "links": {"next": None},
    },
    "/campaigns/": {
        "data": [
            {
                "type": "campaign",
                "id": "cmp1",
                "attributes": {
                    "name": "Spring Sale",
                    "status": "Sent",
                    "send_time": "2024-03-01T12:00:00Z",
                    "subject_line": "Spring is here",
                },
            },
            {"type": "campaign", "id": "cmp2", "attributes": {"name": "Draft Promo", "status": "Draft"}},
        ]
    },
    "/campaign-values-reports/": {
        "data": {
            "type": "campaign-values-report",
            "attributes": {
                "results": [
                    {
                        "groupings": {"campaign_id": "cmp1", "send_channel": "email"},
                        "statistics": {
                            "recipients": 1000,
                            "opens": 400,
                            "clicks": 50,
                            "open_rate": 0.4,
                            "click_rate": 0.05,
                            "conversions": 10,
                            "conversion_value": 1000.0,
                        },
                    }
                ]
            },
        }
    },
    "/flows/": {
        "data": [
            {"type": "flow", "id": "f1", "attributes": {"name": "Welcome Series", "status": "live"}},
            {"type": "flow", "id": "f2", "attributes": {"name": "Old Winback", "status": "draft"}},
        ]
    },
    "/segments/": {"data": [{"type": "segment", "id": "s1", "attributes": {"name": "VIP", "profile_count": 12}}]},
    "/metrics/": {
        "data": [
            {"type": "metric", "id": "m_open", "attributes": {"name": "Opened Email"}},
            {"type": "metric", "id": "m_order", "attributes": {"name": "Placed Order"}},
        ]
    },
}

TRIPLE_WHALE_PAYLOADS = {
    "/account": {"id": "test-shop"},
    "/customers": {
        "data": [
            {
                "id": "c1",
                "email": "jane@example.com",
                "first_name": "Janet",
                "last_name": "Doe",
                "orders_count": 3,
                "total_spent": "450.00",
                "accepts_marketing": True,
                "tags": "vip, repeat",
            },
            {"id": "c2", "email": "shopper@example.com", "orders_count": 1, "total_spent": 40},
        ]
    },
    "/orders": {
        "data": [
            {
                "id": "o1",
                "customer_id": "c1",
                "email": "jane@example.com",
                "total_price": "400.00",
                "created_at": "2024-03-02T10:00:00Z",
                "financial_status": "paid",
                "source_name": "klaviyo",
                "line_items": [{"id": "li1", "product_id": 9, "title": "Runner", "quantity": 2, "price": "200.00"}],
            },
            {
                "id": "o2",
                "customer_id": "c2",
                "total_price": "300.00",
                "created_at": "2024-03-03T10:00:00Z",
                "financial_status": "paid",
                "source_name": "web",
                "utm_campaign": "Spring Sale",
            },
            {
                "id": "o3",
                "customer_id": "c2",
                "total_price": "3300.00",
                "created_at": "2024-03-04T10:00:00Z",
                "financial_status": "paid",
                "source_name": "google",
            },
        ]
    },
}


def _serve(payloads):
    async def fake_request(method, path, params=None, json=None):
        return payloads[path]
    return fake_request


@pytest.fixture
def klaviyo_api():
    return _serve(KLAVIYO_PAYLOADS)


@pytest.fixture
def triple_whale_api():
    return _serve(TRIPLE_WHALE_PAYLOADS)


@pytest.fixture
def march_range():
    return DateRange(start="2024-02-25T00:00:00Z", end="2024-03-31T23:59:59Z")


# ---------------------------------------------------------------------------
# Platform states: both reachable, commerce down, both down
# ---------------------------------------------------------------------------

def _down(*args, **kwargs):
    raise ConnectorError("connection refused", retryable=True)


@pytest.fixture
def both_live(klaviyo_api, triple_whale_api):
    with patch.object(KlaviyoConnector, "_request", new=AsyncMock(side_effect=klaviyo_api)), \
            patch.object(TripleWhaleConnector, "_request", new=AsyncMock(side_effect=triple_whale_api)):
        yield


@pytest.fixture
def commerce_down(klaviyo_api):
    with patch.object(KlaviyoConnector, "_request", new=AsyncMock(side_effect=klaviyo_api)), \
            patch.object(TripleWhaleConnector, "_request", new=AsyncMock(side_effect=_down)):
        yield


@pytest.fixture
def both_down():
    with patch.object(KlaviyoConnector, "_request", new=AsyncMock(side_effect=_down)), \
            patch.object(TripleWhaleConnector, "_request", new=AsyncMock(side_effect=_down)):
        yield
