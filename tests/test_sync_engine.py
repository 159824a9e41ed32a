"""
DataSyncEngine tests: real connectors over canned payloads.
"""
import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from app.connectors.base_connector import ConnectorError
from app.connectors.klaviyo_connector import KlaviyoConnector
from app.connectors.triple_whale_connector import TripleWhaleConnector
from app.services.sync_engine import DataSyncEngine


def _run(coro):
    """Run an async coroutine in a sync test."""
    return asyncio.run(coro)


class TestCustomerMatching:

    def test_report_from_live_data(self, settings, both_live, march_range):
        report = _run(DataSyncEngine(settings).match_customers_report(march_range))

        assert report.sources == {"email_platform": "live", "commerce_platform": "live"}
        assert report.matched == 1
        assert [c.email for c in report.customers] == [
            "Jane@Example.com", "reader@example.com", "shopper@example.com"
        ]

        jane = report.customers[0]
        assert jane.klaviyo_id == "p1"
        assert jane.triple_whale_id == "c1"
        assert jane.first_name == "Jane"
        assert jane.last_name == "Doe"
        assert jane.klaviyo_segments == ["VIP"]
        assert jane.tags == ["vip", "repeat"]

    def test_match_customers_returns_list(self, settings, both_live):
        customers = _run(DataSyncEngine(settings).match_customers())
        assert len(customers) == 3

    def test_degrades_to_fallback_sources(self, settings, commerce_down, march_range):
        report = _run(DataSyncEngine(settings).match_customers_report(march_range))

        assert report.sources == {"email_platform": "live", "commerce_platform": "fallback"}
        assert "customer@example.com" in [c.email for c in report.customers]

    def test_churn_threshold_from_settings(self, settings, both_live, march_range):
        settings.churn_risk_threshold = 0
        report = _run(DataSyncEngine(settings).match_customers_report(march_range))

        reader = next(c for c in report.customers if c.email == "reader@example.com")
        assert reader.risk_score > 0
        assert reader.predicted_churn is True


class TestRevenueAttribution:

    def test_live_attribution(self, settings, both_live, march_range):
        result = _run(DataSyncEngine(settings).calculate_revenue_attribution(march_range))

        assert result.email_revenue == 1000.0
        assert result.total_revenue == 4000.0
        assert result.attribution_rate == pytest.approx(25.0)
        assert result.direct_attribution == pytest.approx(700.0)
        assert result.assisted_attribution == pytest.approx(300.0)
        assert [(c.campaign_id, c.orders) for c in result.campaigns] == [("cmp1", 2)]

    def test_window_from_settings(self, settings, both_live, march_range):
        settings.attribution_window_days = 1
        result = _run(DataSyncEngine(settings).calculate_revenue_attribution(march_range))

        # only o1 (22h after the send) is inside a one-day window
        assert result.direct_attribution == pytest.approx(400.0)
        assert result.window_days == 1

    def test_platform_failure_propagates(self, settings, commerce_down, march_range):
        with pytest.raises(ConnectorError):
            _run(DataSyncEngine(settings).calculate_revenue_attribution(march_range))


class TestConnections:

    def test_both_reachable(self, settings, both_live):
        status = _run(DataSyncEngine(settings).test_connections())
        assert (status.email_platform, status.commerce_platform) == (True, True)

    def test_unreachable_platforms_report_false(self, settings, both_down):
        status = _run(DataSyncEngine(settings).test_connections())
        assert (status.email_platform, status.commerce_platform) == (False, False)

    def test_never_raises(self, settings):
        email = KlaviyoConnector(settings)
        commerce = TripleWhaleConnector(settings)
        email.test_connection = AsyncMock(side_effect=RuntimeError("unexpected"))
        commerce.test_connection = AsyncMock(return_value=True)

        status = _run(DataSyncEngine(settings, email, commerce).test_connections())

        assert status.email_platform is False
        assert status.commerce_platform is True


class TestSyncAll:

    def test_full_snapshot(self, settings, both_live, march_range):
        snapshot = _run(DataSyncEngine(settings).sync_all_data(march_range))

        assert snapshot.klaviyo_metrics.source == "live"
        assert snapshot.triple_whale_metrics.source == "live"
        assert snapshot.customers.matched == 1
        assert snapshot.revenue_attribution.direct_attribution == pytest.approx(700.0)
        assert snapshot.attribution_error is None

    def test_attribution_failure_is_reported_not_raised(self, settings, commerce_down, march_range):
        snapshot = _run(DataSyncEngine(settings).sync_all_data(march_range))

        assert snapshot.triple_whale_metrics.source == "fallback"
        assert snapshot.klaviyo_metrics.source == "live"
        assert snapshot.revenue_attribution is None
        assert "connection refused" in snapshot.attribution_error

    def test_default_range(self, settings, both_down):
        snapshot = _run(DataSyncEngine(settings).sync_all_data())
        assert snapshot.customers.sources["email_platform"] == "fallback"

    def test_each_dataset_fetched_once(self, settings, both_live, march_range):
        _run(DataSyncEngine(settings).sync_all_data(march_range))

        klaviyo_paths = [call.args[1] for call in KlaviyoConnector._request.call_args_list]
        triple_whale_paths = [call.args[1] for call in TripleWhaleConnector._request.call_args_list]
        assert sorted(klaviyo_paths) == sorted([
            "/profiles/", "/campaigns/", "/metrics/", "/campaign-values-reports/", "/flows/"
        ])
        assert sorted(triple_whale_paths) == ["/customers", "/orders"]

    def test_attribution_withheld_when_email_metrics_are_fallback(self, settings, klaviyo_api, triple_whale_api, march_range):
        async def profiles_down(method, path, params=None, json=None):
            if path == "/profiles/":
                raise ConnectorError("profiles unavailable", 503)
            return await klaviyo_api(method, path, params=params, json=json)

        with patch.object(KlaviyoConnector, "_request", new=AsyncMock(side_effect=profiles_down)), \
                patch.object(TripleWhaleConnector, "_request", new=AsyncMock(side_effect=triple_whale_api)):
            snapshot = _run(DataSyncEngine(settings).sync_all_data(march_range))

        assert snapshot.klaviyo_metrics.source == "fallback"
        assert snapshot.triple_whale_metrics.source == "live"
        assert snapshot.customers.sources["email_platform"] == "fallback"
        assert snapshot.revenue_attribution is None
        assert "profiles unavailable" in snapshot.attribution_error

    def test_live_snapshot_matches_standalone_reads(self, settings, both_live, march_range):
        engine = DataSyncEngine(settings)
        snapshot = _run(engine.sync_all_data(march_range))
        email_metrics = _run(engine.email_connector.get_metrics(march_range))
        attribution = _run(engine.calculate_revenue_attribution(march_range))

        assert snapshot.klaviyo_metrics.data == email_metrics.data
        assert snapshot.revenue_attribution == attribution
