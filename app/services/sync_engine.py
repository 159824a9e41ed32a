"""
Data Sync Engine

Request-scoped orchestration over both platforms: fetches run concurrently,
then the pure matching / attribution logic combines them. Nothing is kept
between calls.
"""
from typing import List, Optional
import asyncio

from app.config import Settings, get_settings
from app.connectors import KlaviyoConnector, TripleWhaleConnector, get_commerce_connector
from app.models.common import ApiResponse, DateRange
from app.models.unified import (
    ConnectionStatus,
    CustomerMatchReport,
    DashboardSnapshot,
    RevenueAttribution,
    UnifiedCustomer,
)
from app.services.customer_matcher import count_cross_platform, match_customers
from app.services.revenue_attribution import compute_revenue_attribution
from app.services.scoring import ScoreCalculator, ScoringRules
from app.utils.logger import log


class DataSyncEngine:
    """Combines Klaviyo and Triple Whale data into dashboard aggregates"""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        email_connector: Optional[KlaviyoConnector] = None,
        commerce_connector: Optional[TripleWhaleConnector] = None
    ):
        self.settings = settings or get_settings()
        self.email_connector = email_connector or KlaviyoConnector(self.settings)
        self.commerce_connector = commerce_connector or get_commerce_connector(self.settings)
        self.calculator = ScoreCalculator(ScoringRules(churn_threshold=self.settings.churn_risk_threshold))

    def _resolve(self, date_range: Optional[DateRange]) -> DateRange:
        return date_range or DateRange.last_days(self.settings.default_lookback_days)

    async def match_customers(self, date_range: Optional[DateRange] = None) -> List[UnifiedCustomer]:
        """Unified customer list (one per distinct email)"""
        report = await self.match_customers_report(date_range)
        return report.customers

    async def match_customers_report(self, date_range: Optional[DateRange] = None) -> CustomerMatchReport:
        """
        Unified customers plus the provenance of each input list.

        Client reads degrade to fallback data here, so the report says which
        platform answered live.
        """
        date_range = self._resolve(date_range)
        log.info(f"Starting customer matching for {date_range.start.date()} to {date_range.end.date()}")

        profiles, customers = await asyncio.gather(
            self.email_connector.get_profiles(),
            self.commerce_connector.get_customers(date_range),
        )
        return self._match_report(profiles, customers)

    def _match_report(self, profiles: ApiResponse, customers: ApiResponse) -> CustomerMatchReport:
        unified = match_customers(profiles.data, customers.data, self.calculator)
        return CustomerMatchReport(
            customers=unified,
            sources={"email_platform": profiles.source, "commerce_platform": customers.source},
            matched=count_cross_platform(unified),
        )

    def _attribute(self, email_metrics, commerce_metrics, campaigns, orders) -> RevenueAttribution:
        attribution = compute_revenue_attribution(
            campaigns.data,
            orders.data,
            email_revenue=email_metrics.data.email_revenue,
            total_revenue=commerce_metrics.data.total_revenue,
            window_days=self.settings.attribution_window_days,
            email_source=self.settings.email_source_marker,
        )
        log.info(
            f"Attribution: direct {attribution.direct_attribution:.2f}, "
            f"assisted {attribution.assisted_attribution:.2f}, rate {attribution.attribution_rate:.1f}%"
        )
        return attribution

    async def calculate_revenue_attribution(self, date_range: DateRange) -> RevenueAttribution:
        """
        Attribute platform revenue to email campaigns.

        Raises ConnectorError if any of the four fetches fails; a blend of
        live and placeholder figures is never returned.
        """
        log.info(f"Calculating revenue attribution for {date_range.start.date()} to {date_range.end.date()}")

        email_metrics, commerce_metrics, campaigns, orders = await asyncio.gather(
            self.email_connector.get_metrics(date_range, allow_fallback=False),
            self.commerce_connector.get_metrics(date_range, allow_fallback=False),
            self.email_connector.get_campaigns(date_range, allow_fallback=False),
            self.commerce_connector.get_orders(date_range, allow_fallback=False),
        )
        return self._attribute(email_metrics, commerce_metrics, campaigns, orders)

    async def test_connections(self) -> ConnectionStatus:
        """Reachability of both platforms; never raises"""
        results = await asyncio.gather(
            self.email_connector.test_connection(),
            self.commerce_connector.test_connection(),
            return_exceptions=True,
        )
        email_ok, commerce_ok = (result is True for result in results)
        for platform, result in zip(("email", "commerce"), results):
            if isinstance(result, BaseException):
                log.error(f"Connection test for {platform} platform raised: {result}")
        return ConnectionStatus(email_platform=email_ok, commerce_platform=commerce_ok)

    async def sync_all_data(self, date_range: Optional[DateRange] = None) -> DashboardSnapshot:
        """
        Everything the overview page needs, from one fetch of each dataset.

        Metrics, the customer match and attribution all use the same
        responses. Attribution is left out, with the reason in
        `attribution_error`, unless every input it needs is live.
        """
        date_range = self._resolve(date_range)
        log.info(f"Syncing dashboard data for {date_range.start.date()} to {date_range.end.date()}")

        profiles, campaigns, flows, customers, orders = await asyncio.gather(
            self.email_connector.get_profiles(),
            self.email_connector.get_campaigns(date_range),
            self.email_connector.get_flows(),
            self.commerce_connector.get_customers(date_range),
            self.commerce_connector.get_orders(date_range),
        )
        email_metrics = self.email_connector.metrics_from(profiles, campaigns, flows)
        commerce_metrics = await self.commerce_connector.metrics_from(date_range, orders, customers)

        inputs = (email_metrics, commerce_metrics, campaigns, orders)
        attribution = None
        attribution_error = None
        if all(response.is_live for response in inputs):
            attribution = self._attribute(*inputs)
        else:
            attribution_error = "; ".join(r.error or "fallback data" for r in inputs if not r.is_live)
            log.warning(f"Revenue attribution unavailable: {attribution_error}")

        return DashboardSnapshot(
            klaviyo_metrics=email_metrics.model_dump(),
            triple_whale_metrics=commerce_metrics.model_dump(),
            customers=self._match_report(profiles, customers),
            revenue_attribution=attribution,
            attribution_error=attribution_error,
        )
