"""
Klaviyo data connector
Fetches profiles, email campaigns, flows, segments and account metrics
"""
from typing import Any, Dict, Iterable, List, Optional, Tuple
import asyncio

from app.config import Settings
from app.connectors.base_connector import BaseConnector, ConnectorError
from app.models.common import ApiResponse, DateRange
from app.models.klaviyo import (
    EmailEngagement,
    KlaviyoCampaign,
    KlaviyoFlow,
    KlaviyoMetrics,
    KlaviyoProfile,
    KlaviyoSegment,
)
from app.utils.helpers import parse_datetime, safe_divide, to_float, to_int
from app.utils.logger import log

CAMPAIGN_STATISTICS = [
    "recipients",
    "opens",
    "clicks",
    "open_rate",
    "click_rate",
]
# Only requested when a conversion metric is known
CONVERSION_STATISTICS = ["conversions", "conversion_value"]
CONVERSION_METRIC_NAME = "Placed Order"

ACTIVE_FLOW_STATUSES = {"live", "active"}


# ---------------------------------------------------------------------------
# Normalization (vendor JSON:API resources -> internal models)
# ---------------------------------------------------------------------------

def _attributes(resource: Dict[str, Any]) -> Dict[str, Any]:
    attrs = resource.get("attributes")
    return attrs if isinstance(attrs, dict) else {}


def _related(resource: Dict[str, Any], name: str) -> List[Dict[str, Any]]:
    relationships = resource.get("relationships")
    relation = relationships.get(name) if isinstance(relationships, dict) else None
    refs = relation.get("data") if isinstance(relation, dict) else None
    return [ref for ref in refs if isinstance(ref, dict)] if isinstance(refs, list) else []


def _resources(payload: Dict[str, Any], key: str = "data") -> List[Dict[str, Any]]:
    items = payload.get(key)
    if not isinstance(items, list):
        return []
    return [item for item in items if isinstance(item, dict) and item.get("id") is not None]


def normalize_profile(resource: Dict[str, Any], segment_names: Optional[Dict[str, str]] = None) -> KlaviyoProfile:
    """
    Map a Klaviyo profile resource.

    Engagement rates are read as 0-100 values from `attributes.engagement`,
    falling back to custom profile properties of the same names.
    """
    attrs = _attributes(resource)
    properties = attrs.get("properties") if isinstance(attrs.get("properties"), dict) else {}
    engagement = attrs.get("engagement") if isinstance(attrs.get("engagement"), dict) else {}
    segment_names = segment_names or {}

    segments = [
        segment_names.get(str(ref["id"]), str(ref["id"]))
        for ref in _related(resource, "segments")
        if ref.get("id")
    ]

    return KlaviyoProfile(
        id=str(resource["id"]),
        email=attrs.get("email") or None,
        first_name=attrs.get("first_name") or None,
        last_name=attrs.get("last_name") or None,
        segments=segments,
        engagement=EmailEngagement(
            open_rate=to_float(engagement.get("open_rate", properties.get("open_rate"))),
            click_rate=to_float(engagement.get("click_rate", properties.get("click_rate"))),
            last_engaged=parse_datetime(attrs.get("last_event_date") or properties.get("last_engaged")),
        ),
    )


def normalize_campaign(resource: Dict[str, Any], stats: Optional[Dict[str, float]] = None) -> KlaviyoCampaign:
    """Map a campaign resource plus its aggregated report statistics"""
    attrs = _attributes(resource)
    stats = stats or {}

    recipients = to_int(stats.get("recipients"))
    conversions = to_int(stats.get("conversions"))

    return KlaviyoCampaign(
        id=str(resource["id"]),
        name=attrs.get("name") or "Untitled Campaign",
        subject=attrs.get("subject_line") or attrs.get("subject"),
        status=str(attrs.get("status") or "draft").lower(),
        sent_at=parse_datetime(attrs.get("send_time")),
        recipients=recipients,
        opens=to_int(stats.get("opens")),
        clicks=to_int(stats.get("clicks")),
        conversions=conversions,
        revenue=to_float(stats.get("revenue")),
        open_rate=to_float(stats.get("open_rate")),
        click_rate=to_float(stats.get("click_rate")),
        conversion_rate=safe_divide(conversions, recipients) * 100,
    )


def normalize_flow(resource: Dict[str, Any]) -> KlaviyoFlow:
    attrs = _attributes(resource)
    statistics = attrs.get("statistics") if isinstance(attrs.get("statistics"), dict) else {}
    return KlaviyoFlow(
        id=str(resource["id"]),
        name=attrs.get("name") or "Untitled Flow",
        status=str(attrs.get("status") or "draft").lower(),
        emails=len(_related(resource, "flow-actions")),
        revenue=to_float(statistics.get("revenue")),
        conversion_rate=to_float(statistics.get("conversion_rate")),
        subscribers=to_int(statistics.get("subscriber_count")),
    )


def normalize_segment(resource: Dict[str, Any]) -> KlaviyoSegment:
    attrs = _attributes(resource)
    count = to_int(attrs.get("profile_count"))
    return KlaviyoSegment(
        id=str(resource["id"]),
        name=attrs.get("name") or "Untitled Segment",
        count=count,
        estimated_count=to_int(attrs.get("estimated_count"), count),
        is_processing=bool(attrs.get("is_processing", False)),
    )


def aggregate_campaign_statistics(results: Iterable[Dict[str, Any]]) -> Dict[str, Dict[str, float]]:
    """
    Fold campaign-values-report rows into per-campaign totals.

    A campaign can report one row per message; counts are summed and the
    fractional rates are recipient-weighted, then scaled to 0-100.
    """
    totals: Dict[str, Dict[str, float]] = {}

    for row in results:
        if not isinstance(row, dict):
            continue
        campaign_id = (row.get("groupings") or {}).get("campaign_id")
        statistics = row.get("statistics") or {}
        if not campaign_id or not isinstance(statistics, dict):
            continue

        entry = totals.setdefault(str(campaign_id), {
            "recipients": 0.0, "opens": 0.0, "clicks": 0.0, "conversions": 0.0,
            "revenue": 0.0, "_open_weight": 0.0, "_click_weight": 0.0,
        })
        recipients = to_float(statistics.get("recipients"))
        entry["recipients"] += recipients
        entry["opens"] += to_float(statistics.get("opens"))
        entry["clicks"] += to_float(statistics.get("clicks"))
        entry["conversions"] += to_float(statistics.get("conversions"))
        entry["revenue"] += to_float(statistics.get("conversion_value", statistics.get("revenue")))
        entry["_open_weight"] += to_float(statistics.get("open_rate")) * recipients
        entry["_click_weight"] += to_float(statistics.get("click_rate")) * recipients

    for entry in totals.values():
        entry["open_rate"] = safe_divide(entry.pop("_open_weight"), entry["recipients"]) * 100
        entry["click_rate"] = safe_divide(entry.pop("_click_weight"), entry["recipients"]) * 100

    return totals


def summarize_metrics(
    profiles: List[KlaviyoProfile],
    campaigns: List[KlaviyoCampaign],
    flows: List[KlaviyoFlow]
) -> KlaviyoMetrics:
    """Roll sent campaigns in the window up into account-level metrics"""
    sent = [c for c in campaigns if c.status == "sent"]
    recipients = sum(c.recipients for c in sent)
    opens = sum(c.opens for c in sent)
    clicks = sum(c.clicks for c in sent)
    conversions = sum(c.conversions for c in sent)
    email_revenue = sum(c.revenue for c in sent)

    return KlaviyoMetrics(
        total_revenue=email_revenue,
        email_revenue=email_revenue,
        subscribers=len(profiles),
        open_rate=safe_divide(opens, recipients) * 100,
        click_rate=safe_divide(clicks, recipients) * 100,
        conversion_rate=safe_divide(conversions, recipients) * 100,
        active_flows=sum(1 for f in flows if f.status in ACTIVE_FLOW_STATUSES),
        total_campaigns=len(campaigns),
        average_order_value=safe_divide(email_revenue, conversions),
    )


# ---------------------------------------------------------------------------
# Fallback values (served, tagged "fallback", when a read fails)
# ---------------------------------------------------------------------------

def fallback_profiles() -> List[KlaviyoProfile]:
    return [
        KlaviyoProfile(
            id="profile_fallback_1",
            email="subscriber@example.com",
            first_name="Example",
            last_name="Subscriber",
            segments=["Active Subscribers"],
            engagement=EmailEngagement(open_rate=35.0, click_rate=4.5),
        )
    ]


def fallback_campaigns() -> List[KlaviyoCampaign]:
    return [
        KlaviyoCampaign(
            id="campaign_fallback_1",
            name="Example Campaign",
            subject="Example subject line",
            status="sent",
            recipients=2500,
            opens=875,
            clicks=112,
            conversions=25,
            revenue=3250.0,
            open_rate=35.0,
            click_rate=4.48,
            conversion_rate=1.0,
        )
    ]


def fallback_flows() -> List[KlaviyoFlow]:
    return [
        KlaviyoFlow(
            id="flow_fallback_1",
            name="Example Welcome Flow",
            status="live",
            emails=5,
            revenue=8500.75,
            conversion_rate=12.5,
            subscribers=1850,
        )
    ]


def fallback_segments() -> List[KlaviyoSegment]:
    return [
        KlaviyoSegment(id="segment_fallback_1", name="Active Subscribers", count=2450, estimated_count=2500)
    ]


def fallback_metrics() -> KlaviyoMetrics:
    return KlaviyoMetrics(
        total_revenue=12500.0,
        email_revenue=12500.0,
        subscribers=2450,
        open_rate=32.5,
        click_rate=3.8,
        conversion_rate=1.2,
        active_flows=4,
        total_campaigns=12,
        average_order_value=85.0,
    )


class KlaviyoConnector(BaseConnector):
    """Connector for Klaviyo email marketing platform"""

    def __init__(self, settings: Settings):
        super().__init__("Klaviyo", settings)
        self.base_url = settings.klaviyo_base_url.rstrip("/")
        self.headers = {
            "Authorization": f"Klaviyo-API-Key {settings.klaviyo_api_key}",
            "revision": settings.klaviyo_revision,
            "Accept": "application/json",
            "Content-Type": "application/json",
        }

    async def test_connection(self) -> bool:
        """Test Klaviyo API connection"""
        try:
            await self._request("GET", "/accounts/")
            log.info("Connected to Klaviyo API")
            return True
        except ConnectorError as e:
            log.error(f"Klaviyo connection test failed: {e}")
            return False

    # Public read operations ------------------------------------------------

    async def get_profiles(self, allow_fallback: bool = True) -> ApiResponse[List[KlaviyoProfile]]:
        """
        Every profile, up to klaviyo_max_pages pages.

        Takes no date range: subscribers are not filtered by activity window,
        so the same list backs every reporting period.
        """
        return await self._respond("get_profiles", self._fetch_profiles, fallback_profiles, allow_fallback)

    async def get_campaigns(
        self, date_range: Optional[DateRange] = None, allow_fallback: bool = True
    ) -> ApiResponse[List[KlaviyoCampaign]]:
        return await self._respond(
            "get_campaigns", lambda: self._fetch_campaigns(date_range), fallback_campaigns, allow_fallback
        )

    async def get_flows(self, allow_fallback: bool = True) -> ApiResponse[List[KlaviyoFlow]]:
        return await self._respond("get_flows", self._fetch_flows, fallback_flows, allow_fallback)

    async def get_segments(self, allow_fallback: bool = True) -> ApiResponse[List[KlaviyoSegment]]:
        return await self._respond("get_segments", self._fetch_segments, fallback_segments, allow_fallback)

    async def get_metrics(self, date_range: DateRange, allow_fallback: bool = True) -> ApiResponse[KlaviyoMetrics]:
        return await self._respond(
            "get_metrics", lambda: self._fetch_metrics(date_range), fallback_metrics, allow_fallback
        )

    def metrics_from(
        self,
        profiles: ApiResponse[List[KlaviyoProfile]],
        campaigns: ApiResponse[List[KlaviyoCampaign]],
        flows: ApiResponse[List[KlaviyoFlow]]
    ) -> ApiResponse[KlaviyoMetrics]:
        """Same figures as get_metrics, computed from responses already in hand"""
        return self._derive(
            "get_metrics",
            (profiles, campaigns, flows),
            lambda: summarize_metrics(profiles.data, campaigns.data, flows.data),
            fallback_metrics,
        )

    # Raw fetchers (raise on failure) ---------------------------------------

    async def _paginate(self, path: str, params: Optional[Dict[str, Any]] = None) -> Tuple[List[Dict], List[Dict]]:
        """Follow `links.next` up to klaviyo_max_pages; returns (data, included)"""
        data: List[Dict] = []
        included: List[Dict] = []
        url: Optional[str] = path
        pages = 0

        while url and pages < self.settings.klaviyo_max_pages:
            payload = await self._request("GET", url, params=params if pages == 0 else None)
            data.extend(_resources(payload))
            included.extend(_resources(payload, "included"))
            pages += 1
            url = (payload.get("links") or {}).get("next")

        if url:
            log.warning(f"Klaviyo {path}: stopped after {pages} pages, more data available")
        return data, included

    async def _fetch_profiles(self) -> List[KlaviyoProfile]:
        resources, included = await self._paginate(
            "/profiles/", params={"page[size]": 100, "include": "segments"}
        )
        segment_names = {
            str(item["id"]): _attributes(item).get("name") or str(item["id"])
            for item in included
            if item.get("type") == "segment"
        }
        profiles = [normalize_profile(r, segment_names) for r in resources]
        log.info(f"Fetched {len(profiles)} profiles from Klaviyo")
        return profiles

    async def _fetch_campaigns(self, date_range: Optional[DateRange]) -> List[KlaviyoCampaign]:
        resources, _ = await self._paginate(
            "/campaigns/", params={"filter": "equals(messages.channel,'email')", "sort": "-created_at"}
        )

        if date_range is not None:
            resources = [r for r in resources if date_range.contains(parse_datetime(_attributes(r).get("send_time")))]

        sent_ids = [str(r["id"]) for r in resources if str(_attributes(r).get("status") or "").lower() == "sent"]
        statistics = await self._fetch_campaign_statistics(sent_ids, date_range) if sent_ids else {}

        campaigns = [normalize_campaign(r, statistics.get(str(r["id"]))) for r in resources]
        log.info(f"Fetched {len(campaigns)} campaigns from Klaviyo")
        return campaigns

    async def _fetch_campaign_statistics(
        self, campaign_ids: List[str], date_range: Optional[DateRange]
    ) -> Dict[str, Dict[str, float]]:
        """One reporting call for all campaigns, grouped by campaign id"""
        if date_range is not None:
            timeframe: Dict[str, Any] = {
                "value": {"start": date_range.start.isoformat(), "end": date_range.end.isoformat()}
            }
        else:
            timeframe = {"key": "last_12_months"}

        id_list = ",".join(f'"{cid}"' for cid in campaign_ids)
        attributes: Dict[str, Any] = {
            "statistics": list(CAMPAIGN_STATISTICS),
            "timeframe": timeframe,
            "filter": f"contains-any(campaign_id,[{id_list}])",
        }

        conversion_metric_id = await self._resolve_conversion_metric_id()
        if conversion_metric_id:
            attributes["conversion_metric_id"] = conversion_metric_id
            attributes["statistics"] += CONVERSION_STATISTICS
        else:
            log.warning("No Klaviyo conversion metric found, skipping conversion statistics")

        payload = await self._request(
            "POST",
            "/campaign-values-reports/",
            json={"data": {"type": "campaign-values-report", "attributes": attributes}},
        )
        results = ((payload.get("data") or {}).get("attributes") or {}).get("results") or []
        return aggregate_campaign_statistics(results)

    async def _resolve_conversion_metric_id(self) -> Optional[str]:
        """Configured metric id, else the account's "Placed Order" metric, else its first metric"""
        if self.settings.klaviyo_conversion_metric_id:
            return self.settings.klaviyo_conversion_metric_id

        payload = await self._request("GET", "/metrics/")
        metrics = _resources(payload)
        for metric in metrics:
            if _attributes(metric).get("name") == CONVERSION_METRIC_NAME:
                return str(metric["id"])
        return str(metrics[0]["id"]) if metrics else None

    async def _fetch_flows(self) -> List[KlaviyoFlow]:
        resources, _ = await self._paginate("/flows/", params={"page[size]": 50})
        flows = [normalize_flow(r) for r in resources]
        log.info(f"Fetched {len(flows)} flows from Klaviyo")
        return flows

    async def _fetch_segments(self) -> List[KlaviyoSegment]:
        resources, _ = await self._paginate("/segments/", params={"additional-fields[segment]": "profile_count"})
        segments = [normalize_segment(r) for r in resources]
        log.info(f"Fetched {len(segments)} segments from Klaviyo")
        return segments

    async def _fetch_metrics(self, date_range: DateRange) -> KlaviyoMetrics:
        profiles, campaigns, flows = await asyncio.gather(
            self._fetch_profiles(),
            self._fetch_campaigns(date_range),
            self._fetch_flows(),
        )
        metrics = summarize_metrics(profiles, campaigns, flows)
        log.info(
            f"Klaviyo metrics: {metrics.total_campaigns} campaigns, "
            f"email revenue {metrics.email_revenue:.2f}"
        )
        return metrics
