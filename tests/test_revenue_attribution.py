"""
Email revenue attribution tests.
"""
from datetime import datetime, timedelta, timezone

import pytest

from app.models.klaviyo import KlaviyoCampaign
from app.models.triple_whale import TripleWhaleOrder
from app.services.revenue_attribution import attributed_orders, compute_revenue_attribution, is_email_order

SENT = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


def _campaign(cid="cmp1", name="Spring Sale", sent_at=SENT):
    return KlaviyoCampaign(id=cid, name=name, status="sent", sent_at=sent_at)


def _order(oid, total, created_at, source="klaviyo", campaign=None):
    return TripleWhaleOrder(id=oid, total=total, created_at=created_at, source=source, campaign=campaign)


class TestWindow:

    def test_window_excludes_send_instant_and_includes_end(self):
        campaign = _campaign()
        orders = [
            _order("at-send", 10.0, SENT),
            _order("just-after", 20.0, SENT + timedelta(seconds=1)),
            _order("window-end", 30.0, SENT + timedelta(days=7)),
            _order("too-late", 40.0, SENT + timedelta(days=7, seconds=1)),
            _order("before", 50.0, SENT - timedelta(hours=1)),
        ]

        matched = attributed_orders(campaign, orders)

        assert [o.id for o in matched] == ["just-after", "window-end"]

    def test_custom_window(self):
        orders = [_order("o1", 10.0, SENT + timedelta(days=2))]
        assert attributed_orders(_campaign(), orders, window_days=1) == []

    def test_unsent_campaign_gets_nothing(self):
        orders = [_order("o1", 10.0, SENT + timedelta(days=1))]
        assert attributed_orders(_campaign(sent_at=None), orders) == []

    def test_order_without_timestamp_is_ignored(self):
        assert attributed_orders(_campaign(), [_order("o1", 10.0, None)]) == []


class TestEmailOrder:

    def test_source_marker_is_case_insensitive(self):
        assert is_email_order(_order("o1", 1.0, SENT, source="Klaviyo"), _campaign(), "klaviyo")

    def test_utm_campaign_matches_campaign_name(self):
        order = _order("o1", 1.0, SENT, source="web", campaign="Spring Sale")
        assert is_email_order(order, _campaign(), "klaviyo")

    def test_other_channel_is_not_email(self):
        order = _order("o1", 1.0, SENT, source="facebook", campaign="Other")
        assert not is_email_order(order, _campaign(), "klaviyo")


class TestComputeAttribution:

    def test_direct_and_assisted_split(self):
        orders = [
            _order("o1", 400.0, SENT + timedelta(days=1)),
            _order("o2", 300.0, SENT + timedelta(days=3)),
            _order("o3", 999.0, SENT + timedelta(days=3), source="google"),
        ]

        result = compute_revenue_attribution([_campaign()], orders, email_revenue=1000.0, total_revenue=4000.0)

        assert result.direct_attribution == pytest.approx(700.0)
        assert result.assisted_attribution == pytest.approx(300.0)
        assert result.attribution_rate == pytest.approx(25.0)
        assert result.campaigns[0].orders == 2
        assert result.campaigns[0].revenue == pytest.approx(700.0)
        assert result.campaigns[0].attribution_type == "direct"

    def test_zero_total_revenue_gives_zero_rate(self):
        result = compute_revenue_attribution([], [], email_revenue=500.0, total_revenue=0.0)
        assert result.attribution_rate == 0
        assert result.assisted_attribution == 500.0

    def test_assisted_can_go_negative(self):
        orders = [_order("o1", 800.0, SENT + timedelta(days=1))]
        result = compute_revenue_attribution([_campaign()], orders, email_revenue=500.0, total_revenue=1000.0)
        assert result.assisted_attribution == pytest.approx(-300.0)

    def test_order_counts_for_every_overlapping_campaign(self):
        campaigns = [_campaign("c1", "A"), _campaign("c2", "B", sent_at=SENT + timedelta(days=1))]
        orders = [_order("o1", 100.0, SENT + timedelta(days=2))]

        result = compute_revenue_attribution(campaigns, orders, email_revenue=100.0, total_revenue=100.0)

        assert [c.revenue for c in result.campaigns] == [100.0, 100.0]
        assert result.direct_attribution == pytest.approx(200.0)

    def test_one_entry_per_campaign_and_window_reported(self):
        campaigns = [_campaign("c1", "A"), _campaign("c2", "B", sent_at=None)]
        result = compute_revenue_attribution(campaigns, [], 0.0, 0.0, window_days=3)

        assert [c.campaign_id for c in result.campaigns] == ["c1", "c2"]
        assert result.window_days == 3
