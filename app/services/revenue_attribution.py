"""
Email revenue attribution

Splits Klaviyo-reported email revenue into revenue directly traceable to a
campaign (orders shortly after a send that carry the email channel tag or
the campaign's UTM name) and the assisted remainder.
"""
from datetime import timedelta
from typing import List, Sequence

from app.models.klaviyo import KlaviyoCampaign
from app.models.triple_whale import TripleWhaleOrder
from app.models.unified import CampaignAttribution, RevenueAttribution
from app.utils.helpers import safe_divide

DEFAULT_WINDOW_DAYS = 7
DEFAULT_EMAIL_SOURCE = "klaviyo"


def is_email_order(order: TripleWhaleOrder, campaign: KlaviyoCampaign, email_source: str) -> bool:
    """Order carries the email channel tag, or the campaign's own UTM name"""
    if order.source and order.source.strip().lower() == email_source.lower():
        return True
    return order.campaign is not None and order.campaign == campaign.name


def attributed_orders(
    campaign: KlaviyoCampaign,
    orders: Sequence[TripleWhaleOrder],
    window_days: int = DEFAULT_WINDOW_DAYS,
    email_source: str = DEFAULT_EMAIL_SOURCE
) -> List[TripleWhaleOrder]:
    """Email orders placed after the send and no later than window_days after it"""
    if campaign.sent_at is None:
        return []

    window_end = campaign.sent_at + timedelta(days=window_days)
    return [
        order for order in orders
        if order.created_at is not None
        and campaign.sent_at < order.created_at <= window_end
        and is_email_order(order, campaign, email_source)
    ]


def compute_revenue_attribution(
    campaigns: Sequence[KlaviyoCampaign],
    orders: Sequence[TripleWhaleOrder],
    email_revenue: float,
    total_revenue: float,
    window_days: int = DEFAULT_WINDOW_DAYS,
    email_source: str = DEFAULT_EMAIL_SOURCE
) -> RevenueAttribution:
    """
    Attribute revenue to campaigns.

    An order inside the windows of several campaigns counts for each of
    them. assisted_attribution is not clamped: a negative value means
    per-campaign matching found more revenue than the platform reports.
    """
    campaign_attributions = []
    for campaign in campaigns:
        matches = attributed_orders(campaign, orders, window_days, email_source)
        campaign_attributions.append(CampaignAttribution(
            campaign_id=campaign.id,
            campaign_name=campaign.name,
            sent_at=campaign.sent_at,
            revenue=sum(order.total for order in matches),
            orders=len(matches),
            attribution_type="direct",
        ))

    direct = sum(attribution.revenue for attribution in campaign_attributions)

    return RevenueAttribution(
        email_revenue=email_revenue,
        total_revenue=total_revenue,
        attribution_rate=safe_divide(email_revenue, total_revenue) * 100,
        direct_attribution=direct,
        assisted_attribution=email_revenue - direct,
        campaigns=campaign_attributions,
        window_days=window_days,
    )
