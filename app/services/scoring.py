"""
Customer Engagement & Churn-Risk Scoring

Deterministic heuristic scores shown directly on the dashboard:

- engagement_score (0-100): 40% email behaviour, 60% purchase behaviour
- risk_score (0-100): additive penalties for few orders, weak email
  engagement and low spend
- predicted_churn: risk_score strictly above the churn threshold

The point values are business rules, so they live in ScoringRules rather
than inline; the defaults are the dashboard's published rules.
"""
from dataclasses import dataclass
from typing import Optional

from app.models.klaviyo import EmailEngagement
from app.utils.helpers import clamp, round_half_up


@dataclass(frozen=True)
class ScoringRules:
    # Engagement score
    email_weight: float = 0.4
    purchase_weight: float = 0.6
    open_rate_weight: float = 0.6
    click_rate_weight: float = 0.4
    points_per_order: float = 10.0
    aov_divisor: float = 10.0
    purchase_cap: float = 100.0

    # Risk score: order frequency
    no_orders_risk: int = 40
    single_order_risk: int = 25
    few_orders_risk: int = 10
    few_orders_limit: int = 5  # 1 < orders < limit counts as "few"

    # Risk score: email engagement (only when engagement data exists)
    very_low_open_rate: float = 10.0
    very_low_open_rate_risk: int = 20
    low_open_rate: float = 25.0
    low_open_rate_risk: int = 10
    low_click_rate: float = 2.0
    low_click_rate_risk: int = 15

    # Risk score: spend
    very_low_spend: float = 50.0
    very_low_spend_risk: int = 15
    low_spend: float = 100.0
    low_spend_risk: int = 5

    churn_threshold: int = 70


DEFAULT_RULES = ScoringRules()


class ScoreCalculator:
    """Computes engagement and churn-risk scores for unified customers"""

    def __init__(self, rules: ScoringRules = DEFAULT_RULES):
        self.rules = rules

    def email_component(self, engagement: Optional[EmailEngagement]) -> float:
        """Blend of open and click rate (0-100); 0 without engagement data"""
        if engagement is None:
            return 0.0
        return engagement.open_rate * self.rules.open_rate_weight + engagement.click_rate * self.rules.click_rate_weight

    def purchase_component(self, order_count: int, average_order_value: float) -> float:
        return min(
            self.rules.purchase_cap,
            order_count * self.rules.points_per_order + average_order_value / self.rules.aov_divisor,
        )

    def engagement_score(
        self,
        engagement: Optional[EmailEngagement],
        order_count: int,
        average_order_value: float
    ) -> int:
        score = (
            self.email_component(engagement) * self.rules.email_weight
            + self.purchase_component(order_count, average_order_value) * self.rules.purchase_weight
        )
        return clamp(round_half_up(score))

    def risk_score(
        self,
        engagement: Optional[EmailEngagement],
        order_count: int,
        total_spent: float
    ) -> int:
        rules = self.rules
        risk = 0

        if order_count == 0:
            risk += rules.no_orders_risk
        elif order_count == 1:
            risk += rules.single_order_risk
        elif order_count < rules.few_orders_limit:
            risk += rules.few_orders_risk

        if engagement is not None:
            if engagement.open_rate < rules.very_low_open_rate:
                risk += rules.very_low_open_rate_risk
            elif engagement.open_rate < rules.low_open_rate:
                risk += rules.low_open_rate_risk
            if engagement.click_rate < rules.low_click_rate:
                risk += rules.low_click_rate_risk

        if total_spent < rules.very_low_spend:
            risk += rules.very_low_spend_risk
        elif total_spent < rules.low_spend:
            risk += rules.low_spend_risk

        return clamp(risk)

    def predicted_churn(self, risk_score: int) -> bool:
        return risk_score > self.rules.churn_threshold
