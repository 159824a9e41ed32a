"""
Engagement and churn-risk scoring tests.

Pure computation, no network.
"""
import pytest

from app.models.klaviyo import EmailEngagement
from app.services.scoring import ScoreCalculator, ScoringRules
from app.utils.helpers import round_half_up


@pytest.fixture
def calc():
    return ScoreCalculator()


class TestEngagementScore:

    def test_commerce_only_customer(self, calc):
        """No email data: purchase component capped at 100, weighted 60%."""
        assert calc.engagement_score(None, 10, 500.0) == 60

    def test_blends_email_and_purchase(self, calc):
        engagement = EmailEngagement(open_rate=50.0, click_rate=10.0)
        # email = 50*0.6 + 10*0.4 = 34; purchase = 2*10 + 100/10 = 30
        # 34*0.4 + 30*0.6 = 13.6 + 18 = 31.6
        assert calc.engagement_score(engagement, 2, 100.0) == 32

    def test_rounds_half_up(self):
        assert round_half_up(59.5) == 60
        assert round_half_up(2.5) == 3
        assert round_half_up(2.49) == 2

    def test_never_exceeds_100(self, calc):
        engagement = EmailEngagement(open_rate=100.0, click_rate=100.0)
        assert calc.engagement_score(engagement, 50, 10000.0) == 100

    def test_zero_everything(self, calc):
        assert calc.engagement_score(EmailEngagement(), 0, 0.0) == 0


class TestRiskScore:

    def test_disengaged_subscriber_without_orders(self, calc):
        engagement = EmailEngagement(open_rate=0.0, click_rate=0.0)
        risk = calc.risk_score(engagement, 0, 0.0)
        assert risk == 90
        assert calc.predicted_churn(risk) is True

    @pytest.mark.parametrize("orders,expected", [(0, 40), (1, 25), (2, 10), (4, 10), (5, 0), (12, 0)])
    def test_order_frequency_points(self, calc, orders, expected):
        # engaged and high spend, so only the order component contributes
        engagement = EmailEngagement(open_rate=50.0, click_rate=5.0)
        assert calc.risk_score(engagement, orders, 1000.0) == expected

    def test_open_rate_tiers(self, calc):
        assert calc.risk_score(EmailEngagement(open_rate=9.9, click_rate=5.0), 5, 1000.0) == 20
        assert calc.risk_score(EmailEngagement(open_rate=10.0, click_rate=5.0), 5, 1000.0) == 10
        assert calc.risk_score(EmailEngagement(open_rate=25.0, click_rate=5.0), 5, 1000.0) == 0

    def test_low_click_rate(self, calc):
        assert calc.risk_score(EmailEngagement(open_rate=50.0, click_rate=1.9), 5, 1000.0) == 15

    def test_no_engagement_data_adds_no_email_points(self, calc):
        assert calc.risk_score(None, 5, 1000.0) == 0
        assert calc.risk_score(None, 0, 0.0) == 55

    def test_spend_tiers(self, calc):
        engagement = EmailEngagement(open_rate=50.0, click_rate=5.0)
        assert calc.risk_score(engagement, 5, 49.99) == 15
        assert calc.risk_score(engagement, 5, 50.0) == 5
        assert calc.risk_score(engagement, 5, 100.0) == 0


class TestChurnPrediction:

    def test_threshold_is_strict(self, calc):
        assert calc.predicted_churn(70) is False
        assert calc.predicted_churn(71) is True

    def test_custom_threshold(self):
        calc = ScoreCalculator(ScoringRules(churn_threshold=50))
        assert calc.predicted_churn(55) is True
