"""
Cross-platform customer matching

Joins Klaviyo profiles and Triple Whale customers on email address
(case-insensitive) into one UnifiedCustomer per distinct email.
"""
from typing import Dict, List, Optional, Sequence, Set

from app.models.klaviyo import EmailEngagement, KlaviyoProfile
from app.models.triple_whale import TripleWhaleCustomer
from app.models.unified import UnifiedCustomer
from app.services.scoring import ScoreCalculator
from app.utils.logger import log


def email_key(email: Optional[str]) -> Optional[str]:
    """Join key for an email, or None when the record cannot be matched"""
    if not email:
        return None
    key = email.strip().lower()
    return key or None


def _scored(customer: UnifiedCustomer, calculator: ScoreCalculator) -> UnifiedCustomer:
    customer.engagement_score = calculator.engagement_score(
        customer.email_engagement, customer.order_count, customer.average_order_value
    )
    customer.risk_score = calculator.risk_score(
        customer.email_engagement, customer.order_count, customer.total_spent
    )
    customer.predicted_churn = calculator.predicted_churn(customer.risk_score)
    return customer


def match_customers(
    profiles: Sequence[KlaviyoProfile],
    customers: Sequence[TripleWhaleCustomer],
    calculator: Optional[ScoreCalculator] = None
) -> List[UnifiedCustomer]:
    """
    Build the unified customer set.

    Profiles are processed first: their name fields win and they carry the
    email engagement. Commerce customers with no profile follow, without
    engagement data. Records with an empty email are skipped. The email
    casing of the first record seen is kept.
    """
    calculator = calculator or ScoreCalculator()

    commerce_by_email: Dict[str, TripleWhaleCustomer] = {}
    for customer in customers:
        key = email_key(customer.email)
        if key and key not in commerce_by_email:
            commerce_by_email[key] = customer

    unified: List[UnifiedCustomer] = []
    processed: Set[str] = set()
    matched = 0

    for profile in profiles:
        key = email_key(profile.email)
        if not key or key in processed:
            continue
        processed.add(key)

        commerce = commerce_by_email.get(key)
        if commerce is not None:
            matched += 1

        unified.append(_scored(UnifiedCustomer(
            email=profile.email.strip(),
            klaviyo_id=profile.id,
            triple_whale_id=commerce.id if commerce else None,
            first_name=profile.first_name or (commerce.first_name if commerce else None),
            last_name=profile.last_name or (commerce.last_name if commerce else None),
            klaviyo_segments=list(profile.segments),
            email_engagement=profile.engagement or EmailEngagement(),
            total_spent=commerce.total_spent if commerce else 0.0,
            order_count=commerce.orders_count if commerce else 0,
            average_order_value=commerce.average_order_value if commerce else 0.0,
            lifetime_value=commerce.total_spent if commerce else 0.0,
            accepts_marketing=commerce.accepts_marketing if commerce else False,
            tags=list(commerce.tags) if commerce else [],
        ), calculator))

    for customer in customers:
        key = email_key(customer.email)
        if not key or key in processed:
            continue
        processed.add(key)

        unified.append(_scored(UnifiedCustomer(
            email=customer.email.strip(),
            triple_whale_id=customer.id,
            first_name=customer.first_name,
            last_name=customer.last_name,
            email_engagement=None,
            total_spent=customer.total_spent,
            order_count=customer.orders_count,
            average_order_value=customer.average_order_value,
            lifetime_value=customer.total_spent,
            accepts_marketing=customer.accepts_marketing,
            tags=list(customer.tags),
        ), calculator))

    log.info(
        f"Matched {len(unified)} unified customers "
        f"({matched} on both platforms) from {len(profiles)} profiles and {len(customers)} customers"
    )
    return unified


def count_cross_platform(customers: Sequence[UnifiedCustomer]) -> int:
    """Customers that have a record on both platforms"""
    return sum(1 for c in customers if c.klaviyo_id and c.triple_whale_id)
