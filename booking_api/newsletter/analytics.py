# booking_api/newsletter/analytics.py
from datetime import datetime, timezone
from typing import Optional

from booking_api.newsletter.schemas import CampaignAnalytics, CampaignAnalyticsUpdate

_COUNT_FIELDS = (
    "total_recipients",
    "total_sent",
    "total_delivered",
    "total_opened",
    "total_clicked",
    "total_bounced",
    "total_unsubscribed",
)

def recompute_analytics(
    analytics: CampaignAnalytics, now: Optional[datetime] = None
) -> CampaignAnalytics:
    """
    Derive percentage rates (0-100) from the stored counts.

    With nothing sent yet the previous rates are kept rather than zeroed, so a
    count reset does not wipe historical figures. ``last_updated`` is stamped
    either way.
    """
    updates = {"last_updated": now or datetime.now(timezone.utc)}

    if analytics.total_sent > 0:
        sent = analytics.total_sent
        updates.update(
            open_rate=analytics.total_opened / sent * 100,
            click_rate=analytics.total_clicked / sent * 100,
            bounce_rate=analytics.total_bounced / sent * 100,
            unsubscribe_rate=analytics.total_unsubscribed / sent * 100,
        )

    return analytics.model_copy(update=updates)

def apply_analytics_delta(
    analytics: CampaignAnalytics, delta: CampaignAnalyticsUpdate
) -> CampaignAnalytics:
    """Add provider-reported count increments to the stored counts"""
    updates = {
        field: getattr(analytics, field) + getattr(delta, field)
        for field in _COUNT_FIELDS
    }
    return analytics.model_copy(update=updates)
