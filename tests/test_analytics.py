from datetime import datetime, timezone

from booking_api.newsletter.analytics import apply_analytics_delta, recompute_analytics
from booking_api.newsletter.schemas import CampaignAnalytics, CampaignAnalyticsUpdate

STAMP = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

def test_rates_are_percentages_of_sent():
    analytics = CampaignAnalytics(
        total_sent=200, total_opened=50, total_clicked=10, total_bounced=4, total_unsubscribed=2
    )
    result = recompute_analytics(analytics, now=STAMP)

    assert result.open_rate == 25
    assert result.click_rate == 5
    assert result.bounce_rate == 2
    assert result.unsubscribe_rate == 1
    assert result.last_updated == STAMP

def test_nothing_sent_keeps_previous_rates_but_stamps_time():
    analytics = CampaignAnalytics(total_sent=0, total_opened=3, open_rate=42.0, click_rate=7.5)
    result = recompute_analytics(analytics, now=STAMP)

    assert result.open_rate == 42.0
    assert result.click_rate == 7.5
    assert result.last_updated == STAMP

def test_recompute_does_not_mutate_input():
    analytics = CampaignAnalytics(total_sent=10, total_opened=5)
    recompute_analytics(analytics)
    assert analytics.open_rate == 0
    assert analytics.last_updated is None

def test_delta_adds_counts_only():
    analytics = CampaignAnalytics(total_sent=10, total_opened=2, open_rate=20)
    delta = CampaignAnalyticsUpdate(total_opened=3, total_clicked=1)

    result = apply_analytics_delta(analytics, delta)

    assert result.total_sent == 10
    assert result.total_opened == 5
    assert result.total_clicked == 1
    assert result.open_rate == 20
