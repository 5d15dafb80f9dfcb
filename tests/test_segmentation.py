import pytest

from booking_api.newsletter.schemas import (
    CampaignSegmentation,
    NewsletterSubscriber,
    SubscriberPreferences,
)
from booking_api.newsletter.segmentation import matches_segmentation

def _subscriber(tags=(), frequency="weekly", categories=(), active=True):
    return NewsletterSubscriber(
        email="reader@example.com",
        is_active=active,
        tags=list(tags),
        preferences=SubscriberPreferences(frequency=frequency, categories=list(categories)),
    )

def test_empty_segmentation_reaches_every_active_reader():
    assert matches_segmentation(_subscriber(), CampaignSegmentation())
    assert not matches_segmentation(_subscriber(active=False), CampaignSegmentation())

def test_never_frequency_is_always_excluded():
    assert not matches_segmentation(_subscriber(frequency="never"), CampaignSegmentation())

@pytest.mark.parametrize(
    "segmentation, expected",
    [
        (CampaignSegmentation(tags=["vip"]), True),
        (CampaignSegmentation(tags=["trial"]), False),
        (CampaignSegmentation(exclude_tags=["churned"]), False),
        (CampaignSegmentation(categories=["events"]), True),
        (CampaignSegmentation(categories=["offers"]), False),
        (CampaignSegmentation(frequency=["weekly", "monthly"]), True),
        (CampaignSegmentation(frequency=["daily"]), False),
    ],
)
def test_filters(segmentation, expected):
    subscriber = _subscriber(tags=["vip", "churned"] if segmentation.exclude_tags else ["vip"],
                             categories=["events"])
    assert matches_segmentation(subscriber, segmentation) is expected
