# booking_api/newsletter/segmentation.py
from booking_api.newsletter.schemas import (
    CampaignSegmentation,
    Frequency,
    NewsletterSubscriber,
)

def matches_segmentation(
    subscriber: NewsletterSubscriber, segmentation: CampaignSegmentation
) -> bool:
    """Whether a subscriber belongs to a campaign's audience"""
    if not subscriber.is_active:
        return False

    frequency = Frequency(subscriber.preferences.frequency)
    if frequency == Frequency.NEVER:
        return False

    tags = set(subscriber.tags)

    if segmentation.exclude_tags and tags & set(segmentation.exclude_tags):
        return False

    if segmentation.tags and not tags & set(segmentation.tags):
        return False

    if segmentation.categories and not (
        set(subscriber.preferences.categories) & set(segmentation.categories)
    ):
        return False

    if segmentation.frequency:
        wanted = {Frequency(f) for f in segmentation.frequency}
        if frequency not in wanted:
            return False

    return True
