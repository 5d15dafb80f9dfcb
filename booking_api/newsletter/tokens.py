# booking_api/newsletter/tokens.py
import secrets
import logging

from booking_api.newsletter.schemas import NewsletterSubscriber, Unsubscription

logger = logging.getLogger(__name__)

TOKEN_BYTES = 32

def generate_token() -> str:
    """64 hex characters from 32 bytes of OS randomness"""
    return secrets.token_hex(TOKEN_BYTES)

def ensure_unsubscribe_token(subscriber: NewsletterSubscriber) -> NewsletterSubscriber:
    """Give a new subscriber its unsubscribe token; an existing token is kept as is"""
    if subscriber.unsubscribe_token:
        return subscriber

    token = generate_token()
    logger.debug(f"Generated unsubscribe token {token[:8]}... for {subscriber.email}")
    return subscriber.model_copy(update={"unsubscribe_token": token})

def ensure_resubscribe_token(unsubscription: Unsubscription) -> Unsubscription:
    """Resubscribe tokens exist only for records that allow resubscribing"""
    if not unsubscription.can_resubscribe or unsubscription.resubscribe_token:
        return unsubscription

    token = generate_token()
    logger.debug(f"Generated resubscribe token {token[:8]}... for {unsubscription.email}")
    return unsubscription.model_copy(update={"resubscribe_token": token})
