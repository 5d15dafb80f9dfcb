import re

from booking_api.newsletter.schemas import NewsletterSubscriber, Unsubscription
from booking_api.newsletter.tokens import (
    ensure_resubscribe_token,
    ensure_unsubscribe_token,
    generate_token,
)

HEX64 = re.compile(r"^[0-9a-f]{64}$")

def test_generated_tokens_are_64_hex_and_distinct():
    tokens = {generate_token() for _ in range(50)}
    assert len(tokens) == 50
    assert all(HEX64.match(token) for token in tokens)

def test_subscriber_token_is_assigned_once():
    subscriber = ensure_unsubscribe_token(NewsletterSubscriber(email="a@example.com"))
    assert HEX64.match(subscriber.unsubscribe_token)

    again = ensure_unsubscribe_token(subscriber)
    assert again.unsubscribe_token == subscriber.unsubscribe_token

def test_two_subscribers_get_different_tokens():
    first = ensure_unsubscribe_token(NewsletterSubscriber(email="a@example.com"))
    second = ensure_unsubscribe_token(NewsletterSubscriber(email="b@example.com"))
    assert first.unsubscribe_token != second.unsubscribe_token

def test_resubscribe_token_only_when_allowed():
    allowed = ensure_resubscribe_token(Unsubscription(email="a@example.com"))
    assert HEX64.match(allowed.resubscribe_token)
    assert ensure_resubscribe_token(allowed).resubscribe_token == allowed.resubscribe_token

    blocked = Unsubscription(email="b@example.com", can_resubscribe=False)
    for _ in range(3):
        blocked = ensure_resubscribe_token(blocked)
    assert blocked.resubscribe_token is None
