# booking_api/utils/validation.py
import re
import html
from typing import Optional

_EMAIL_PATTERN = re.compile(
    r'^[a-zA-Z0-9.!#$%&\'*+/=?^_`{|}~-]+@[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?'
    r'(?:\.[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)*$'
)

def validate_email(email: str) -> bool:
    """Validate email format with strict RFC length limits"""
    if not email or len(email) > 254:
        return False

    if not _EMAIL_PATTERN.match(email):
        return False

    local, domain = email.rsplit('@', 1)
    if len(local) > 64 or len(domain) > 253:
        return False

    return True

def normalize_email(email: Optional[str]) -> Optional[str]:
    """Subscriber emails are stored trimmed and lowercased"""
    if email is None:
        return None
    return email.strip().lower()

def sanitize_input(text: Optional[str], max_length: int = 100) -> Optional[str]:
    """Sanitize free text (names, feedback) before it is stored"""
    if not text:
        return None

    text = html.escape(text.strip())

    # Strip control characters and anything html.escape left quotable
    text = re.sub(r'[<>"\'\x00-\x1f\x7f-\x9f]', '', text)

    text = text[:max_length]

    return text if text else None
