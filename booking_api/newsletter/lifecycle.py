# booking_api/newsletter/lifecycle.py
from typing import Dict, FrozenSet, Union

from booking_api.newsletter.exceptions import InvalidTransitionError
from booking_api.newsletter.schemas import CampaignStatus

StatusLike = Union[CampaignStatus, str]

CAMPAIGN_TRANSITIONS: Dict[CampaignStatus, FrozenSet[CampaignStatus]] = {
    CampaignStatus.DRAFT: frozenset({
        CampaignStatus.SCHEDULED,
        CampaignStatus.SENDING,
        CampaignStatus.CANCELLED,
    }),
    CampaignStatus.SCHEDULED: frozenset({
        CampaignStatus.DRAFT,
        CampaignStatus.SENDING,
        CampaignStatus.CANCELLED,
    }),
    CampaignStatus.SENDING: frozenset({
        CampaignStatus.SENT,
        CampaignStatus.FAILED,
    }),
    # A failed send goes back to draft to be fixed and retried
    CampaignStatus.FAILED: frozenset({CampaignStatus.DRAFT}),
    CampaignStatus.SENT: frozenset(),
    CampaignStatus.CANCELLED: frozenset(),
}

def _coerce(value: StatusLike) -> CampaignStatus:
    try:
        return CampaignStatus(value)
    except ValueError:
        raise InvalidTransitionError(f"Unknown campaign status: {value}")

def allowed_transitions(current: StatusLike) -> FrozenSet[CampaignStatus]:
    return CAMPAIGN_TRANSITIONS[_coerce(current)]

def can_transition(current: StatusLike, target: StatusLike) -> bool:
    return _coerce(target) in allowed_transitions(current)

def validate_transition(current: StatusLike, target: StatusLike) -> CampaignStatus:
    """Return the target status, or raise when the move is not in the table"""
    source = _coerce(current)
    destination = _coerce(target)

    allowed = CAMPAIGN_TRANSITIONS[source]
    if destination not in allowed:
        options = ", ".join(sorted(s.value for s in allowed)) or "none (final state)"
        raise InvalidTransitionError(
            f"Cannot move campaign from '{source.value}' to '{destination.value}'. "
            f"Allowed: {options}"
        )

    return destination

def is_final(status: StatusLike) -> bool:
    return not CAMPAIGN_TRANSITIONS[_coerce(status)]
