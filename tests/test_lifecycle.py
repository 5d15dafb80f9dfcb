import pytest

from booking_api.newsletter.exceptions import InvalidTransitionError
from booking_api.newsletter.lifecycle import (
    allowed_transitions,
    can_transition,
    is_final,
    validate_transition,
)
from booking_api.newsletter.schemas import CampaignStatus

@pytest.mark.parametrize(
    "current, target",
    [
        ("draft", "scheduled"),
        ("draft", "sending"),
        ("draft", "cancelled"),
        ("scheduled", "draft"),
        ("scheduled", "sending"),
        ("scheduled", "cancelled"),
        ("sending", "sent"),
        ("sending", "failed"),
        ("failed", "draft"),
    ],
)
def test_allowed_moves(current, target):
    assert can_transition(current, target)
    assert validate_transition(current, target) == CampaignStatus(target)

@pytest.mark.parametrize(
    "current, target",
    [
        ("sent", "draft"),
        ("cancelled", "scheduled"),
        ("draft", "sent"),
        ("sending", "draft"),
        ("scheduled", "failed"),
    ],
)
def test_rejected_moves(current, target):
    assert not can_transition(current, target)
    with pytest.raises(InvalidTransitionError):
        validate_transition(current, target)

def test_error_names_both_states_and_options():
    with pytest.raises(InvalidTransitionError) as exc:
        validate_transition(CampaignStatus.SENT, CampaignStatus.DRAFT)
    assert "Cannot move campaign from 'sent' to 'draft'" in exc.value.message
    assert "none (final state)" in exc.value.message
    assert exc.value.status_code == 400

def test_final_states():
    assert is_final("sent")
    assert is_final("cancelled")
    assert not is_final("failed")
    assert allowed_transitions("sending") == {CampaignStatus.SENT, CampaignStatus.FAILED}

def test_unknown_status_is_rejected():
    with pytest.raises(InvalidTransitionError):
        validate_transition("archived", "draft")
