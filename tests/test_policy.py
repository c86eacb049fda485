from datetime import datetime

import pytest

from conftest import make_user
from constants import (
    FEEDBACK_ELIGIBILITY_ATTENDANCE,
    FEEDBACK_ELIGIBILITY_OPEN,
    REASON_ALREADY_SUBMITTED,
    REASON_EVENT_NOT_ENDED,
    REASON_NOT_JOINED,
)
from models.user_model import Role
from services import policy
from utils.exceptions import ConflictException, ForbiddenException

NOW = datetime(2025, 6, 1, 12, 0)


def event_doc(owner, status="Approved", participants=(), date=datetime(2025, 5, 1)):
    return {"created_by": owner.id, "status": status, "participants": list(participants), "date": date}


def test_pending_event_visible_to_owner_and_admin_only():
    owner, stranger, admin = make_user(), make_user(), make_user(Role.ADMIN)
    event = event_doc(owner, status="Pending")

    assert policy.can_view_event(owner, event)
    assert policy.can_view_event(admin, event)
    assert not policy.can_view_event(stranger, event)


def test_modify_event_rights():
    owner, stranger, admin = make_user(), make_user(), make_user(Role.ADMIN)
    event = event_doc(owner)

    assert policy.can_modify_event(owner, event)
    assert policy.can_modify_event(admin, event)
    assert not policy.can_modify_event(stranger, event)


def test_protected_fields_are_stripped():
    owner, admin = make_user(), make_user(Role.ADMIN)
    patch = {"title": "New", "status": "Approved", "created_by": "someone"}

    assert policy.strip_protected_event_fields(owner, patch) == {"title": "New"}
    assert policy.strip_protected_event_fields(admin, patch) == {"title": "New", "status": "Approved"}


def test_visible_events_filter_by_scope():
    user, admin = make_user(), make_user(Role.ADMIN)

    assert policy.visible_events_filter(admin, "approved") == {}
    assert policy.visible_events_filter(user, "approved") == {"status": "Approved"}
    assert policy.visible_events_filter(user, "own") == {"created_by": user.id}
    with pytest.raises(ValueError):
        policy.visible_events_filter(user, "everything")


def test_feedback_rights():
    author, other, admin = make_user(), make_user(), make_user(Role.ADMIN)
    feedback = {"user": author.id}

    assert policy.can_modify_feedback(author, feedback)
    assert not policy.can_modify_feedback(admin, feedback)
    assert policy.can_delete_feedback(admin, feedback)
    assert not policy.can_delete_feedback(other, feedback)
    assert policy.can_mark_helpful(other, feedback)
    assert not policy.can_mark_helpful(author, feedback)


@pytest.mark.parametrize("joined, date, submitted, reason", [
    (False, datetime(2025, 5, 1), False, REASON_NOT_JOINED),
    (False, datetime(2025, 7, 1), True, REASON_NOT_JOINED),
    (True, datetime(2025, 7, 1), False, REASON_EVENT_NOT_ENDED),
    (True, datetime(2025, 5, 1), True, REASON_ALREADY_SUBMITTED),
    (True, datetime(2025, 5, 1), False, None),
])
def test_attendance_eligibility(joined, date, submitted, reason):
    owner, caller = make_user(), make_user()
    event = event_doc(owner, participants=[caller.id] if joined else [], date=date)

    decision = policy.evaluate_feedback_eligibility(caller, event, submitted, FEEDBACK_ELIGIBILITY_ATTENDANCE, NOW)

    assert decision.reason == reason
    assert decision.can_submit is (reason is None)
    assert decision.has_joined is joined


def test_open_eligibility_only_checks_duplicates():
    owner, caller = make_user(), make_user()
    event = event_doc(owner, date=datetime(2025, 7, 1))

    fresh = policy.evaluate_feedback_eligibility(caller, event, False, FEEDBACK_ELIGIBILITY_OPEN, NOW)
    repeat = policy.evaluate_feedback_eligibility(caller, event, True, FEEDBACK_ELIGIBILITY_OPEN, NOW)

    assert fresh.can_submit and fresh.event_ended is False
    assert repeat.reason == REASON_ALREADY_SUBMITTED


def test_enforcement_maps_reasons_to_errors():
    owner, caller = make_user(), make_user()
    event = event_doc(owner, date=datetime(2025, 7, 1))

    not_joined = policy.evaluate_feedback_eligibility(caller, event, False, FEEDBACK_ELIGIBILITY_ATTENDANCE, NOW)
    with pytest.raises(ForbiddenException) as exc:
        policy.enforce_feedback_eligibility(not_joined)
    assert exc.value.reason == REASON_NOT_JOINED

    event["participants"] = [caller.id]
    too_early = policy.evaluate_feedback_eligibility(caller, event, False, FEEDBACK_ELIGIBILITY_ATTENDANCE, NOW)
    with pytest.raises(ConflictException) as exc:
        policy.enforce_feedback_eligibility(too_early)
    assert exc.value.reason == REASON_EVENT_NOT_ENDED
