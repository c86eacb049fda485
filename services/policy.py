"""
Authorization and eligibility decisions shared by the event and feedback
services. Every function here only looks at the caller and the documents
it is handed; denials surface as ForbiddenException, never as a no-op.
"""
import os
from datetime import datetime

from dotenv import load_dotenv

from constants import (
    EVENT_STATUS_APPROVED,
    VISIBILITY_SCOPE_APPROVED,
    VISIBILITY_SCOPE_OWN,
    FEEDBACK_ELIGIBILITY_OPEN,
    FEEDBACK_ELIGIBILITY_ATTENDANCE,
    REASON_NOT_JOINED,
    REASON_EVENT_NOT_ENDED,
    REASON_ALREADY_SUBMITTED,
)
from models.event import has_passed
from models.feedback import FeedbackEligibility
from models.user_model import CurrentUser
from utils.exceptions import ForbiddenException, ConflictException

load_dotenv()

VISIBILITY_SCOPES = (VISIBILITY_SCOPE_APPROVED, VISIBILITY_SCOPE_OWN)
ELIGIBILITY_POLICIES = (FEEDBACK_ELIGIBILITY_OPEN, FEEDBACK_ELIGIBILITY_ATTENDANCE)

EVENT_VISIBILITY_SCOPE = os.getenv("EVENT_VISIBILITY_SCOPE", VISIBILITY_SCOPE_APPROVED)
if EVENT_VISIBILITY_SCOPE not in VISIBILITY_SCOPES:
    raise ValueError(f"EVENT_VISIBILITY_SCOPE must be one of {VISIBILITY_SCOPES}, got {EVENT_VISIBILITY_SCOPE!r}")

FEEDBACK_ELIGIBILITY = os.getenv("FEEDBACK_ELIGIBILITY", FEEDBACK_ELIGIBILITY_OPEN)
if FEEDBACK_ELIGIBILITY not in ELIGIBILITY_POLICIES:
    raise ValueError(f"FEEDBACK_ELIGIBILITY must be one of {ELIGIBILITY_POLICIES}, got {FEEDBACK_ELIGIBILITY!r}")

# Keys a patch may never carry, and keys only admins may carry
IMMUTABLE_EVENT_FIELDS = ("created_by",)
ADMIN_ONLY_EVENT_FIELDS = ("status",)


def ensure(allowed: bool, message: str = "Forbidden", reason: str = None) -> None:
    if not allowed:
        raise ForbiddenException(message, reason=reason)


# -------------------
# EVENTS
# -------------------
def is_event_owner(caller: CurrentUser, event: dict) -> bool:
    return str(event.get("created_by")) == caller.id


def can_view_event(caller: CurrentUser, event: dict) -> bool:
    return event.get("status") == EVENT_STATUS_APPROVED or caller.is_admin or is_event_owner(caller, event)


def can_modify_event(caller: CurrentUser, event: dict) -> bool:
    """Update and delete are open to the creator and to admins."""
    return caller.is_admin or is_event_owner(caller, event)


def strip_protected_event_fields(caller: CurrentUser, patch: dict) -> dict:
    stripped = {k: v for k, v in patch.items() if k not in IMMUTABLE_EVENT_FIELDS}
    if not caller.is_admin:
        stripped = {k: v for k, v in stripped.items() if k not in ADMIN_ONLY_EVENT_FIELDS}
    return stripped


def visible_events_filter(caller: CurrentUser, scope: str = None) -> dict:
    """Mongo filter selecting the events a caller may list."""
    scope = scope or EVENT_VISIBILITY_SCOPE
    if caller.is_admin:
        return {}
    if scope == VISIBILITY_SCOPE_OWN:
        return {"created_by": caller.id}
    if scope == VISIBILITY_SCOPE_APPROVED:
        return {"status": EVENT_STATUS_APPROVED}
    raise ValueError(f"Unknown visibility scope: {scope}")


# -------------------
# FEEDBACK
# -------------------
def is_feedback_author(caller: CurrentUser, feedback: dict) -> bool:
    return str(feedback.get("user")) == caller.id


def can_modify_feedback(caller: CurrentUser, feedback: dict) -> bool:
    return is_feedback_author(caller, feedback)


def can_delete_feedback(caller: CurrentUser, feedback: dict) -> bool:
    return caller.is_admin or is_feedback_author(caller, feedback)


def can_mark_helpful(caller: CurrentUser, feedback: dict) -> bool:
    return not is_feedback_author(caller, feedback)


def evaluate_feedback_eligibility(
        caller: CurrentUser,
        event: dict,
        already_submitted: bool,
        policy: str = None,
        now: datetime = None
) -> FeedbackEligibility:
    """
    Decide whether the caller may review the event.

    Under the ``attendance`` policy the caller must be a participant and the
    event date must be behind us; under ``open`` only the one-review-per-user
    rule applies. The submission path and the can-submit probe both call this.
    """
    policy = policy or FEEDBACK_ELIGIBILITY
    has_joined = caller.id in [str(p) for p in event.get("participants", [])]
    event_ended = has_passed(event["date"], now)

    reason = None
    if policy == FEEDBACK_ELIGIBILITY_ATTENDANCE:
        if not has_joined:
            reason = REASON_NOT_JOINED
        elif not event_ended:
            reason = REASON_EVENT_NOT_ENDED
    if reason is None and already_submitted:
        reason = REASON_ALREADY_SUBMITTED

    return FeedbackEligibility(
        can_submit=reason is None,
        has_joined=has_joined,
        event_ended=event_ended,
        already_submitted=already_submitted,
        reason=reason,
        policy=policy,
    )


def enforce_feedback_eligibility(decision: FeedbackEligibility) -> None:
    if decision.reason == REASON_NOT_JOINED:
        raise ForbiddenException("Only registered participants can submit feedback for this event.", reason=REASON_NOT_JOINED)
    if decision.reason == REASON_EVENT_NOT_ENDED:
        raise ConflictException("Feedback opens once the event has ended.", reason=REASON_EVENT_NOT_ENDED)
    if decision.reason == REASON_ALREADY_SUBMITTED:
        raise ConflictException("You have already submitted feedback for this event.", reason=REASON_ALREADY_SUBMITTED)
