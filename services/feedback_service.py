"""
Feedback store: event reviews and site feedback, rating aggregation and
moderation (helpful votes, abuse reports, flagging).

Event aggregates (average_rating, total_reviews) are always re-derived from
the full set of event reviews; they are never incremented in place.
"""
import re
from collections import Counter
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional

from bson import ObjectId
from bson.errors import InvalidId
from pydantic import ValidationError
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

from constants import (
    FEEDBACK_TYPE_EVENT,
    FEEDBACK_TYPE_WEBSITE,
    MAX_PHOTOS_PER_FEEDBACK,
    MAX_RATING,
    MEDIA_CATEGORY_FEEDBACK,
    MIN_RATING,
    REASON_ALREADY_SUBMITTED,
    REPORTS_TO_FLAG,
)
from database import EVENTS, FEEDBACK, USERS, parse_object_id
from models.feedback import (
    FeedbackCreate,
    FeedbackEligibility,
    FeedbackSort,
    FeedbackUpdate,
    HelpfulToggleResponse,
    RatingSummary,
    ReportResponse,
)
from models.user_model import CurrentUser, UserSummary
from services.event_service import get_event, get_event_document
from services.policy import (
    ensure,
    can_delete_feedback,
    can_mark_helpful,
    can_modify_feedback,
    enforce_feedback_eligibility,
    evaluate_feedback_eligibility,
)
from utils.clock import utcnow
from utils.cloudinary_config import MediaStorageError, delete_quietly
from utils.exceptions import (
    ConflictException,
    InternalException,
    NotFoundException,
    ValidationException,
)
from utils.logger import get_logger
from utils.pagination import paginate

logger = get_logger(__name__)

SORT_ORDERS = {
    FeedbackSort.RECENT: [("created_at", -1), ("_id", -1)],
    FeedbackSort.OLDEST: [("created_at", 1), ("_id", 1)],
    FeedbackSort.HIGHEST: [("rating", -1), ("created_at", -1)],
    FeedbackSort.LOWEST: [("rating", 1), ("created_at", -1)],
    FeedbackSort.MOST_HELPFUL: [("helpful_count", -1), ("created_at", -1)],
}


def round_rating(ratings: List[int]) -> float:
    """Mean of the ratings to one decimal, halves rounded away from zero."""
    if not ratings:
        return 0.0
    mean = Decimal(sum(ratings)) / Decimal(len(ratings))
    return float(mean.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def _validate(model, payload: dict, message: str):
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        raise ValidationException.from_pydantic(e, message)


def _event_reviews_filter(event_id: str) -> dict:
    return {"event": event_id, "feedback_type": FEEDBACK_TYPE_EVENT}


async def _get_feedback_or_404(db, feedback_id: str, event_id: Optional[str] = None) -> dict:
    """
    Load a feedback document. When ``event_id`` is given the document must
    belong to that event; the literal ``website`` scopes to site feedback.
    """
    query = {"_id": parse_object_id(feedback_id, "Feedback")}
    if event_id == FEEDBACK_TYPE_WEBSITE:
        query["feedback_type"] = FEEDBACK_TYPE_WEBSITE
    elif event_id:
        query["event"] = event_id
    feedback = await db[FEEDBACK].find_one(query)
    if not feedback:
        raise NotFoundException("Feedback", str(feedback_id))
    return feedback


async def _has_reviewed(db, caller: CurrentUser, event_id: str) -> bool:
    existing = await db[FEEDBACK].find_one({**_event_reviews_filter(event_id), "user": caller.id}, {"_id": 1})
    return existing is not None


# -------------------
# AGGREGATES
# -------------------
async def _event_ratings(db, event_id: str) -> List[int]:
    cursor = db[FEEDBACK].find(_event_reviews_filter(event_id), {"rating": 1})
    return [doc["rating"] async for doc in cursor]


async def recompute_event_rating(db, event_id: str) -> dict:
    """Re-scan the event's reviews and persist the rounded mean and count."""
    ratings = await _event_ratings(db, event_id)
    aggregate = {"average_rating": round_rating(ratings), "total_reviews": len(ratings)}
    try:
        event_oid = ObjectId(event_id)
    except InvalidId:
        return aggregate
    await db[EVENTS].update_one({"_id": event_oid}, {"$set": aggregate})
    logger.debug(f"Event {event_id} rating recomputed: {aggregate}")
    return aggregate


async def rating_summary(db, event_id: str) -> RatingSummary:
    ratings = await _event_ratings(db, event_id)
    counts = Counter(ratings)
    return RatingSummary(
        distribution={star: counts.get(star, 0) for star in range(MIN_RATING, MAX_RATING + 1)},
        total=len(ratings),
        average_rating=round_rating(ratings),
    )


async def expand_authors(db, feedback_docs: List[dict]) -> dict:
    """Map author id -> UserSummary for display. Unknown users are left out."""
    user_ids = {str(doc["user"]) for doc in feedback_docs}
    object_ids = [ObjectId(uid) for uid in user_ids if ObjectId.is_valid(uid)]
    if not object_ids:
        return {}
    authors = {}
    async for user in db[USERS].find({"_id": {"$in": object_ids}}, {"name": 1, "email": 1, "avatar": 1}):
        authors[str(user["_id"])] = UserSummary(
            user_id=str(user["_id"]),
            name=user.get("name"),
            email=user.get("email"),
            avatar=user.get("avatar"),
        )
    return authors


# -------------------
# SUBMIT
# -------------------
def _store_photos(media, photos: List[bytes]) -> List[str]:
    stored = []
    for photo in photos:
        try:
            stored.append(media.store(photo, MEDIA_CATEGORY_FEEDBACK))
        except MediaStorageError as e:
            logger.error(f"Photo upload failed, rolling back {len(stored)} stored photo(s): {e}")
            delete_quietly(media, stored)
            raise InternalException("Failed to store feedback photos")
    return stored


async def submit_feedback(
        db,
        media,
        caller: CurrentUser,
        event_id: Optional[str],
        payload: dict,
        photos: Optional[List[bytes]] = None,
        policy: str = None
) -> dict:
    """
    Create event feedback (``event_id`` set) or site feedback (``event_id`` None).

    Photos are stored only after every check has passed; if the insert still
    fails they are deleted again so no stored photo is left unreferenced.
    """
    photos = [photo for photo in (photos or []) if photo]
    event = None
    if event_id is not None:
        event = await get_event_document(db, event_id)
        event_id = str(event["_id"])

    data = _validate(FeedbackCreate, payload, "Feedback validation failed")
    if len(photos) > MAX_PHOTOS_PER_FEEDBACK:
        raise ValidationException(
            "Too many photos",
            errors={"photos": f"You can upload maximum {MAX_PHOTOS_PER_FEEDBACK} photos"}
        )

    if event is not None:
        decision = evaluate_feedback_eligibility(caller, event, await _has_reviewed(db, caller, event_id), policy)
        enforce_feedback_eligibility(decision)

    photo_urls = _store_photos(media, photos)
    now = utcnow()
    feedback_doc = {
        "event": event_id,
        "feedback_type": FEEDBACK_TYPE_EVENT if event is not None else FEEDBACK_TYPE_WEBSITE,
        "user": caller.id,
        **data.model_dump(exclude_none=True),
        "photos": photo_urls,
        "helpful_count": 0,
        "marked_helpful_by": [],
        "reports": [],
        "flagged": False,
        "verified": event is not None,
        "created_at": now,
        "updated_at": now,
    }

    try:
        result = await db[FEEDBACK].insert_one(feedback_doc)
    except DuplicateKeyError:
        delete_quietly(media, photo_urls)
        raise ConflictException("You have already submitted feedback for this event.", reason=REASON_ALREADY_SUBMITTED)
    except PyMongoError as e:
        logger.error(f"Failed to insert feedback from {caller.id}: {e}")
        delete_quietly(media, photo_urls)
        raise InternalException("Failed to save feedback")

    feedback_doc["_id"] = result.inserted_id
    logger.info(f"{feedback_doc['feedback_type'].capitalize()} feedback {result.inserted_id} submitted by {caller.id}")
    if event is not None:
        await recompute_event_rating(db, event_id)
    return feedback_doc


async def can_submit_feedback(db, caller: CurrentUser, event_id: str, policy: str = None) -> FeedbackEligibility:
    event = await get_event_document(db, event_id)
    event_id = str(event["_id"])
    return evaluate_feedback_eligibility(caller, event, await _has_reviewed(db, caller, event_id), policy)


# -------------------
# LIST
# -------------------
async def list_feedback(
        db,
        caller: CurrentUser,
        event_id: str,
        rating: Optional[int] = None,
        search: Optional[str] = None,
        sort: FeedbackSort = FeedbackSort.RECENT,
        page: Optional[int] = None,
        page_size: Optional[int] = None
) -> tuple[list[dict], int, dict, RatingSummary]:
    """
    One page of an event's reviews plus the rating summary. The summary is
    computed over every review of the event, ignoring the filters.
    Reviews of an event the caller may not view are refused like the event.

    Returns:
        (feedback documents, filtered total, author map, summary)
    """
    event = await get_event(db, caller, event_id)
    event_id = str(event["_id"])

    query = _event_reviews_filter(event_id)
    if rating is not None:
        query["rating"] = rating
    if search and search.strip():
        query["comment"] = {"$regex": re.escape(search.strip()), "$options": "i"}

    feedback, total = await paginate(db[FEEDBACK], query, SORT_ORDERS[FeedbackSort(sort)], page, page_size)

    return feedback, total, await expand_authors(db, feedback), await rating_summary(db, event_id)


async def list_site_feedback(
        db,
        caller: CurrentUser,
        page: Optional[int] = None,
        page_size: Optional[int] = None
) -> tuple[list[dict], int, dict]:
    ensure(caller.is_admin, "Admins only")
    query = {"feedback_type": FEEDBACK_TYPE_WEBSITE}
    feedback, total = await paginate(db[FEEDBACK], query, SORT_ORDERS[FeedbackSort.RECENT], page, page_size)
    return feedback, total, await expand_authors(db, feedback)


# -------------------
# UPDATE / DELETE
# -------------------
async def update_feedback(
        db,
        caller: CurrentUser,
        feedback_id: str,
        patch: dict,
        event_id: Optional[str] = None
) -> dict:
    feedback = await _get_feedback_or_404(db, feedback_id, event_id)
    ensure(can_modify_feedback(caller, feedback), "You can only edit your own feedback")

    data = _validate(FeedbackUpdate, patch, "Feedback validation failed")
    changes = {k: v for k, v in data.model_dump(exclude_unset=True).items() if v is not None}
    changes["updated_at"] = utcnow()

    updated = await db[FEEDBACK].find_one_and_update(
        {"_id": feedback["_id"]},
        {"$set": changes},
        return_document=ReturnDocument.AFTER
    )
    if updated is None:
        raise NotFoundException("Feedback", feedback_id)

    if updated.get("feedback_type") == FEEDBACK_TYPE_EVENT and updated.get("event"):
        await recompute_event_rating(db, updated["event"])
    return updated


async def delete_feedback(
        db,
        media,
        caller: CurrentUser,
        feedback_id: str,
        event_id: Optional[str] = None
) -> dict:
    feedback = await _get_feedback_or_404(db, feedback_id, event_id)
    ensure(can_delete_feedback(caller, feedback), "Not authorized to delete this feedback")

    result = await db[FEEDBACK].delete_one({"_id": feedback["_id"]})
    if result.deleted_count == 0:
        raise NotFoundException("Feedback", feedback_id)

    # Photo cleanup never changes the outcome of the deletion
    photos = feedback.get("photos", [])
    removed = delete_quietly(media, photos)
    logger.info(f"Feedback {feedback_id} deleted by {caller.id} ({removed}/{len(photos)} photos removed)")

    if feedback.get("feedback_type") == FEEDBACK_TYPE_EVENT and feedback.get("event"):
        await recompute_event_rating(db, feedback["event"])
    return feedback


# -------------------
# MODERATION
# -------------------
async def toggle_helpful(
        db,
        caller: CurrentUser,
        feedback_id: str,
        event_id: Optional[str] = None
) -> HelpfulToggleResponse:
    feedback = await _get_feedback_or_404(db, feedback_id, event_id)
    ensure(can_mark_helpful(caller, feedback), "You cannot mark your own feedback as helpful")

    marked = False
    updated = await db[FEEDBACK].find_one_and_update(
        {"_id": feedback["_id"], "marked_helpful_by": caller.id},
        {"$pull": {"marked_helpful_by": caller.id}, "$inc": {"helpful_count": -1}},
        return_document=ReturnDocument.AFTER
    )
    if updated is None:
        marked = True
        updated = await db[FEEDBACK].find_one_and_update(
            {"_id": feedback["_id"], "marked_helpful_by": {"$ne": caller.id}},
            {"$addToSet": {"marked_helpful_by": caller.id}, "$inc": {"helpful_count": 1}},
            return_document=ReturnDocument.AFTER
        )
    if updated is None:
        # A concurrent toggle by the same user won both writes; report current state
        updated = await _get_feedback_or_404(db, feedback_id)
        marked = caller.id in updated.get("marked_helpful_by", [])

    if updated.get("helpful_count", 0) < 0:
        await db[FEEDBACK].update_one(
            {"_id": feedback["_id"], "helpful_count": {"$lt": 0}},
            {"$set": {"helpful_count": 0}}
        )
    return HelpfulToggleResponse(helpful_count=max(0, updated.get("helpful_count", 0)), marked=marked)


async def report_feedback(
        db,
        caller: CurrentUser,
        feedback_id: str,
        reason: Optional[str],
        event_id: Optional[str] = None
) -> ReportResponse:
    reason = (reason or "").strip()
    if not reason:
        raise ValidationException("A reason is required to report feedback", errors={"reason": "Field required"})

    feedback = await _get_feedback_or_404(db, feedback_id, event_id)
    report = {"reported_by": caller.id, "reason": reason, "reported_at": utcnow()}
    updated = await db[FEEDBACK].find_one_and_update(
        {"_id": feedback["_id"], "reports.reported_by": {"$ne": caller.id}},
        {"$push": {"reports": report}},
        return_document=ReturnDocument.AFTER
    )
    if updated is None:
        await _get_feedback_or_404(db, feedback_id)
        raise ConflictException("You have already reported this feedback")

    report_count = len(updated.get("reports", []))
    flagged = updated.get("flagged", False)
    if report_count >= REPORTS_TO_FLAG and not flagged:
        await db[FEEDBACK].update_one({"_id": feedback["_id"]}, {"$set": {"flagged": True}})
        flagged = True
        logger.warning(f"Feedback {feedback_id} flagged after {report_count} reports")
    return ReportResponse(report_count=report_count, flagged=flagged)
