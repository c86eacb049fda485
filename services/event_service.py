"""
Event store: creation, moderation (approve/reject), visibility, updates and
the participant roster.

Every function takes the Motor database handle as its first argument so the
same code runs against the application database and the in-memory test one.
"""
from typing import Optional

from pydantic import ValidationError
from pymongo import ReturnDocument
from pymongo.errors import PyMongoError

from constants import (
    DEFAULT_EVENT_CAPACITY,
    EVENT_STATUS_PENDING,
    EVENT_STATUS_APPROVED,
    EVENT_STATUS_REJECTED,
    MEDIA_CATEGORY_EVENT,
)
from database import EVENTS, parse_object_id
from models.event import EventCreate, EventUpdate
from models.user_model import CurrentUser
from services.policy import (
    ensure,
    can_view_event,
    can_modify_event,
    strip_protected_event_fields,
    visible_events_filter,
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

# Fields that can never be cleared through an update
REQUIRED_EVENT_FIELDS = ("title", "description", "date", "venue", "capacity", "reminders", "status")


async def get_event_document(db, event_id) -> dict:
    event = await db[EVENTS].find_one({"_id": parse_object_id(event_id, "Event")})
    if not event:
        raise NotFoundException("Event", str(event_id))
    return event


def _store_event_image(media, image: bytes) -> str:
    try:
        return media.store(image, MEDIA_CATEGORY_EVENT)
    except MediaStorageError as e:
        logger.error(f"Event image upload failed: {e}")
        raise InternalException("Failed to store event image")


# -------------------
# CREATE EVENT
# -------------------
async def create_event(db, media, caller: CurrentUser, fields: dict, image: Optional[bytes] = None) -> dict:
    try:
        data = EventCreate.model_validate(fields)
    except ValidationError as e:
        raise ValidationException.from_pydantic(e, "Event validation failed")

    now = utcnow()
    event_doc = {
        **data.model_dump(),
        "image": None,
        "status": EVENT_STATUS_PENDING,
        "created_by": caller.id,
        "participants": [],
        "average_rating": 0.0,
        "total_reviews": 0,
        "created_at": now,
        "updated_at": now,
    }
    if image:
        event_doc["image"] = _store_event_image(media, image)

    try:
        result = await db[EVENTS].insert_one(event_doc)
    except PyMongoError as e:
        logger.error(f"Failed to insert event '{data.title}': {e}")
        delete_quietly(media, [event_doc["image"]])
        raise InternalException("Failed to create event")

    event_doc["_id"] = result.inserted_id
    logger.info(f"Event {result.inserted_id} submitted by {caller.id}, pending approval")
    return event_doc


# -------------------
# LIST / GET
# -------------------
async def list_events(
        db,
        caller: CurrentUser,
        scope: str = None,
        page: Optional[int] = None,
        page_size: Optional[int] = None
) -> tuple[list[dict], int]:
    query = visible_events_filter(caller, scope)
    return await paginate(db[EVENTS], query, [("date", 1), ("_id", 1)], page, page_size)


async def get_event(db, caller: CurrentUser, event_id: str) -> dict:
    event = await get_event_document(db, event_id)
    ensure(can_view_event(caller, event), "This event is awaiting approval")
    return event


# -------------------
# APPROVE / REJECT
# -------------------
async def _moderate_event(db, caller: CurrentUser, event_id: str, target_status: str) -> dict:
    ensure(caller.is_admin, "Admins only")
    event = await get_event_document(db, event_id)

    if event.get("status") == target_status:
        logger.info(f"Event {event_id} already {target_status}; nothing to do")
        return event
    if event.get("status") != EVENT_STATUS_PENDING:
        raise ConflictException(f"Event has already been {event.get('status', '').lower()}")

    updated = await db[EVENTS].find_one_and_update(
        {"_id": event["_id"], "status": EVENT_STATUS_PENDING},
        {"$set": {"status": target_status, "updated_at": utcnow()}},
        return_document=ReturnDocument.AFTER
    )
    if updated is None:
        # Another admin moderated it in between
        event = await get_event_document(db, event_id)
        if event.get("status") == target_status:
            return event
        raise ConflictException(f"Event has already been {event.get('status', '').lower()}")

    logger.info(f"Event {event_id} {target_status.lower()} by {caller.id}")
    return updated


async def approve_event(db, caller: CurrentUser, event_id: str) -> dict:
    return await _moderate_event(db, caller, event_id, EVENT_STATUS_APPROVED)


async def reject_event(db, caller: CurrentUser, event_id: str) -> dict:
    return await _moderate_event(db, caller, event_id, EVENT_STATUS_REJECTED)


# -------------------
# UPDATE EVENT
# -------------------
async def update_event(
        db,
        media,
        caller: CurrentUser,
        event_id: str,
        patch: dict,
        image: Optional[bytes] = None
) -> dict:
    event = await get_event_document(db, event_id)
    ensure(can_modify_event(caller, event), "Not authorized to update this event")

    patch = strip_protected_event_fields(caller, patch)
    try:
        data = EventUpdate.model_validate(patch)
    except ValidationError as e:
        raise ValidationException.from_pydantic(e, "Event validation failed")

    changes = data.model_dump(exclude_unset=True)
    for field in REQUIRED_EVENT_FIELDS:
        if field in changes and changes[field] is None:
            del changes[field]

    new_image = None
    if image:
        new_image = _store_event_image(media, image)
        changes["image"] = new_image
    changes["updated_at"] = utcnow()

    updated = await db[EVENTS].find_one_and_update(
        {"_id": event["_id"]},
        {"$set": changes},
        return_document=ReturnDocument.AFTER
    )
    if updated is None:
        delete_quietly(media, [new_image])
        raise NotFoundException("Event", event_id)

    if new_image and event.get("image"):
        delete_quietly(media, [event["image"]])

    if "capacity" in changes and len(updated.get("participants", [])) > changes["capacity"]:
        # Existing participants keep their place; only new joins are blocked
        logger.info(f"Event {event_id} capacity lowered below its {len(updated['participants'])} participants")
    return updated


# -------------------
# DELETE EVENT
# -------------------
async def delete_event(db, media, caller: CurrentUser, event_id: str) -> dict:
    event = await get_event_document(db, event_id)
    ensure(can_modify_event(caller, event), "Not authorized to delete this event")

    result = await db[EVENTS].delete_one({"_id": event["_id"]})
    if result.deleted_count == 0:
        raise NotFoundException("Event", event_id)

    delete_quietly(media, [event.get("image")])
    logger.info(f"Event {event_id} deleted by {caller.id}")
    return event


# -------------------
# JOIN / LEAVE
# -------------------
def _ensure_joinable(event: dict, caller: CurrentUser) -> None:
    participants = [str(p) for p in event.get("participants", [])]
    if event.get("status") != EVENT_STATUS_APPROVED:
        raise ConflictException("Only approved events can be joined")
    if caller.id in participants:
        raise ConflictException("You have already joined this event")
    if len(participants) >= event.get("capacity", DEFAULT_EVENT_CAPACITY):
        raise ConflictException("This event is full")


async def join_event(db, caller: CurrentUser, event_id: str) -> dict:
    event = await get_event_document(db, event_id)
    _ensure_joinable(event, caller)

    capacity = event.get("capacity", DEFAULT_EVENT_CAPACITY)
    # Single conditional write: approved, not yet a member, roster shorter than capacity
    updated = await db[EVENTS].find_one_and_update(
        {
            "_id": event["_id"],
            "status": EVENT_STATUS_APPROVED,
            # Documents without a stored capacity use the default
            "capacity": capacity if "capacity" in event else {"$exists": False},
            "participants": {"$ne": caller.id},
            f"participants.{capacity - 1}": {"$exists": False},
        },
        {"$addToSet": {"participants": caller.id}, "$set": {"updated_at": utcnow()}},
        return_document=ReturnDocument.AFTER
    )
    if updated is None:
        # Lost a race; report what changed underneath us
        _ensure_joinable(await get_event_document(db, event_id), caller)
        raise ConflictException("Could not join the event, please try again")

    logger.info(f"User {caller.id} joined event {event_id}")
    return updated


async def leave_event(db, caller: CurrentUser, event_id: str) -> dict:
    event = await get_event_document(db, event_id)
    if caller.id not in [str(p) for p in event.get("participants", [])]:
        raise ConflictException("You are not a participant of this event")

    updated = await db[EVENTS].find_one_and_update(
        {"_id": event["_id"], "participants": caller.id},
        {"$pull": {"participants": caller.id}, "$set": {"updated_at": utcnow()}},
        return_document=ReturnDocument.AFTER
    )
    if updated is None:
        raise ConflictException("You are not a participant of this event")

    logger.info(f"User {caller.id} left event {event_id}")
    return updated
