from fastapi import APIRouter, UploadFile, File, Form, Depends, Query, Request
from typing import Optional

from auth.auth_utils import get_current_user  # JWT auth dependency
from auth.user_role_utils import verify_admin
from database import get_db
from middleware.rate_limiter import limiter, RATE_LIMIT_EVENT_CREATE
from models.event import EventResponse
from models.user_model import CurrentUser
from services import event_service
from utils.cloudinary_config import get_media_storage
from utils.pagination import create_paginated_response, PaginatedResponse
from constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE

router = APIRouter(prefix="/events", tags=["events"])


def _form_fields(**fields) -> dict:
    # Form values left out of the request arrive as None
    return {key: value for key, value in fields.items() if value is not None}


async def _read_upload(upload: Optional[UploadFile]) -> Optional[bytes]:
    if upload is None or not upload.filename:
        return None
    return await upload.read()


# -------------------
# CREATE EVENT
# -------------------
@router.post("", response_model=EventResponse, status_code=201)
@limiter.limit(RATE_LIMIT_EVENT_CREATE)
async def create_event(
        request: Request,
        title: Optional[str] = Form(None),
        description: Optional[str] = Form(None),
        date: Optional[str] = Form(None),
        venue: Optional[str] = Form(None),
        time: Optional[str] = Form(None),
        duration: Optional[str] = Form(None),
        type_of_event: Optional[str] = Form(None),
        capacity: Optional[str] = Form(None),
        reminders: Optional[str] = Form(None),
        image: Optional[UploadFile] = File(None),
        current_user: CurrentUser = Depends(get_current_user),
        db=Depends(get_db),
        media=Depends(get_media_storage)
) -> EventResponse:
    fields = _form_fields(
        title=title, description=description, date=date, venue=venue, time=time,
        duration=duration, type_of_event=type_of_event, capacity=capacity, reminders=reminders
    )
    event = await event_service.create_event(db, media, current_user, fields, await _read_upload(image))
    return EventResponse.from_document(event)


# -------------------
# GET ALL EVENTS (with pagination)
# -------------------
@router.get("", response_model=PaginatedResponse[EventResponse])
async def all_events(
        page: Optional[int] = Query(1, ge=1, description="Page number (1-indexed)"),
        page_size: Optional[int] = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE, description="Number of items per page (max 100)"),
        current_user: CurrentUser = Depends(get_current_user),
        db=Depends(get_db)
) -> PaginatedResponse[EventResponse]:
    events, total = await event_service.list_events(db, current_user, page=page, page_size=page_size)
    return create_paginated_response(
        items=[EventResponse.from_document(event) for event in events],
        total=total,
        page=page,
        page_size=page_size
    )


# -------------------
# GET SINGLE EVENT
# -------------------
@router.get("/{event_id}", response_model=EventResponse)
async def get_event(
        event_id: str,
        current_user: CurrentUser = Depends(get_current_user),
        db=Depends(get_db)
) -> EventResponse:
    event = await event_service.get_event(db, current_user, event_id)
    return EventResponse.from_document(event)


# -------------------
# UPDATE EVENT
# -------------------
@router.put("/{event_id}", response_model=EventResponse)
async def update_event(
        event_id: str,
        title: Optional[str] = Form(None),
        description: Optional[str] = Form(None),
        date: Optional[str] = Form(None),
        venue: Optional[str] = Form(None),
        time: Optional[str] = Form(None),
        duration: Optional[str] = Form(None),
        type_of_event: Optional[str] = Form(None),
        capacity: Optional[str] = Form(None),
        reminders: Optional[str] = Form(None),
        status: Optional[str] = Form(None),
        created_by: Optional[str] = Form(None),
        image: Optional[UploadFile] = File(None),
        current_user: CurrentUser = Depends(get_current_user),
        db=Depends(get_db),
        media=Depends(get_media_storage)
) -> EventResponse:
    patch = _form_fields(
        title=title, description=description, date=date, venue=venue, time=time,
        duration=duration, type_of_event=type_of_event, capacity=capacity, reminders=reminders,
        status=status, created_by=created_by
    )
    event = await event_service.update_event(db, media, current_user, event_id, patch, await _read_upload(image))
    return EventResponse.from_document(event)


# -------------------
# DELETE EVENT
# -------------------
@router.delete("/{event_id}")
async def delete_event(
        event_id: str,
        current_user: CurrentUser = Depends(get_current_user),
        db=Depends(get_db),
        media=Depends(get_media_storage)
) -> dict[str, str]:
    await event_service.delete_event(db, media, current_user, event_id)
    return {"message": "Event deleted successfully"}


# -------------------
# APPROVE / REJECT EVENT
# -------------------
@router.put("/{event_id}/approve")
async def approve_event(
        event_id: str,
        current_user: CurrentUser = Depends(verify_admin),
        db=Depends(get_db)
):
    event = await event_service.approve_event(db, current_user, event_id)
    return {"message": "Event approved successfully", "event": EventResponse.from_document(event)}


@router.put("/{event_id}/reject")
async def reject_event(
        event_id: str,
        current_user: CurrentUser = Depends(verify_admin),
        db=Depends(get_db)
):
    event = await event_service.reject_event(db, current_user, event_id)
    return {"message": "Event rejected", "event": EventResponse.from_document(event)}


# -------------------
# JOIN / LEAVE
# -------------------
@router.post("/{event_id}/join")
async def join_event(
        event_id: str,
        current_user: CurrentUser = Depends(get_current_user),
        db=Depends(get_db)
):
    event = await event_service.join_event(db, current_user, event_id)
    return {"message": "Joined event successfully", "event": EventResponse.from_document(event)}


@router.post("/{event_id}/leave")
async def leave_event(
        event_id: str,
        current_user: CurrentUser = Depends(get_current_user),
        db=Depends(get_db)
):
    event = await event_service.leave_event(db, current_user, event_id)
    return {"message": "Left event successfully", "event": EventResponse.from_document(event)}
