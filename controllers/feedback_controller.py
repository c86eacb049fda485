from fastapi import APIRouter, Body, Depends, File, Form, Query, Request, UploadFile
from typing import List, Optional

from auth.auth_utils import get_current_user
from auth.user_role_utils import verify_admin
from constants import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, MIN_RATING, MAX_RATING
from database import get_db
from middleware.rate_limiter import limiter, RATE_LIMIT_FEEDBACK, RATE_LIMIT_REPORT
from models.feedback import (
    FeedbackEligibility,
    FeedbackListResponse,
    FeedbackResponse,
    FeedbackSort,
    HelpfulToggleResponse,
    ReportResponse,
)
from models.user_model import CurrentUser
from services import feedback_service
from utils.cloudinary_config import get_media_storage
from utils.pagination import create_paginated_response, PaginatedResponse

router = APIRouter(prefix="/feedback", tags=["feedback"])


def _feedback_payload(rating, comment, category, email) -> dict:
    payload = {"rating": rating, "comment": comment, "type": category, "email": email}
    return {key: value for key, value in payload.items() if value is not None}


async def _read_photos(photos: List[UploadFile]) -> List[bytes]:
    return [await photo.read() for photo in photos or [] if photo.filename]


def _with_author(feedback: dict, authors: dict) -> FeedbackResponse:
    return FeedbackResponse.from_document(feedback, authors.get(str(feedback["user"])))


# -------------------
# WEBSITE FEEDBACK
# -------------------
@router.post("/website", response_model=FeedbackResponse, status_code=201)
@limiter.limit(RATE_LIMIT_FEEDBACK)
async def submit_website_feedback(
        request: Request,
        rating: Optional[str] = Form(None),
        comment: Optional[str] = Form(None),
        category: Optional[str] = Form(None, alias="type"),
        email: Optional[str] = Form(None),
        photos: List[UploadFile] = File([]),
        current_user: CurrentUser = Depends(get_current_user),
        db=Depends(get_db),
        media=Depends(get_media_storage)
) -> FeedbackResponse:
    feedback = await feedback_service.submit_feedback(
        db, media, current_user, None,
        _feedback_payload(rating, comment, category, email),
        await _read_photos(photos)
    )
    return FeedbackResponse.from_document(feedback)


@router.get("/website", response_model=PaginatedResponse[FeedbackResponse])
async def website_feedback(
        page: Optional[int] = Query(1, ge=1),
        page_size: Optional[int] = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
        current_user: CurrentUser = Depends(verify_admin),
        db=Depends(get_db)
) -> PaginatedResponse[FeedbackResponse]:
    feedback, total, authors = await feedback_service.list_site_feedback(db, current_user, page, page_size)
    return create_paginated_response(
        items=[_with_author(item, authors) for item in feedback],
        total=total,
        page=page,
        page_size=page_size
    )


# -------------------
# EVENT FEEDBACK
# -------------------
@router.get("/{event_id}/can-submit", response_model=FeedbackEligibility)
async def can_submit_feedback(
        event_id: str,
        current_user: CurrentUser = Depends(get_current_user),
        db=Depends(get_db)
) -> FeedbackEligibility:
    return await feedback_service.can_submit_feedback(db, current_user, event_id)


@router.get("/{event_id}", response_model=FeedbackListResponse)
async def event_feedback(
        event_id: str,
        rating: Optional[int] = Query(None, ge=MIN_RATING, le=MAX_RATING, description="Only reviews with this star rating"),
        search: Optional[str] = Query(None, description="Case-insensitive text search on comments"),
        sort: FeedbackSort = Query(FeedbackSort.RECENT),
        page: Optional[int] = Query(1, ge=1),
        page_size: Optional[int] = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
        current_user: CurrentUser = Depends(get_current_user),
        db=Depends(get_db)
) -> FeedbackListResponse:
    feedback, total, authors, summary = await feedback_service.list_feedback(
        db, current_user, event_id, rating=rating, search=search, sort=sort, page=page, page_size=page_size
    )
    paginated = create_paginated_response(
        items=[_with_author(item, authors) for item in feedback],
        total=total,
        page=page,
        page_size=page_size
    )
    return FeedbackListResponse(**dict(paginated), summary=summary)


@router.post("/{event_id}", response_model=FeedbackResponse, status_code=201)
@limiter.limit(RATE_LIMIT_FEEDBACK)
async def submit_event_feedback(
        request: Request,
        event_id: str,
        rating: Optional[str] = Form(None),
        comment: Optional[str] = Form(None),
        category: Optional[str] = Form(None, alias="type"),
        email: Optional[str] = Form(None),
        photos: List[UploadFile] = File([]),
        current_user: CurrentUser = Depends(get_current_user),
        db=Depends(get_db),
        media=Depends(get_media_storage)
) -> FeedbackResponse:
    feedback = await feedback_service.submit_feedback(
        db, media, current_user, event_id,
        _feedback_payload(rating, comment, category, email),
        await _read_photos(photos)
    )
    return FeedbackResponse.from_document(feedback)


@router.put("/{event_id}/{review_id}", response_model=FeedbackResponse)
async def update_feedback(
        event_id: str,
        review_id: str,
        data: dict = Body(...),
        current_user: CurrentUser = Depends(get_current_user),
        db=Depends(get_db)
) -> FeedbackResponse:
    feedback = await feedback_service.update_feedback(db, current_user, review_id, data, event_id=event_id)
    return FeedbackResponse.from_document(feedback)


@router.delete("/{event_id}/{review_id}")
async def delete_feedback(
        event_id: str,
        review_id: str,
        current_user: CurrentUser = Depends(get_current_user),
        db=Depends(get_db),
        media=Depends(get_media_storage)
) -> dict[str, str]:
    await feedback_service.delete_feedback(db, media, current_user, review_id, event_id=event_id)
    return {"message": "Feedback deleted successfully"}


@router.post("/{event_id}/{review_id}/helpful", response_model=HelpfulToggleResponse)
async def mark_helpful(
        event_id: str,
        review_id: str,
        current_user: CurrentUser = Depends(get_current_user),
        db=Depends(get_db)
) -> HelpfulToggleResponse:
    return await feedback_service.toggle_helpful(db, current_user, review_id, event_id=event_id)


@router.post("/{event_id}/{review_id}/report", response_model=ReportResponse)
@limiter.limit(RATE_LIMIT_REPORT)
async def report_feedback(
        request: Request,
        event_id: str,
        review_id: str,
        data: dict = Body(default={}),
        current_user: CurrentUser = Depends(get_current_user),
        db=Depends(get_db)
) -> ReportResponse:
    return await feedback_service.report_feedback(db, current_user, review_id, data.get("reason"), event_id=event_id)
