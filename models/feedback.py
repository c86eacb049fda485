from datetime import datetime
from enum import Enum
from typing import Annotated, Dict, List, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, EmailStr, Field, StringConstraints, field_validator

from constants import MIN_RATING, MAX_RATING, MAX_COMMENT_LENGTH, FEEDBACK_TYPE_EVENT
from models.user_model import UserSummary


class FeedbackCategory(str, Enum):
    IDEA = "idea"
    ISSUE = "issue"
    PRAISE = "praise"
    COMPLAINT = "complaint"
    SUGGESTION = "suggestion"
    BUG = "bug"
    FEATURE = "feature"
    UI = "ui"
    OTHER = "other"


class FeedbackSort(str, Enum):
    RECENT = "recent"
    OLDEST = "oldest"
    HIGHEST = "highest"
    LOWEST = "lowest"
    MOST_HELPFUL = "mostHelpful"


def empty_to_none(value):
    if isinstance(value, str) and not value.strip():
        return None
    return value


def default_category(value):
    return value or FeedbackCategory.IDEA


Rating = Annotated[int, Field(ge=MIN_RATING, le=MAX_RATING)]
Comment = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=MAX_COMMENT_LENGTH)]
ContactEmail = Annotated[Optional[EmailStr], BeforeValidator(empty_to_none)]


class FeedbackCreate(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    rating: Rating
    comment: Comment
    type: Annotated[FeedbackCategory, BeforeValidator(default_category)] = FeedbackCategory.IDEA
    email: ContactEmail = None

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, value):
        return value.lower() if value else value


class FeedbackUpdate(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    rating: Optional[Rating] = None
    comment: Optional[Comment] = None
    type: Optional[FeedbackCategory] = None


class FeedbackResponse(BaseModel):
    feedback_id: str
    event_id: Optional[str] = None
    feedback_type: str
    user_id: str
    user: Optional[UserSummary] = None
    rating: int
    comment: str
    type: FeedbackCategory
    email: Optional[str] = None
    photos: List[str] = []
    helpful_count: int = 0
    marked_helpful_by: List[str] = []
    report_count: int = 0
    flagged: bool = False
    verified: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_document(cls, feedback: dict, author: UserSummary = None) -> "FeedbackResponse":
        return cls(
            feedback_id=str(feedback["_id"]),
            event_id=feedback.get("event"),
            feedback_type=feedback.get("feedback_type", FEEDBACK_TYPE_EVENT),
            user_id=str(feedback["user"]),
            user=author,
            rating=feedback["rating"],
            comment=feedback["comment"],
            type=feedback.get("type", FeedbackCategory.IDEA),
            email=feedback.get("email"),
            photos=feedback.get("photos", []),
            helpful_count=feedback.get("helpful_count", 0),
            marked_helpful_by=feedback.get("marked_helpful_by", []),
            report_count=len(feedback.get("reports", [])),
            flagged=feedback.get("flagged", False),
            verified=feedback.get("verified", False),
            created_at=feedback.get("created_at"),
            updated_at=feedback.get("updated_at"),
        )


class RatingSummary(BaseModel):
    distribution: Dict[int, int]
    total: int
    average_rating: float


class FeedbackListResponse(BaseModel):
    items: List[FeedbackResponse]
    total: int
    page: int
    page_size: int
    total_pages: int
    has_next: bool
    has_previous: bool
    summary: RatingSummary


class HelpfulToggleResponse(BaseModel):
    helpful_count: int
    marked: bool


class ReportResponse(BaseModel):
    report_count: int
    flagged: bool


class FeedbackEligibility(BaseModel):
    """Answer of the can-submit probe; mirrors the checks run on submission."""
    can_submit: bool
    has_joined: bool
    event_ended: bool
    already_submitted: bool
    reason: Optional[str] = None
    policy: str
