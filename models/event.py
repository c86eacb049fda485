import json
import re
from datetime import datetime
from enum import Enum
from typing import Annotated, Optional, List

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, StringConstraints

from constants import (
    DEFAULT_EVENT_CAPACITY,
    MAX_EVENT_TITLE_LENGTH,
    EVENT_STATUS_PENDING,
    EVENT_STATUS_APPROVED,
    EVENT_STATUS_REJECTED,
)
from utils.clock import utcnow

DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


class EventStatus(str, Enum):
    PENDING = EVENT_STATUS_PENDING
    APPROVED = EVENT_STATUS_APPROVED
    REJECTED = EVENT_STATUS_REJECTED


def parse_event_date(value):
    """Accept YYYY-MM-DD strings that name a real calendar day."""
    if value is None or isinstance(value, datetime):
        return value
    if not isinstance(value, str) or not DATE_PATTERN.match(value.strip()):
        raise ValueError("Date must be in YYYY-MM-DD format")
    try:
        return datetime.strptime(value.strip(), "%Y-%m-%d")
    except ValueError:
        raise ValueError("Date must be a valid calendar date")


def parse_event_time(value):
    if value is None or value == "":
        return None
    if not isinstance(value, str) or not TIME_PATTERN.match(value):
        raise ValueError("Time must be in HH:mm format")
    return value


def parse_reminders(value):
    # Multipart forms send reminders as a JSON encoded array
    if value is None or value == "":
        return []
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            raise ValueError("Invalid reminders format")
    if not isinstance(value, list):
        raise ValueError("Reminders must be an array")
    return value


def blank_to_none(value):
    if isinstance(value, str):
        return value.strip() or None
    return value


def default_capacity(value):
    return DEFAULT_EVENT_CAPACITY if value is None or value == "" else value


Title = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=MAX_EVENT_TITLE_LENGTH)]
RequiredText = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
EventDate = Annotated[datetime, BeforeValidator(parse_event_date)]
EventTime = Annotated[Optional[str], BeforeValidator(parse_event_time)]
Reminders = Annotated[List[str], BeforeValidator(parse_reminders)]
OptionalText = Annotated[Optional[str], BeforeValidator(blank_to_none)]
Capacity = Annotated[int, Field(gt=0)]


class EventCreate(BaseModel):
    title: Title
    description: RequiredText
    date: EventDate
    venue: RequiredText
    time: EventTime = None
    duration: OptionalText = None
    type_of_event: OptionalText = None
    capacity: Annotated[Capacity, BeforeValidator(default_capacity)] = DEFAULT_EVENT_CAPACITY
    reminders: Reminders = []


class EventUpdate(BaseModel):
    """Partial update. Unknown keys (created_by included) are dropped."""
    model_config = ConfigDict(use_enum_values=True)

    title: Optional[Title] = None
    description: Optional[RequiredText] = None
    date: Optional[EventDate] = None
    venue: Optional[RequiredText] = None
    time: EventTime = None
    duration: OptionalText = None
    type_of_event: OptionalText = None
    capacity: Optional[Capacity] = None
    reminders: Optional[Reminders] = None
    status: Optional[EventStatus] = None


class EventResponse(BaseModel):
    event_id: str
    title: str
    description: str
    date: datetime
    time: Optional[str] = None
    duration: Optional[str] = None
    venue: str
    type_of_event: Optional[str] = None
    image: Optional[str] = None
    capacity: int
    reminders: List[str] = []
    status: EventStatus
    created_by: str
    participants: List[str] = []
    average_rating: float = 0
    total_reviews: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    # Derived on read
    total_participants: int
    remaining_slots: int
    is_full: bool
    has_passed: bool

    @classmethod
    def from_document(cls, event: dict, now: datetime = None) -> "EventResponse":
        now = now or utcnow()
        participants = [str(p) for p in event.get("participants", [])]
        capacity = event.get("capacity", DEFAULT_EVENT_CAPACITY)
        slots = remaining_slots(capacity, participants)
        return cls(
            event_id=str(event["_id"]),
            title=event["title"],
            description=event["description"],
            date=event["date"],
            time=event.get("time"),
            duration=event.get("duration"),
            venue=event["venue"],
            type_of_event=event.get("type_of_event"),
            image=event.get("image"),
            capacity=capacity,
            reminders=event.get("reminders", []),
            status=event.get("status", EVENT_STATUS_PENDING),
            created_by=str(event["created_by"]),
            participants=participants,
            average_rating=event.get("average_rating", 0),
            total_reviews=event.get("total_reviews", 0),
            created_at=event.get("created_at"),
            updated_at=event.get("updated_at"),
            total_participants=len(participants),
            remaining_slots=slots,
            is_full=slots == 0,
            has_passed=has_passed(event["date"], now),
        )


def remaining_slots(capacity: int, participants: list) -> int:
    return max(0, capacity - len(participants))


def has_passed(event_date: datetime, now: datetime = None) -> bool:
    return (now or utcnow()) > event_date
