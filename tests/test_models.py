from datetime import datetime

import pytest
from pydantic import ValidationError

from conftest import FakeMediaStorage
from models.event import EventCreate, EventResponse
from models.feedback import FeedbackCreate, FeedbackResponse
from utils.cloudinary_config import CloudinaryMediaStorage, delete_quietly, is_cloudinary_url


class TestEventModels:

    def test_date_must_be_real_calendar_day(self):
        with pytest.raises(ValidationError):
            EventCreate(title="t", description="d", date="2030-02-30", venue="v")
        with pytest.raises(ValidationError):
            EventCreate(title="t", description="d", date="01/01/2030", venue="v")

    def test_time_format(self):
        assert EventCreate(title="t", description="d", date="2030-01-01", venue="v", time="09:30").time == "09:30"
        with pytest.raises(ValidationError):
            EventCreate(title="t", description="d", date="2030-01-01", venue="v", time="9:30pm")

    def test_title_length_capped(self):
        with pytest.raises(ValidationError):
            EventCreate(title="x" * 101, description="d", date="2030-01-01", venue="v")

    def test_form_values_are_coerced(self):
        event = EventCreate(title=" t ", description="d", date="2030-01-01", venue="v", capacity="12", reminders="")
        assert event.title == "t"
        assert event.capacity == 12
        assert event.reminders == []

    def test_derived_fields(self):
        doc = {
            "_id": "abc",
            "title": "t",
            "description": "d",
            "date": datetime(2030, 1, 1),
            "venue": "v",
            "capacity": 3,
            "status": "Approved",
            "created_by": "u1",
            "participants": ["u2"],
        }
        view = EventResponse.from_document(doc, now=datetime(2031, 1, 1))

        assert view.total_participants == 1
        assert view.remaining_slots == 2
        assert view.is_full is False
        assert view.has_passed is True


class TestFeedbackModels:

    def test_category_defaults_to_idea(self):
        assert FeedbackCreate(rating=3, comment="ok").type == "idea"
        assert FeedbackCreate(rating=3, comment="ok", type="").type == "idea"

    def test_unknown_category_rejected(self):
        with pytest.raises(ValidationError):
            FeedbackCreate(rating=3, comment="ok", type="rant")

    def test_blank_email_is_dropped(self):
        assert FeedbackCreate(rating=3, comment="ok", email="  ").email is None

    def test_response_counts_reports(self):
        doc = {"_id": "f1", "user": "u1", "rating": 4, "comment": "ok", "reports": [{"reported_by": "u2"}]}
        view = FeedbackResponse.from_document(doc)
        assert view.report_count == 1
        assert view.feedback_type == "event"


class TestMediaStorage:

    def test_derive_id_strips_version_and_extension(self):
        storage = CloudinaryMediaStorage()
        url = "https://res.cloudinary.com/demo/image/upload/v1712345/eventure/feedback/feedback-1.jpg"
        assert storage.derive_id(url) == "eventure/feedback/feedback-1"

    def test_derive_id_skips_transformations(self):
        storage = CloudinaryMediaStorage()
        url = "https://res.cloudinary.com/demo/image/upload/c_limit,w_1200/v9/eventure/events/event-7.png"
        assert storage.derive_id(url) == "eventure/events/event-7"

    def test_foreign_urls_have_no_id(self):
        storage = CloudinaryMediaStorage()
        assert not is_cloudinary_url("https://example.com/a.jpg")
        assert storage.derive_id("https://example.com/upload/v1/a.jpg") is None

    def test_delete_quietly_attempts_every_url(self):
        media = FakeMediaStorage()
        urls = [media.store(b"a", "feedback"), media.store(b"b", "feedback"), None]
        media.fail_delete.add(urls[0])

        assert delete_quietly(media, urls) == 1
        assert media.deleted == urls[:2]
