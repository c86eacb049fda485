"""
HTTP surface tests: routing, token handling and the error envelope.
"""
import asyncio

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from mongomock_motor import AsyncMongoMockClient

from auth.auth_utils import ALGORITHM, SECRET_KEY
from conftest import make_user
from database import create_indexes, get_db
from main import app
from models.user_model import Role
from utils.cloudinary_config import get_media_storage


def auth_header(user=None, role=None):
    claims = {"sub": user.id, "role": role or user.role.value}
    return {"Authorization": f"Bearer {jwt.encode(claims, SECRET_KEY, algorithm=ALGORITHM)}"}


@pytest.fixture
def client(media):
    database = AsyncMongoMockClient()["eventure_api_test"]
    asyncio.run(create_indexes(database))
    app.dependency_overrides[get_db] = lambda: database
    app.dependency_overrides[get_media_storage] = lambda: media
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def users():
    return {
        "admin": make_user(Role.ADMIN),
        "organizer": make_user(),
        "alice": make_user(),
        "bob": make_user(),
    }


def create_event(client, user, **overrides):
    form = {"title": "Demo", "description": "d", "date": "2030-01-01", "venue": "Hall A", "capacity": "2"}
    form.update(overrides)
    return client.post("/api/events", data=form, headers=auth_header(user))


def approved_event_id(client, users):
    event_id = create_event(client, users["organizer"]).json()["event_id"]
    response = client.put(f"/api/events/{event_id}/approve", headers=auth_header(users["admin"]))
    assert response.status_code == 200
    return event_id


class TestAuthentication:

    def test_missing_token_is_unauthorized(self, client):
        assert client.get("/api/events").status_code == 401

    def test_bad_signature_is_unauthorized(self, client, users):
        token = jwt.encode({"sub": users["alice"].id, "role": "User"}, "not-the-key", algorithm="HS256")
        response = client.get("/api/events", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401
        assert response.json()["error_code"] == "UNAUTHORIZED"

    def test_unknown_role_is_unauthorized(self, client, users):
        response = client.get("/api/events", headers=auth_header(users["alice"], role="Superuser"))
        assert response.status_code == 401


class TestEventRoutes:

    def test_create_returns_pending_event(self, client, users):
        response = create_event(client, users["organizer"])

        assert response.status_code == 201
        body = response.json()
        assert body["status"] == "Pending"
        assert body["participants"] == []
        assert body["remaining_slots"] == 2

    def test_create_reports_field_errors(self, client, users):
        response = create_event(client, users["organizer"], date="2030-13-01", time="noon")

        assert response.status_code == 400
        body = response.json()
        assert body["error_code"] == "VALIDATION_ERROR"
        assert {"date", "time"} <= set(body["errors"])

    def test_approve_requires_admin(self, client, users):
        event_id = create_event(client, users["organizer"]).json()["event_id"]
        response = client.put(f"/api/events/{event_id}/approve", headers=auth_header(users["organizer"]))

        assert response.status_code == 403
        assert response.json()["error_code"] == "FORBIDDEN"

    def test_listing_hides_pending_events(self, client, users):
        approved_event_id(client, users)
        create_event(client, users["organizer"], title="Pending one")

        listing = client.get("/api/events", headers=auth_header(users["alice"])).json()
        assert listing["total"] == 1
        assert listing["items"][0]["title"] == "Demo"

        admin_listing = client.get("/api/events", headers=auth_header(users["admin"])).json()
        assert admin_listing["total"] == 2

    def test_join_and_full_event(self, client, users):
        event_id = approved_event_id(client, users)

        for name in ("alice", "bob"):
            assert client.post(f"/api/events/{event_id}/join", headers=auth_header(users[name])).status_code == 200

        response = client.post(f"/api/events/{event_id}/join", headers=auth_header(users["organizer"]))
        assert response.status_code == 409
        assert response.json()["error_code"] == "CONFLICT"

        event = client.get(f"/api/events/{event_id}", headers=auth_header(users["alice"])).json()
        assert event["is_full"] is True

    def test_malformed_id_is_not_found(self, client, users):
        response = client.get("/api/events/not-an-id", headers=auth_header(users["alice"]))
        assert response.status_code == 404


class TestFeedbackRoutes:

    def test_review_lifecycle(self, client, users):
        event_id = approved_event_id(client, users)
        alice, bob = auth_header(users["alice"]), auth_header(users["bob"])

        created = client.post(f"/api/feedback/{event_id}", data={"rating": "4", "comment": "Good", "type": "praise"}, headers=alice)
        assert created.status_code == 201
        review_id = created.json()["feedback_id"]
        assert created.json()["type"] == "praise"

        duplicate = client.post(f"/api/feedback/{event_id}", data={"rating": "5", "comment": "Again"}, headers=alice)
        assert duplicate.status_code == 409
        assert duplicate.json()["reason"] == "alreadySubmitted"

        probe = client.get(f"/api/feedback/{event_id}/can-submit", headers=alice).json()
        assert probe["can_submit"] is False

        helpful = client.post(f"/api/feedback/{event_id}/{review_id}/helpful", headers=bob).json()
        assert helpful == {"helpful_count": 1, "marked": True}

        report = client.post(f"/api/feedback/{event_id}/{review_id}/report", json={"reason": "spam"}, headers=bob).json()
        assert report == {"report_count": 1, "flagged": False}

        listing = client.get(f"/api/feedback/{event_id}", headers=alice).json()
        assert listing["total"] == 1
        assert listing["summary"]["average_rating"] == 4.0
        assert listing["items"][0]["helpful_count"] == 1

        edited = client.put(f"/api/feedback/{event_id}/{review_id}", json={"rating": 2}, headers=alice)
        assert edited.status_code == 200
        event = client.get(f"/api/events/{event_id}", headers=alice).json()
        assert event["average_rating"] == 2.0

        assert client.delete(f"/api/feedback/{event_id}/{review_id}", headers=bob).status_code == 403
        assert client.delete(f"/api/feedback/{event_id}/{review_id}", headers=alice).status_code == 200

    def test_review_photos_are_uploaded(self, client, users, media):
        event_id = approved_event_id(client, users)
        files = [("photos", ("a.jpg", b"img-a", "image/jpeg")), ("photos", ("b.jpg", b"img-b", "image/jpeg"))]

        response = client.post(
            f"/api/feedback/{event_id}",
            data={"rating": "5", "comment": "Pictures"},
            files=files,
            headers=auth_header(users["alice"])
        )

        assert response.status_code == 201
        assert response.json()["photos"] == media.stored

    def test_report_without_reason_is_rejected(self, client, users):
        event_id = approved_event_id(client, users)
        review_id = client.post(
            f"/api/feedback/{event_id}", data={"rating": "3", "comment": "ok"}, headers=auth_header(users["alice"])
        ).json()["feedback_id"]

        response = client.post(f"/api/feedback/{event_id}/{review_id}/report", json={}, headers=auth_header(users["bob"]))
        assert response.status_code == 400

    def test_site_feedback(self, client, users):
        response = client.post("/api/feedback/website", data={"rating": "5", "comment": "Nice site"}, headers=auth_header(users["alice"]))
        assert response.status_code == 201
        assert response.json()["feedback_type"] == "website"

        assert client.get("/api/feedback/website", headers=auth_header(users["alice"])).status_code == 403
        listing = client.get("/api/feedback/website", headers=auth_header(users["admin"])).json()
        assert listing["total"] == 1

    def test_reviews_of_pending_event_are_hidden(self, client, users):
        event_id = create_event(client, users["organizer"]).json()["event_id"]

        assert client.get(f"/api/feedback/{event_id}").status_code == 401
        assert client.get(f"/api/feedback/{event_id}", headers=auth_header(users["alice"])).status_code == 403

        owner_view = client.get(f"/api/feedback/{event_id}", headers=auth_header(users["organizer"]))
        assert owner_view.status_code == 200
        assert owner_view.json()["total"] == 0
