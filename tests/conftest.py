import os

# Must be set before the application modules are imported
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

import pytest
import pytest_asyncio
from bson import ObjectId
from mongomock_motor import AsyncMongoMockClient

from database import create_indexes
from models.user_model import CurrentUser, Role
from utils.cloudinary_config import MediaStorageError


class FakeMediaStorage:
    """In-memory stand-in for the Cloudinary adapter."""

    def __init__(self):
        self.stored = []
        self.deleted = []
        self.fail_store_after = None
        self.fail_delete = set()
        self._uploads = 0

    def store(self, data, category):
        if self.fail_store_after is not None and self._uploads >= self.fail_store_after:
            raise MediaStorageError("upload rejected")
        self._uploads += 1
        url = f"https://res.cloudinary.com/demo/image/upload/v1/eventure/{category}/{category}-{self._uploads}.jpg"
        self.stored.append(url)
        return url

    def delete(self, url):
        self.deleted.append(url)
        if url in self.fail_delete:
            raise MediaStorageError("destroy failed")
        if url in self.stored:
            self.stored.remove(url)
            return True
        return False


def make_user(role: Role = Role.USER) -> CurrentUser:
    return CurrentUser(id=str(ObjectId()), role=role)


@pytest_asyncio.fixture
async def db():
    database = AsyncMongoMockClient()["eventure_test"]
    await create_indexes(database)
    yield database


@pytest.fixture
def media():
    return FakeMediaStorage()


@pytest.fixture
def admin():
    return make_user(Role.ADMIN)


@pytest.fixture
def organizer():
    return make_user()


@pytest.fixture
def alice():
    return make_user()


@pytest.fixture
def bob():
    return make_user()


@pytest.fixture
def carol():
    return make_user()


@pytest.fixture
def demo_fields():
    return {
        "title": "Demo",
        "description": "d",
        "date": "2030-01-01",
        "venue": "Hall A",
        "capacity": 2,
    }
