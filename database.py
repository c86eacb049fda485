# database.py
import os
import logging
from bson import ObjectId
from bson.errors import InvalidId
from dotenv import load_dotenv
from motor.motor_asyncio import AsyncIOMotorClient

from utils.exceptions import NotFoundException

load_dotenv()

logger = logging.getLogger(__name__)

MONGO_URI = os.getenv("MONGO_URI", "mongodb://localhost:27017")
MONGO_DB_NAME = os.getenv("MONGO_DB_NAME", "eventure_db")
client = AsyncIOMotorClient(MONGO_URI)
db = client[MONGO_DB_NAME]

#tables
EVENTS = "events"
FEEDBACK = "feedback"
USERS = "users"

events_collection = db[EVENTS]
feedback_collection = db[FEEDBACK]
users_collection = db[USERS]


def get_db():
    """FastAPI dependency returning the application database handle."""
    return db


async def create_indexes(database=None):
    """
    Create database indexes for optimal query performance.
    This should be called once at application startup.

    The unique partial index on feedback (event, user) is what guarantees a
    single event review per user, even for concurrent submissions.
    """
    database = database if database is not None else db
    try:
        # Events collection indexes
        await database[EVENTS].create_index("status")
        await database[EVENTS].create_index("created_by")
        await database[EVENTS].create_index("date")
        await database[EVENTS].create_index([("status", 1), ("date", 1)])

        # Feedback collection indexes
        await database[FEEDBACK].create_index(
            [("event", 1), ("user", 1)],
            unique=True,
            partialFilterExpression={"feedback_type": "event"},
            name="unique_event_review_per_user",
        )
        await database[FEEDBACK].create_index("feedback_type")
        await database[FEEDBACK].create_index("created_at")
        await database[FEEDBACK].create_index("rating")
        await database[FEEDBACK].create_index("helpful_count")

        logger.info("Database indexes created successfully")
    except Exception as e:
        logger.warning(f"Error creating indexes: {e}")
        # Don't raise - allow app to continue if indexes already exist


def parse_object_id(value, resource: str) -> ObjectId:
    """Convert a path id to an ObjectId; ids that cannot exist are reported as not found."""
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        raise NotFoundException(resource, str(value))
