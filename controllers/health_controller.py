import logging

from fastapi import APIRouter, Depends
from pymongo.errors import PyMongoError

from database import get_db

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["health"])


@router.get("/database")
async def health_check(db=Depends(get_db)):
    try:
        await db.command("ping")
        return {"status": "MongoDB connected", "database": db.name}
    except PyMongoError as e:
        logger.error(f"Database ping failed: {e}")
        return {"status": "MongoDB connection failed", "error": str(e)}
