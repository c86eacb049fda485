"""
Cloudinary configuration and the media lifecycle adapter for event images,
feedback photos and avatars.
"""
import os
import re
import uuid
import logging
from typing import Iterable, Optional

import cloudinary
import cloudinary.uploader
from dotenv import load_dotenv

from constants import MEDIA_CATEGORY_EVENT, MEDIA_CATEGORY_FEEDBACK, MEDIA_CATEGORY_AVATAR

load_dotenv()

logger = logging.getLogger(__name__)

# Cloudinary configuration
CLOUDINARY_CLOUD_NAME = os.getenv("CLOUDINARY_CLOUD_NAME")
CLOUDINARY_API_KEY = os.getenv("CLOUDINARY_API_KEY")
CLOUDINARY_API_SECRET = os.getenv("CLOUDINARY_API_SECRET")

# Upload policy per destination category
CATEGORY_OPTIONS = {
    MEDIA_CATEGORY_EVENT: {
        "folder": "eventure/events",
        "prefix": "event",
        "transformation": [{"width": 1200, "height": 1200, "crop": "limit"}],
    },
    MEDIA_CATEGORY_FEEDBACK: {
        "folder": "eventure/feedback",
        "prefix": "feedback",
        "transformation": [
            {"width": 1200, "height": 1200, "crop": "limit"},
            {"quality": "auto:good"},
        ],
    },
    MEDIA_CATEGORY_AVATAR: {
        "folder": "eventure/avatars",
        "prefix": "avatar",
        "transformation": [
            {"width": 400, "height": 400, "crop": "fill", "gravity": "face"},
            {"quality": "auto:good"},
        ],
    },
}

_VERSION_SEGMENT = re.compile(r"v\d+")


class MediaStorageError(Exception):
    """Raised when the external media store rejects or fails an operation."""


def is_cloudinary_url(url: str) -> bool:
    """
    Check if a URL is a Cloudinary URL

    Args:
        url: Image URL to check

    Returns:
        bool: True if URL is from Cloudinary
    """
    return bool(url) and (url.startswith("http://res.cloudinary.com/") or url.startswith("https://res.cloudinary.com/"))


class CloudinaryMediaStorage:
    """Store-and-fetch-by-URL adapter over the Cloudinary SDK."""

    def __init__(self, cloud_name: str = None, api_key: str = None, api_secret: str = None):
        self.cloud_name = cloud_name or CLOUDINARY_CLOUD_NAME
        self.api_key = api_key or CLOUDINARY_API_KEY
        self.api_secret = api_secret or CLOUDINARY_API_SECRET
        cloudinary.config(
            cloud_name=self.cloud_name,
            api_key=self.api_key,
            api_secret=self.api_secret
        )

    @property
    def configured(self) -> bool:
        return all([self.cloud_name, self.api_key, self.api_secret])

    def store(self, data: bytes, category: str) -> str:
        """
        Upload a file to Cloudinary under the folder of its category.

        Args:
            data: File bytes
            category: One of the MEDIA_CATEGORY_* constants

        Returns:
            str: The secure URL of the stored file

        Raises:
            MediaStorageError: If Cloudinary is not configured or the upload fails
        """
        if category not in CATEGORY_OPTIONS:
            raise MediaStorageError(f"Unknown media category: {category}")
        if not self.configured:
            raise MediaStorageError("Cloudinary credentials not configured. Please set CLOUDINARY_CLOUD_NAME, CLOUDINARY_API_KEY, and CLOUDINARY_API_SECRET in .env file")

        options = CATEGORY_OPTIONS[category]
        try:
            result = cloudinary.uploader.upload(
                data,
                folder=options["folder"],
                public_id=f"{options['prefix']}-{uuid.uuid4()}",
                resource_type="image",
                transformation=options["transformation"],
                overwrite=False,
                invalidate=True
            )
        except Exception as e:
            raise MediaStorageError(f"Failed to upload image to Cloudinary: {str(e)}") from e
        return result["secure_url"]

    def derive_id(self, url: str) -> Optional[str]:
        """
        Extract the Cloudinary public id from a delivery URL.

        https://res.cloudinary.com/demo/image/upload/v123/eventure/feedback/feedback-1.jpg
        resolves to ``eventure/feedback/feedback-1``. Returns None for URLs
        that were not issued by Cloudinary.
        """
        if not is_cloudinary_url(url) or "/upload/" not in url:
            return None
        segments = url.split("/upload/", 1)[1].split("?", 1)[0].split("/")
        # Transformations and the version come before the public id
        for index, segment in enumerate(segments):
            if _VERSION_SEGMENT.fullmatch(segment):
                segments = segments[index + 1:]
                break
        if not segments or not segments[-1]:
            return None
        segments[-1] = segments[-1].rsplit(".", 1)[0]
        return "/".join(segments)

    def delete(self, url: str) -> bool:
        """Delete a stored file by URL. Returns True when Cloudinary confirms removal."""
        public_id = self.derive_id(url)
        if public_id is None:
            logger.warning(f"Cannot derive a Cloudinary public id from {url}; skipping delete")
            return False
        try:
            result = cloudinary.uploader.destroy(public_id)
        except Exception as e:
            raise MediaStorageError(f"Failed to delete {public_id} from Cloudinary: {str(e)}") from e
        logger.info(f"Deleted from Cloudinary: {public_id} ({result.get('result')})")
        return result.get("result") == "ok"


def delete_quietly(media, urls: Iterable[str]) -> int:
    """
    Best-effort removal of stored files. Every URL is attempted once;
    failures are logged and never raised.

    Returns:
        int: Number of files the store confirmed as deleted
    """
    deleted = 0
    for url in urls:
        if not url:
            continue
        try:
            if media.delete(url):
                deleted += 1
            else:
                logger.warning(f"Media store did not confirm deletion of {url}")
        except Exception as e:
            logger.warning(f"Failed to delete media {url}: {e}")
    return deleted


_media_storage = None


def get_media_storage() -> CloudinaryMediaStorage:
    """FastAPI dependency returning the shared media adapter."""
    global _media_storage
    if _media_storage is None:
        _media_storage = CloudinaryMediaStorage()
    return _media_storage
