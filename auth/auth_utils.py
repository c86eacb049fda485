from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from jose import jwt, JWTError
from pydantic import ValidationError
from dotenv import load_dotenv
import logging
import os

from models.user_model import CurrentUser, Role
from utils.exceptions import UnauthorizedException

load_dotenv()

logger = logging.getLogger(__name__)

SECRET_KEY = os.getenv("SECRET_KEY")
if not SECRET_KEY:
    raise ValueError("SECRET_KEY environment variable is not set. Please set it in your .env file.")
ALGORITHM = os.getenv("ALGORITHM", "HS256")

# Tokens are issued by the account service; this API only verifies them
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/users/login")


def decode_access_token(token: str) -> CurrentUser:
    """Resolve the caller from a bearer token. Roles outside the Role enum are rejected."""
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        raise UnauthorizedException("Invalid or expired token")

    user_id = payload.get("sub") or payload.get("id")
    if user_id is None:
        raise UnauthorizedException("Invalid authentication token")
    try:
        return CurrentUser(id=str(user_id), role=payload.get("role", Role.USER.value))
    except ValidationError:
        logger.warning(f"Rejected token with unknown role {payload.get('role')!r}")
        raise UnauthorizedException("Invalid authentication token")


# Dependency to get current user
async def get_current_user(token: str = Depends(oauth2_scheme)) -> CurrentUser:
    return decode_access_token(token)
