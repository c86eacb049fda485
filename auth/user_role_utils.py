from fastapi import Depends

from auth.auth_utils import get_current_user
from models.user_model import CurrentUser
from utils.exceptions import ForbiddenException


async def verify_admin(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if not current_user.is_admin:
        raise ForbiddenException("Admins only")
    return current_user
