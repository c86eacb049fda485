# models/user_model.py
from enum import Enum
from pydantic import BaseModel
from typing import Optional


class Role(str, Enum):
    USER = "User"
    ADMIN = "Admin"


class CurrentUser(BaseModel):
    """Authenticated caller resolved from the bearer token."""
    id: str
    role: Role = Role.USER

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


class UserSummary(BaseModel):
    """Author fields expanded onto feedback for display."""
    user_id: str
    name: Optional[str] = None
    email: Optional[str] = None
    avatar: Optional[str] = None
