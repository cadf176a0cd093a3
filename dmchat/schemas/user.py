from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr


class UserBase(BaseModel):

    username: str
    name: str
    email: EmailStr


class User(UserBase):

    id: str
    avatar: Optional[str] = None
    is_online: bool = False
    last_active: datetime
    created_at: datetime


class UserPublic(UserBase):

    id: str
    avatar: Optional[str] = None
    is_online: bool = False
    last_active: Optional[datetime] = None


class PresenceStatus(BaseModel):

    user_id: str
    online: bool
    last_active: Optional[datetime] = None


class TokenPayload(BaseModel):

    sub: str
    exp: int
