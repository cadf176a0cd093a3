from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from dmchat.config import Settings
from dmchat.errors import AuthenticationFailure
from dmchat.realtime.core import RealtimeCore
from dmchat.schemas.user import User
from dmchat.services.chat_service import ChatService
from dmchat.services.user_service import UserService
from dmchat.utils.security import decode_access_token


bearer_scheme = HTTPBearer(auto_error=False)


def get_settings_dependency(request: Request) -> Settings:
    return request.app.state.settings


def get_chat_service(request: Request) -> ChatService:
    return request.app.state.chat_service


def get_user_service(request: Request) -> UserService:
    return request.app.state.user_service


def get_realtime(request: Request) -> RealtimeCore:
    return request.app.state.realtime


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    settings: Settings = Depends(get_settings_dependency),
    users: UserService = Depends(get_user_service),
) -> User:
    unauthorized = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Not authenticated",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if credentials is None:
        raise unauthorized
    try:
        payload = decode_access_token(credentials.credentials, settings)
    except AuthenticationFailure:
        raise unauthorized
    user = await users.get_user(payload.sub)
    if user is None:
        raise unauthorized
    return user
