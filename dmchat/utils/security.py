from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

from dmchat.config import Settings, get_settings
from dmchat.errors import AuthenticationFailure
from dmchat.schemas.user import TokenPayload


def create_access_token(user_id: str, settings: Optional[Settings] = None, expires_minutes: int = 60) -> str:
    settings = settings or get_settings()
    expire = datetime.now(timezone.utc) + timedelta(minutes=expires_minutes)
    return jwt.encode({"sub": user_id, "exp": expire}, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str, settings: Optional[Settings] = None) -> TokenPayload:
    settings = settings or get_settings()
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
        return TokenPayload.model_validate(payload)
    except (jwt.PyJWTError, ValueError) as exc:
        raise AuthenticationFailure("Invalid access token") from exc
