from fastapi import APIRouter, Depends, HTTPException

from dmchat.realtime.core import RealtimeCore
from dmchat.schemas.user import PresenceStatus
from dmchat.services.user_service import UserService
from dmchat.utils.dependencies import get_current_user, get_realtime, get_user_service


router = APIRouter(prefix="/presence", tags=["chat"], dependencies=[Depends(get_current_user)])


@router.get("")
async def online_users(realtime: RealtimeCore = Depends(get_realtime)):
    return {"online": realtime.presence.online_identities()}


@router.get("/{user_id}", response_model=PresenceStatus)
async def presence(user_id: str, realtime: RealtimeCore = Depends(get_realtime), users: UserService = Depends(get_user_service)):
    """
    Online means a live bound connection right now; last_active is the last
    persisted presence change.
    """
    user = await users.get_user(user_id)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return PresenceStatus(user_id=user.id, online=realtime.presence.is_online(user.id), last_active=user.last_active)
