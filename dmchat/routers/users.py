from fastapi import APIRouter, Depends, HTTPException, Query

from dmchat.schemas.user import User, UserPublic
from dmchat.services.user_service import UserService, to_public
from dmchat.utils.dependencies import get_current_user, get_user_service


router = APIRouter(prefix="/users", tags=["user"])


@router.get("/me", response_model=UserPublic)
async def me(current_user: User = Depends(get_current_user)):
    return to_public(current_user)


@router.get("/search")
async def search_users(q: str = Query("", max_length=100), current_user: User = Depends(get_current_user), service: UserService = Depends(get_user_service)):
    users = await service.search_users(q, current_user.id)
    return {"users": users}


@router.get("/{user_id}", response_model=UserPublic)
async def get_user(user_id: str, current_user: User = Depends(get_current_user), service: UserService = Depends(get_user_service)):
    user = await service.get_user(user_id)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return to_public(user)
