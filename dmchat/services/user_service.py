from typing import List, Optional

from dmchat.repositories.base import BaseUserRepository
from dmchat.schemas.user import User, UserPublic


class UserService:
    """User lookups for discovery, authentication and presence."""

    def __init__(self, user_repository: BaseUserRepository):
        self.user_repository = user_repository

    async def create_user(self, username: str, name: str, email: str, avatar: Optional[str] = None) -> User:
        return await self.user_repository.create_user(username=username, name=name, email=email, avatar=avatar)

    async def get_user(self, user_id: str) -> Optional[User]:
        return await self.user_repository.get_user_by_id(user_id)

    async def set_online(self, user_id: str, is_online: bool) -> None:
        """
        Persist the online flag.
        Only presence tracking calls this; clients never set it directly.
        """
        await self.user_repository.set_status(user_id, is_online)

    async def search_users(self, query: str, current_user_id: str, limit: int = 10) -> List[UserPublic]:
        users = await self.user_repository.search_users(query, exclude_user_id=current_user_id, limit=limit)
        return [to_public(user) for user in users]


def to_public(user: User) -> UserPublic:
    return UserPublic(
        id=user.id,
        username=user.username,
        name=user.name,
        email=user.email,
        avatar=user.avatar,
        is_online=user.is_online,
        last_active=user.last_active,
    )
