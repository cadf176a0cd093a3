import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from bson import ObjectId
from bson.errors import InvalidId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING

from dmchat.models.user import UserDocument
from dmchat.repositories.base import BaseUserRepository
from dmchat.schemas.user import User


def to_object_id(value: str) -> Optional[ObjectId]:
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return None


class UserRepository(BaseUserRepository):

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._collection = db.get_collection("users")

    async def ensure_indexes(self) -> None:
        await self._collection.create_index([("username", ASCENDING)], unique=True)
        await self._collection.create_index([("email", ASCENDING)], unique=True)

    @staticmethod
    def _to_user(doc: UserDocument) -> User:
        data: Dict[str, Any] = dict(doc)
        data["id"] = str(data.pop("_id"))
        return User.model_validate(data)

    async def create_user(self, username: str, name: str, email: str, avatar: Optional[str] = None) -> User:
        now = datetime.now(timezone.utc)
        doc: UserDocument = {
            "username": username,
            "name": name,
            "email": email,
            "avatar": avatar,
            "is_online": False,
            "last_active": now,
            "created_at": now,
        }
        result = await self._collection.insert_one(doc)
        doc["_id"] = result.inserted_id
        return self._to_user(doc)

    async def get_user_by_id(self, user_id: str) -> Optional[User]:
        oid = to_object_id(user_id)
        if oid is None:
            return None
        doc = await self._collection.find_one({"_id": oid})
        return self._to_user(doc) if doc else None

    async def set_status(self, user_id: str, is_online: bool) -> None:
        oid = to_object_id(user_id)
        if oid is None:
            return
        await self._collection.update_one(
            {"_id": oid},
            {"$set": {"is_online": is_online, "last_active": datetime.now(timezone.utc)}},
        )

    async def search_users(self, query: str, exclude_user_id: str, limit: int = 10) -> List[User]:
        needle = query.strip()
        if not needle:
            return []
        pattern = {"$regex": re.escape(needle), "$options": "i"}
        conditions: List[Dict[str, Any]] = [
            {"$or": [{"username": pattern}, {"name": pattern}, {"email": pattern}]},
        ]
        exclude = to_object_id(exclude_user_id)
        if exclude is not None:
            conditions.append({"_id": {"$ne": exclude}})
        cursor = self._collection.find({"$and": conditions}).limit(limit)
        return [self._to_user(doc) async for doc in cursor]
