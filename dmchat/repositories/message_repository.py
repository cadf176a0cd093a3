from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from dmchat.models.message import MessageDocument
from dmchat.repositories.base import BaseMessageRepository
from dmchat.repositories.user_repository import to_object_id
from dmchat.schemas.message import Message, MessageKind


class MessageRepository(BaseMessageRepository):

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db

    @property
    def collection(self):
        return self._db["messages"]

    async def ensure_indexes(self) -> None:
        await self.collection.create_index([("sender_id", ASCENDING), ("receiver_id", ASCENDING), ("timestamp", ASCENDING)])
        await self.collection.create_index([("receiver_id", ASCENDING), ("read", ASCENDING)])

    @staticmethod
    def _to_message(doc: MessageDocument) -> Message:
        data: Dict[str, Any] = dict(doc)
        data["id"] = str(data.pop("_id"))
        return Message.model_validate(data)

    @staticmethod
    def _pair_query(user_a: str, user_b: str) -> Dict[str, Any]:
        return {
            "$or": [
                {"sender_id": user_a, "receiver_id": user_b},
                {"sender_id": user_b, "receiver_id": user_a},
            ]
        }

    @staticmethod
    def _unread_query(viewer_id: str, other_id: str) -> Dict[str, Any]:
        return {"sender_id": other_id, "receiver_id": viewer_id, "read": False}

    async def save_message(
        self,
        sender_id: str,
        receiver_id: str,
        content: str,
        kind: MessageKind,
        media_ref: Optional[str] = None,
    ) -> Message:
        doc: MessageDocument = {
            "sender_id": sender_id,
            "receiver_id": receiver_id,
            "content": content,
            "kind": kind.value,
            "media_ref": media_ref,
            "timestamp": datetime.now(timezone.utc),
            "read": False,
        }
        result = await self.collection.insert_one(doc)
        doc["_id"] = result.inserted_id
        return self._to_message(doc)

    async def get_message(self, message_id: str) -> Optional[Message]:
        oid = to_object_id(message_id)
        if oid is None:
            return None
        doc = await self.collection.find_one({"_id": oid})
        return self._to_message(doc) if doc else None

    async def get_between(self, user_a: str, user_b: str) -> List[Message]:
        cursor = self.collection.find(self._pair_query(user_a, user_b)).sort([("timestamp", ASCENDING), ("_id", ASCENDING)])
        items = await cursor.to_list(length=None)
        return [self._to_message(doc) for doc in items]

    async def latest_between(self, user_a: str, user_b: str) -> Optional[Message]:
        cursor = self.collection.find(self._pair_query(user_a, user_b)).sort([("timestamp", DESCENDING), ("_id", DESCENDING)]).limit(1)
        items = await cursor.to_list(length=1)
        return self._to_message(items[0]) if items else None

    async def mark_read(self, viewer_id: str, other_id: str) -> int:
        result = await self.collection.update_many(self._unread_query(viewer_id, other_id), {"$set": {"read": True}})
        return result.modified_count or 0

    async def count_unread(self, viewer_id: str, other_id: str) -> int:
        return await self.collection.count_documents(self._unread_query(viewer_id, other_id))

    async def delete_message(self, message_id: str) -> bool:
        oid = to_object_id(message_id)
        if oid is None:
            return False
        result = await self.collection.delete_one({"_id": oid})
        return result.deleted_count > 0

    async def delete_between(self, user_a: str, user_b: str) -> int:
        result = await self.collection.delete_many(self._pair_query(user_a, user_b))
        return result.deleted_count
