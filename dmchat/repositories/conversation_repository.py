from typing import List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING, ReturnDocument

from dmchat.models.conversation import ConversationDocument
from dmchat.repositories.base import BaseConversationRepository, pair_key
from dmchat.repositories.user_repository import to_object_id
from dmchat.schemas.conversation import Conversation
from dmchat.schemas.message import Message


class ConversationRepository(BaseConversationRepository):

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db

    @property
    def collection(self):
        return self._db["conversations"]

    async def ensure_indexes(self) -> None:
        await self.collection.create_index([("pair_key", ASCENDING)], unique=True)
        await self.collection.create_index([("participants", ASCENDING)])
        await self.collection.create_index([("updated_at", DESCENDING)])

    @staticmethod
    def _key(user_a: str, user_b: str) -> str:
        return ":".join(pair_key(user_a, user_b))

    @staticmethod
    def _to_conversation(doc: ConversationDocument) -> Conversation:
        return Conversation(
            id=str(doc["_id"]),
            user1_id=doc["user1_id"],
            user2_id=doc["user2_id"],
            last_message_id=doc.get("last_message_id"),
            updated_at=doc["updated_at"],
        )

    async def get_between(self, user_a: str, user_b: str) -> Optional[Conversation]:
        doc = await self.collection.find_one({"pair_key": self._key(user_a, user_b)})
        return self._to_conversation(doc) if doc else None

    async def get_conversation(self, conversation_id: str) -> Optional[Conversation]:
        oid = to_object_id(conversation_id)
        if oid is None:
            return None
        doc = await self.collection.find_one({"_id": oid})
        return self._to_conversation(doc) if doc else None

    async def upsert_on_new_message(self, message: Message) -> Conversation:
        # single round trip; the unique pair_key index rejects a racing duplicate insert
        doc = await self.collection.find_one_and_update(
            {"pair_key": self._key(message.sender_id, message.receiver_id)},
            {
                "$set": {"last_message_id": message.id, "updated_at": message.timestamp},
                "$setOnInsert": {
                    "participants": list(pair_key(message.sender_id, message.receiver_id)),
                    "user1_id": message.sender_id,
                    "user2_id": message.receiver_id,
                },
            },
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        return self._to_conversation(doc)

    async def repoint(self, conversation_id: str, message: Optional[Message]) -> None:
        oid = to_object_id(conversation_id)
        if oid is None:
            return
        await self.collection.update_one(
            {"_id": oid},
            {"$set": {"last_message_id": message.id if message else None}},
        )

    async def list_for_user(self, user_id: str) -> List[Conversation]:
        cursor = self.collection.find({"participants": user_id}).sort([("updated_at", DESCENDING), ("_id", DESCENDING)])
        items = await cursor.to_list(length=None)
        return [self._to_conversation(doc) for doc in items]

    async def delete_conversation(self, conversation_id: str) -> bool:
        oid = to_object_id(conversation_id)
        if oid is None:
            return False
        result = await self.collection.delete_one({"_id": oid})
        return result.deleted_count > 0
