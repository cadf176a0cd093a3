import logging
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from dmchat.config import Settings, get_settings
from dmchat.repositories.base import Store
from dmchat.repositories.conversation_repository import ConversationRepository
from dmchat.repositories.message_repository import MessageRepository
from dmchat.repositories.user_repository import UserRepository


logger = logging.getLogger(__name__)

_client: Optional[AsyncIOMotorClient] = None
_database: Optional[AsyncIOMotorDatabase] = None


async def connect_to_mongo(settings: Optional[Settings] = None) -> AsyncIOMotorDatabase:
    global _client, _database
    settings = settings or get_settings()
    if not settings.mongo_url:
        raise RuntimeError("MONGO_URL is not configured")
    _client = AsyncIOMotorClient(settings.mongo_url, tz_aware=True)
    _database = _client[settings.mongo_db_name]
    logger.info("Connected to MongoDB database %s", settings.mongo_db_name)
    return _database


async def close_mongo_connection() -> None:
    global _client, _database
    if _client is not None:
        _client.close()
        logger.info("MongoDB connection closed")
    _client = None
    _database = None


def get_database() -> AsyncIOMotorDatabase:
    if _database is None:
        raise RuntimeError("MongoDB is not connected")
    return _database


def mongo_store(db: AsyncIOMotorDatabase) -> Store:
    return Store(
        users=UserRepository(db),
        messages=MessageRepository(db),
        conversations=ConversationRepository(db),
    )
