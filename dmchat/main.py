import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from dmchat.config import Settings, configure_logging, get_settings
from dmchat.database.connection import close_mongo_connection, connect_to_mongo, mongo_store
from dmchat.realtime.core import RealtimeCore
from dmchat.repositories.base import Store
from dmchat.repositories.memory import memory_store
from dmchat.routers.chat import router as chat_router
from dmchat.routers.chat import ws_router
from dmchat.routers.conversations import router as conversations_router
from dmchat.routers.presence import router as presence_router
from dmchat.routers.users import router as users_router
from dmchat.services.chat_service import ChatService
from dmchat.services.user_service import UserService


logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None, store: Optional[Store] = None) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(settings.log_level)
        active_store = store
        owns_mongo = False
        if active_store is None and settings.mongo_url:
            active_store = mongo_store(await connect_to_mongo(settings))
            await active_store.ensure_indexes()
            owns_mongo = True
        elif active_store is None:
            logger.warning("MONGO_URL is not set, messages are kept in memory only")
            active_store = memory_store()

        user_service = UserService(active_store.users)
        realtime = RealtimeCore.build(user_service, heartbeat_interval=settings.heartbeat_interval_seconds)
        app.state.settings = settings
        app.state.store = active_store
        app.state.user_service = user_service
        app.state.chat_service = ChatService(active_store.messages, active_store.conversations, active_store.users)
        app.state.realtime = realtime

        realtime.heartbeat.start()
        try:
            yield
        finally:
            await realtime.heartbeat.stop()
            if owns_mongo:
                await close_mongo_connection()

    app = FastAPI(title="Direct Messaging", lifespan=lifespan)

    app.include_router(ws_router)
    app.include_router(chat_router)
    app.include_router(conversations_router)
    app.include_router(users_router)
    app.include_router(presence_router)

    @app.get("/")
    async def root():
        realtime: RealtimeCore = app.state.realtime
        return {"status": "ok", "connected_users": len(realtime.registry)}

    return app


app = create_app()
