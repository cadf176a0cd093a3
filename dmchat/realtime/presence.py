import logging
from typing import List, Optional

from dmchat.realtime.registry import ConnectionRegistry
from dmchat.schemas.frame import STATUS_OFFLINE, STATUS_ONLINE, Frame, status_frame
from dmchat.services.user_service import UserService


logger = logging.getLogger(__name__)


class PresenceTracker:
    """Owns the persisted online flag and fans status changes out to bound users."""

    def __init__(self, registry: ConnectionRegistry, users: UserService) -> None:
        self._registry = registry
        self._users = users

    def online_identities(self) -> List[str]:
        return [identity for identity, _ in self._registry.bindings()]

    def is_online(self, identity: str) -> bool:
        return identity in self._registry

    async def connected(self, identity: str, announce: bool = True) -> None:
        await self._persist(identity, True)
        if announce:
            self.broadcast(status_frame(identity, STATUS_ONLINE).encode(), exclude=identity)

    async def disconnected(self, identity: str) -> None:
        await self._persist(identity, False)
        self.broadcast(status_frame(identity, STATUS_OFFLINE).encode(), exclude=identity)

    async def announce(self, frame: Frame, raw: Optional[str] = None) -> int:
        """Relay a client's explicit status frame; the binding itself is left alone."""
        await self._persist(frame.sender_id, frame.content == STATUS_ONLINE)
        return self.broadcast(raw if raw is not None else frame.encode(), exclude=frame.sender_id)

    def broadcast(self, text: str, exclude: Optional[str] = None) -> int:
        delivered = 0
        for identity, connection in self._registry.bindings():
            if identity == exclude:
                continue
            try:
                if connection.push(text):
                    delivered += 1
            except Exception:
                logger.warning("Presence update to %s failed", identity, exc_info=True)
        return delivered

    async def _persist(self, identity: str, is_online: bool) -> None:
        try:
            await self._users.set_online(identity, is_online)
        except Exception:
            logger.exception("Could not persist online=%s for %s", is_online, identity)
