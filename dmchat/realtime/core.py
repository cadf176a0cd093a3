from dataclasses import dataclass

from dmchat.realtime.heartbeat import HEARTBEAT_INTERVAL_SECONDS, Heartbeat
from dmchat.realtime.presence import PresenceTracker
from dmchat.realtime.registry import ConnectionRegistry
from dmchat.realtime.router import FrameRouter
from dmchat.realtime.typing_relay import TypingRelay
from dmchat.services.user_service import UserService


@dataclass
class RealtimeCore:
    """Process-wide realtime components sharing one connection registry."""

    registry: ConnectionRegistry
    presence: PresenceTracker
    typing: TypingRelay
    router: FrameRouter
    heartbeat: Heartbeat

    @classmethod
    def build(cls, users: UserService, heartbeat_interval: float = HEARTBEAT_INTERVAL_SECONDS) -> "RealtimeCore":
        registry = ConnectionRegistry()
        presence = PresenceTracker(registry, users)
        typing = TypingRelay(registry)
        router = FrameRouter(registry, presence, typing, users)
        heartbeat = Heartbeat(registry, router, interval=heartbeat_interval)
        return cls(registry=registry, presence=presence, typing=typing, router=router, heartbeat=heartbeat)
