from typing import Optional

from dmchat.realtime.registry import ConnectionRegistry
from dmchat.schemas.frame import Frame


class TypingRelay:
    """Forwards typing start/stop frames to the other participant.

    Nothing is stored and nothing expires on the server: clients send
    ``stopped_typing`` after their own inactivity window or on send.
    """

    def __init__(self, registry: ConnectionRegistry) -> None:
        self._registry = registry

    def relay(self, frame: Frame, raw: Optional[str] = None) -> bool:
        return self._registry.send(frame.receiver_id, raw if raw is not None else frame.encode())
