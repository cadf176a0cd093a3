import logging
from typing import Union

from dmchat.errors import AuthenticationFailure, MalformedFrame
from dmchat.realtime.connection import Connection
from dmchat.realtime.presence import PresenceTracker
from dmchat.realtime.registry import ConnectionRegistry
from dmchat.realtime.typing_relay import TypingRelay
from dmchat.schemas.frame import Frame, FrameKind, is_heartbeat_reply, parse_payload
from dmchat.services.user_service import UserService


logger = logging.getLogger(__name__)


class FrameRouter:
    """Classifies inbound realtime frames and forwards them.

    Durable kinds (text/image/video) are relayed only: clients persist them
    through ``POST /messages`` first, so a recipient that is offline simply
    finds them in its history later.  Typing frames go to the receiver,
    status frames to everyone else.
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        presence: PresenceTracker,
        typing: TypingRelay,
        users: UserService,
    ) -> None:
        self._registry = registry
        self._presence = presence
        self._typing = typing
        self._users = users

    async def receive(self, connection: Connection, raw: Union[str, bytes]) -> None:
        connection.mark_alive()
        try:
            payload = parse_payload(raw)
            if is_heartbeat_reply(payload):
                return
            frame = Frame.from_payload(payload)
            if connection.identity is None:
                await self._authenticate(connection, frame)
            elif frame.sender_id != connection.identity:
                raise AuthenticationFailure(
                    f"frame from {frame.sender_id} on connection bound to {connection.identity}"
                )
        except MalformedFrame as exc:
            logger.warning("Dropping malformed frame on %s: %s", connection.id, exc)
            return
        except AuthenticationFailure as exc:
            logger.warning("Dropping unauthenticated frame on %s: %s", connection.id, exc)
            return

        await self.dispatch(frame, raw)

    async def _authenticate(self, connection: Connection, frame: Frame) -> None:
        user = await self._users.get_user(frame.sender_id)
        if user is None:
            raise AuthenticationFailure(f"unknown user {frame.sender_id}")
        outcome = await self._registry.bind(user.id, connection)
        if outcome.fresh:
            # a status frame announces itself once dispatched
            await self._presence.connected(user.id, announce=frame.kind is not FrameKind.STATUS)

    async def dispatch(self, frame: Frame, raw: str) -> None:
        if frame.is_durable:
            self.deliver(frame, raw)
        elif frame.kind is FrameKind.TYPING:
            self._typing.relay(frame, raw)
        elif frame.kind is FrameKind.STATUS:
            await self._presence.announce(frame, raw)

    def deliver(self, frame: Frame, raw: str) -> bool:
        return self._registry.send(frame.receiver_id, raw)

    async def disconnect(self, connection: Connection) -> None:
        """Release a closed socket; only the identity's current connection goes offline."""
        self._registry.untrack(connection)
        identity = connection.identity
        if identity is not None and self._registry.unbind(identity, connection):
            await self._presence.disconnected(identity)
