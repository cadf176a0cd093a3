import logging
from typing import Dict, List, NamedTuple, Optional, Tuple

from dmchat.realtime.connection import EVICTED_CLOSE_CODE, Connection


logger = logging.getLogger(__name__)


class BindOutcome(NamedTuple):

    evicted: Optional[Connection]
    # the identity had no binding before this call
    fresh: bool


class ConnectionRegistry:
    """Maps each user identity to at most one live connection.

    All mutations run on the event loop with no ``await`` between reading
    and writing the map, so they are atomic per identity.  ``unbind`` is a
    compare-and-delete: a late disconnect from a replaced connection can
    never remove the binding of its replacement.
    """

    def __init__(self) -> None:
        self._bindings: Dict[str, Connection] = {}
        self._connections: Dict[str, Connection] = {}

    def __len__(self) -> int:
        return len(self._bindings)

    def __contains__(self, identity: str) -> bool:
        return self.lookup(identity) is not None

    def track(self, connection: Connection) -> None:
        self._connections[connection.id] = connection

    def untrack(self, connection: Connection) -> None:
        self._connections.pop(connection.id, None)

    def connections(self) -> List[Connection]:
        """Every open socket, authenticated or not."""
        return list(self._connections.values())

    async def bind(self, identity: str, connection: Connection) -> BindOutcome:
        previous = self._bindings.get(identity)
        self._bindings[identity] = connection
        connection.identity = identity
        if previous is None:
            logger.info("User %s connected on %s", identity, connection.id)
            return BindOutcome(evicted=None, fresh=True)
        if previous is connection:
            return BindOutcome(evicted=None, fresh=False)

        logger.info("User %s reconnected on %s, evicting %s", identity, connection.id, previous.id)
        self.untrack(previous)
        await previous.close(EVICTED_CLOSE_CODE)
        return BindOutcome(evicted=previous, fresh=False)

    def unbind(self, identity: str, connection: Connection) -> bool:
        if self._bindings.get(identity) is not connection:
            return False
        del self._bindings[identity]
        logger.info("User %s disconnected from %s", identity, connection.id)
        return True

    def lookup(self, identity: str) -> Optional[Connection]:
        connection = self._bindings.get(identity)
        if connection is None or connection.closed:
            return None
        return connection

    def bindings(self) -> List[Tuple[str, Connection]]:
        return [(identity, conn) for identity, conn in self._bindings.items() if not conn.closed]

    def send(self, identity: str, text: str) -> bool:
        """Queue ``text`` for ``identity``'s connection; ``False`` when nobody is there."""
        connection = self.lookup(identity)
        if connection is None:
            logger.debug("User %s is not connected, dropping frame", identity)
            return False
        return connection.push(text)
