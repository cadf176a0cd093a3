from typing import List, Optional

from fastapi.websockets import WebSocketDisconnect

from dmchat.realtime.connection import Connection


class FakeWebSocket:

    def __init__(self, fail_sends: bool = False, peer_gone: bool = False) -> None:
        self.sent: List[str] = []
        self.close_codes: List[int] = []
        self.fail_sends = fail_sends
        self.peer_gone = peer_gone

    async def send_text(self, text: str) -> None:
        if self.fail_sends:
            raise RuntimeError("socket is gone")
        self.sent.append(text)

    async def close(self, code: int = 1000) -> None:
        if self.peer_gone:
            raise WebSocketDisconnect(1006)
        self.close_codes.append(code)


class FakeConnection(Connection):
    """Connection that records pushes synchronously instead of queueing them."""

    def __init__(self, name: Optional[str] = None) -> None:
        super().__init__(FakeWebSocket())
        if name:
            self.id = name
        self.pushed: List[str] = []
        self.close_codes: List[int] = []

    def push(self, text: str) -> bool:
        if self.closed:
            return False
        self.pushed.append(text)
        return True

    async def close(self, code: int = 1000, notify: bool = True) -> None:
        self.closed = True
        self.close_codes.append(code)


class ExplodingConnection(FakeConnection):

    def push(self, text: str) -> bool:
        raise RuntimeError("push failed")


class BrokenCloseConnection(FakeConnection):

    async def close(self, code: int = 1000, notify: bool = True) -> None:
        self.closed = True
        raise ValueError("close blew up")
