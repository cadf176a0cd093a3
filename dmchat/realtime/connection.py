import asyncio
import logging
import uuid
from typing import Optional

from fastapi import WebSocket
from fastapi.websockets import WebSocketDisconnect


logger = logging.getLogger(__name__)

# 4409: replaced by a newer connection for the same user
EVICTED_CLOSE_CODE = 4409
HEARTBEAT_CLOSE_CODE = 4408
OVERLOADED_CLOSE_CODE = 1013


class Connection:
    """One client socket plus its bounded outbound queue.

    ``push`` never waits on the client: frames are queued and written by a
    dedicated writer task, so a slow reader cannot stall the frame router.
    """

    def __init__(self, websocket: WebSocket, queue_size: int = 256) -> None:
        self.id = uuid.uuid4().hex
        self.websocket = websocket
        self.identity: Optional[str] = None
        self.alive = True
        self.closed = False
        self._outbox: "asyncio.Queue[str]" = asyncio.Queue(maxsize=queue_size)
        self._writer: Optional[asyncio.Task] = None
        self._closing: Optional[asyncio.Task] = None

    def __repr__(self) -> str:
        return f"<Connection {self.id} identity={self.identity}>"

    def start(self) -> None:
        if self._writer is None:
            self._writer = asyncio.create_task(self._drain(), name=f"ws-writer-{self.id}")

    def mark_alive(self) -> None:
        self.alive = True

    def push(self, text: str) -> bool:
        if self.closed:
            return False
        try:
            self._outbox.put_nowait(text)
        except asyncio.QueueFull:
            logger.warning("Send buffer full for %r, closing", self)
            self._closing = asyncio.create_task(self.close(OVERLOADED_CLOSE_CODE))
            return False
        return True

    async def join(self) -> None:
        """Wait until every queued frame has been handed to the socket."""
        await self._outbox.join()

    async def _drain(self) -> None:
        while True:
            text = await self._outbox.get()
            try:
                await self.websocket.send_text(text)
            except (WebSocketDisconnect, RuntimeError, OSError) as exc:
                logger.debug("Dropping frame for %r: %s", self, exc)
                self.closed = True
            finally:
                self._outbox.task_done()

    async def close(self, code: int = 1000, notify: bool = True) -> None:
        """Stop sending and, unless the peer is already gone, close the socket."""
        if self.closed and self._writer is None:
            return
        self.closed = True
        writer, self._writer = self._writer, None
        if writer is not None:
            writer.cancel()
        if notify:
            try:
                await self.websocket.close(code=code)
            except (WebSocketDisconnect, RuntimeError, OSError) as exc:
                logger.debug("Close of %r ignored: %s", self, exc)
