import asyncio
import contextlib
import logging
from typing import Optional

from dmchat.realtime.connection import HEARTBEAT_CLOSE_CODE, Connection
from dmchat.realtime.registry import ConnectionRegistry
from dmchat.realtime.router import FrameRouter
from dmchat.schemas.frame import PING_FRAME


logger = logging.getLogger(__name__)

HEARTBEAT_INTERVAL_SECONDS = 30.0


class Heartbeat:
    """Pings every socket each interval and drops the ones that stayed silent.

    A connection must send something (normally a ``pong``) between two
    sweeps.  One that did not is closed and released right away, so a dead
    client goes offline within one interval.  There is no retry.
    """

    def __init__(self, registry: ConnectionRegistry, router: FrameRouter, interval: float = HEARTBEAT_INTERVAL_SECONDS) -> None:
        self._registry = registry
        self._router = router
        self.interval = interval
        self._task: Optional[asyncio.Task] = None

    async def sweep(self) -> int:
        terminated = 0
        for connection in self._registry.connections():
            try:
                if await self._check(connection):
                    terminated += 1
            except Exception:
                logger.exception("Heartbeat check of %s failed", connection.id)
        return terminated

    async def _check(self, connection: Connection) -> bool:
        if connection.alive:
            connection.alive = False
            connection.push(PING_FRAME)
            return False

        logger.info("Terminating unresponsive connection %s (user %s)", connection.id, connection.identity)
        try:
            await connection.close(HEARTBEAT_CLOSE_CODE)
        finally:
            await self._router.disconnect(connection)
        return True

    async def run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self.sweep()
            except Exception:
                logger.exception("Heartbeat sweep failed")

    def start(self) -> asyncio.Task:
        if self._task is None:
            self._task = asyncio.create_task(self.run(), name="ws-heartbeat")
        return self._task

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
