import json
import unittest

from dmchat.realtime.connection import HEARTBEAT_CLOSE_CODE, Connection
from dmchat.realtime.core import RealtimeCore
from dmchat.repositories.memory import memory_store
from dmchat.schemas.frame import PING_FRAME
from dmchat.services.user_service import UserService
from tests.fakes import BrokenCloseConnection, FakeConnection, FakeWebSocket


class HeartbeatTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.users = UserService(memory_store().users)
        self.alice = await self.users.create_user("alice", "Alice", "alice@example.com")
        self.bob = await self.users.create_user("bob", "Bob", "bob@example.com")
        self.core = RealtimeCore.build(self.users, heartbeat_interval=3600)

        self.conns = {}
        for user in (self.alice, self.bob):
            conn = FakeConnection(user.username)
            self.core.registry.track(conn)
            await self.core.router.receive(conn, json.dumps({"kind": "status", "senderId": user.id, "content": "online"}))
            conn.pushed.clear()
            self.conns[user.username] = conn

    async def test_sweep_pings_live_connections(self):
        terminated = await self.core.heartbeat.sweep()

        self.assertEqual(terminated, 0)
        for conn in self.conns.values():
            self.assertEqual(conn.pushed, [PING_FRAME])
            self.assertFalse(conn.alive)

    async def test_silent_connection_is_terminated_on_next_sweep(self):
        await self.core.heartbeat.sweep()
        await self.core.router.receive(self.conns["bob"], json.dumps({"kind": "pong"}))
        self.conns["bob"].pushed.clear()

        terminated = await self.core.heartbeat.sweep()

        alice = self.conns["alice"]
        self.assertEqual(terminated, 1)
        self.assertTrue(alice.closed)
        self.assertEqual(alice.close_codes, [HEARTBEAT_CLOSE_CODE])
        self.assertIsNone(self.core.registry.lookup(self.alice.id))
        self.assertNotIn(alice, self.core.registry.connections())
        self.assertFalse((await self.users.get_user(self.alice.id)).is_online)

        frames = [json.loads(text) for text in self.conns["bob"].pushed]
        self.assertEqual(frames[0]["content"], "offline")
        self.assertEqual(frames[0]["senderId"], self.alice.id)
        self.assertEqual(frames[1], {"kind": "ping"})

    async def test_unauthenticated_sockets_are_swept_too(self):
        stranger = FakeConnection("stranger")
        self.core.registry.track(stranger)

        await self.core.heartbeat.sweep()
        await self.core.heartbeat.sweep()

        self.assertTrue(stranger.closed)
        self.assertNotIn(stranger, self.core.registry.connections())

    async def test_start_and_stop(self):
        task = self.core.heartbeat.start()
        self.assertIs(self.core.heartbeat.start(), task)

        await self.core.heartbeat.stop()

        self.assertTrue(task.done())

    async def _bind(self, conn, user):
        self.core.registry.track(conn)
        await self.core.router.receive(conn, json.dumps({"kind": "status", "senderId": user.id, "content": "online"}))

    async def _requeue_bob_last(self):
        # registry.connections() keeps insertion order
        bob = self.conns["bob"]
        self.core.registry.untrack(bob)
        self.core.registry.track(bob)
        return bob

    async def test_sweep_releases_connection_whose_peer_vanished(self):
        carol = await self.users.create_user("carol", "Carol", "carol@example.com")
        dead = Connection(FakeWebSocket(peer_gone=True))
        await self._bind(dead, carol)
        bob = await self._requeue_bob_last()
        self.core.registry.untrack(self.conns["alice"])

        await self.core.heartbeat.sweep()
        await self.core.router.receive(bob, json.dumps({"kind": "pong"}))
        bob.pushed.clear()

        terminated = await self.core.heartbeat.sweep()

        self.assertEqual(terminated, 1)
        self.assertTrue(dead.closed)
        self.assertIsNone(self.core.registry.lookup(carol.id))
        self.assertFalse((await self.users.get_user(carol.id)).is_online)
        frames = [json.loads(text) for text in bob.pushed]
        self.assertEqual([f.get("content") for f in frames], ["offline", None])
        self.assertEqual(frames[1], {"kind": "ping"})
        self.assertFalse(bob.alive)

    async def test_failing_check_does_not_stop_the_sweep(self):
        carol = await self.users.create_user("carol", "Carol", "carol@example.com")
        broken = BrokenCloseConnection("broken")
        await self._bind(broken, carol)
        bob = await self._requeue_bob_last()
        self.core.registry.untrack(self.conns["alice"])

        await self.core.heartbeat.sweep()
        await self.core.router.receive(bob, json.dumps({"kind": "pong"}))
        bob.pushed.clear()

        await self.core.heartbeat.sweep()

        self.assertIsNone(self.core.registry.lookup(carol.id))
        self.assertNotIn(broken, self.core.registry.connections())
        self.assertIn(PING_FRAME, bob.pushed)
        self.assertFalse(bob.alive)
