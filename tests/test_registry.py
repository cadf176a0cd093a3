import asyncio
import unittest

from dmchat.realtime.connection import EVICTED_CLOSE_CODE
from dmchat.realtime.registry import ConnectionRegistry
from tests.fakes import FakeConnection


class ConnectionRegistryTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.registry = ConnectionRegistry()

    async def test_bind_then_lookup(self):
        conn = FakeConnection("a")
        outcome = await self.registry.bind("u1", conn)

        self.assertTrue(outcome.fresh)
        self.assertIsNone(outcome.evicted)
        self.assertIs(self.registry.lookup("u1"), conn)
        self.assertEqual(conn.identity, "u1")
        self.assertIn("u1", self.registry)

    async def test_second_bind_evicts_previous_connection(self):
        first, second = FakeConnection("a"), FakeConnection("b")
        await self.registry.bind("u1", first)
        outcome = await self.registry.bind("u1", second)

        self.assertFalse(outcome.fresh)
        self.assertIs(outcome.evicted, first)
        self.assertTrue(first.closed)
        self.assertEqual(first.close_codes, [EVICTED_CLOSE_CODE])
        self.assertFalse(second.closed)
        self.assertIs(self.registry.lookup("u1"), second)

    async def test_rebinding_same_connection_is_not_an_eviction(self):
        conn = FakeConnection("a")
        await self.registry.bind("u1", conn)
        outcome = await self.registry.bind("u1", conn)

        self.assertFalse(outcome.fresh)
        self.assertIsNone(outcome.evicted)
        self.assertFalse(conn.closed)

    async def test_concurrent_binds_leave_only_the_last_one(self):
        conns = [FakeConnection(f"c{i}") for i in range(10)]
        await asyncio.gather(*(self.registry.bind("u1", conn) for conn in conns))

        self.assertIs(self.registry.lookup("u1"), conns[-1])
        self.assertTrue(all(conn.closed for conn in conns[:-1]))
        self.assertFalse(conns[-1].closed)
        self.assertEqual(len(self.registry), 1)

    async def test_stale_unbind_is_a_noop(self):
        old, new = FakeConnection("a"), FakeConnection("b")
        await self.registry.bind("u1", old)
        await self.registry.bind("u1", new)

        self.assertFalse(self.registry.unbind("u1", old))
        self.assertIs(self.registry.lookup("u1"), new)

    async def test_unbind_current_connection(self):
        conn = FakeConnection("a")
        await self.registry.bind("u1", conn)

        self.assertTrue(self.registry.unbind("u1", conn))
        self.assertIsNone(self.registry.lookup("u1"))
        self.assertFalse(self.registry.unbind("u1", conn))

    async def test_closed_connection_is_not_returned(self):
        conn = FakeConnection("a")
        await self.registry.bind("u1", conn)
        conn.closed = True

        self.assertIsNone(self.registry.lookup("u1"))
        self.assertEqual(self.registry.bindings(), [])

    async def test_send(self):
        conn = FakeConnection("a")
        await self.registry.bind("u1", conn)

        self.assertTrue(self.registry.send("u1", "frame"))
        self.assertFalse(self.registry.send("nobody", "frame"))
        self.assertEqual(conn.pushed, ["frame"])

    async def test_eviction_untracks_previous_connection(self):
        first, second = FakeConnection("a"), FakeConnection("b")
        self.registry.track(first)
        self.registry.track(second)
        await self.registry.bind("u1", first)
        await self.registry.bind("u1", second)

        self.assertEqual(self.registry.connections(), [second])
