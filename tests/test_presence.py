import json
import unittest

from dmchat.realtime.presence import PresenceTracker
from dmchat.realtime.registry import ConnectionRegistry
from dmchat.repositories.memory import memory_store
from dmchat.schemas.frame import Frame
from dmchat.services.user_service import UserService
from tests.fakes import ExplodingConnection, FakeConnection


class PresenceTrackerTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.store = memory_store()
        self.users = UserService(self.store.users)
        self.alice = await self.users.create_user("alice", "Alice", "alice@example.com")
        self.bob = await self.users.create_user("bob", "Bob", "bob@example.com")
        self.carol = await self.users.create_user("carol", "Carol", "carol@example.com")
        self.registry = ConnectionRegistry()
        self.presence = PresenceTracker(self.registry, self.users)

        self.conns = {}
        for user in (self.alice, self.bob, self.carol):
            conn = FakeConnection(user.username)
            await self.registry.bind(user.id, conn)
            self.conns[user.username] = conn

    async def test_connected_marks_online_and_notifies_others(self):
        await self.presence.connected(self.alice.id)

        alice = await self.users.get_user(self.alice.id)
        self.assertTrue(alice.is_online)
        self.assertEqual(self.conns["alice"].pushed, [])
        for name in ("bob", "carol"):
            frames = [json.loads(text) for text in self.conns[name].pushed]
            self.assertEqual(len(frames), 1)
            self.assertEqual(frames[0]["kind"], "status")
            self.assertEqual(frames[0]["senderId"], self.alice.id)
            self.assertEqual(frames[0]["content"], "online")
            self.assertTrue(frames[0]["broadcast"])
            self.assertNotIn("receiverId", frames[0])

    async def test_connected_without_announce_only_persists(self):
        await self.presence.connected(self.alice.id, announce=False)

        self.assertTrue((await self.users.get_user(self.alice.id)).is_online)
        self.assertEqual(self.conns["bob"].pushed, [])

    async def test_disconnected_marks_offline_and_notifies_others(self):
        await self.presence.connected(self.alice.id, announce=False)
        self.registry.unbind(self.alice.id, self.conns["alice"])
        await self.presence.disconnected(self.alice.id)

        self.assertFalse((await self.users.get_user(self.alice.id)).is_online)
        for name in ("bob", "carol"):
            frames = [json.loads(text) for text in self.conns[name].pushed]
            self.assertEqual([(f["senderId"], f["content"]) for f in frames], [(self.alice.id, "offline")])

    async def test_broadcast_survives_a_failing_recipient(self):
        broken = ExplodingConnection("broken")
        await self.registry.bind(self.bob.id, broken)

        delivered = self.presence.broadcast("hello", exclude=self.alice.id)

        self.assertEqual(delivered, 1)
        self.assertEqual(self.conns["carol"].pushed, ["hello"])

    async def test_explicit_status_is_relayed_verbatim_without_touching_binding(self):
        raw = json.dumps({"kind": "status", "senderId": self.alice.id, "content": "offline"})
        frame = Frame.from_payload(json.loads(raw))

        await self.presence.announce(frame, raw)

        self.assertIs(self.registry.lookup(self.alice.id), self.conns["alice"])
        self.assertFalse((await self.users.get_user(self.alice.id)).is_online)
        self.assertEqual(self.conns["bob"].pushed, [raw])
        self.assertEqual(self.conns["carol"].pushed, [raw])
        self.assertEqual(self.conns["alice"].pushed, [])

    async def test_online_view_follows_registry(self):
        self.assertCountEqual(self.presence.online_identities(), [self.alice.id, self.bob.id, self.carol.id])
        self.registry.unbind(self.carol.id, self.conns["carol"])

        self.assertFalse(self.presence.is_online(self.carol.id))
        self.assertTrue(self.presence.is_online(self.alice.id))
