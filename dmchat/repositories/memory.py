"""In-process store for tests and single-node runs.

Records live in plain dicts keyed by sequential string ids.  Repositories
hand out copies so callers can never mutate stored state behind the
store's back.
"""
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from dmchat.repositories.base import (
    BaseConversationRepository,
    BaseMessageRepository,
    BaseUserRepository,
    Store,
    pair_key,
)
from dmchat.schemas.conversation import Conversation
from dmchat.schemas.message import Message, MessageKind
from dmchat.schemas.user import User


class InMemoryDatabase:

    def __init__(self) -> None:
        self.users: Dict[str, User] = {}
        self.messages: Dict[str, Message] = {}
        self.conversations: Dict[str, Conversation] = {}
        self._sequences: Dict[str, int] = defaultdict(int)
        self._last_tick: Optional[datetime] = None

    def next_id(self, table: str) -> str:
        self._sequences[table] += 1
        return str(self._sequences[table])

    def now(self) -> datetime:
        # strictly increasing so ordering by timestamp never ties
        tick = datetime.now(timezone.utc)
        if self._last_tick is not None and tick <= self._last_tick:
            tick = self._last_tick + timedelta(microseconds=1)
        self._last_tick = tick
        return tick


class InMemoryUserRepository(BaseUserRepository):

    def __init__(self, db: InMemoryDatabase) -> None:
        self._db = db

    async def create_user(self, username: str, name: str, email: str, avatar: Optional[str] = None) -> User:
        now = self._db.now()
        user = User(
            id=self._db.next_id("users"),
            username=username,
            name=name,
            email=email,
            avatar=avatar,
            is_online=False,
            last_active=now,
            created_at=now,
        )
        self._db.users[user.id] = user
        return user.model_copy()

    async def get_user_by_id(self, user_id: str) -> Optional[User]:
        user = self._db.users.get(user_id)
        return user.model_copy() if user else None

    async def set_status(self, user_id: str, is_online: bool) -> None:
        user = self._db.users.get(user_id)
        if user is None:
            return
        user.is_online = is_online
        user.last_active = self._db.now()

    async def search_users(self, query: str, exclude_user_id: str, limit: int = 10) -> List[User]:
        needle = query.strip().lower()
        if not needle:
            return []
        matches = [
            user.model_copy()
            for user in self._db.users.values()
            if user.id != exclude_user_id
            and (needle in user.username.lower() or needle in user.name.lower() or needle in user.email.lower())
        ]
        return matches[:limit]


class InMemoryMessageRepository(BaseMessageRepository):

    def __init__(self, db: InMemoryDatabase) -> None:
        self._db = db

    def _pair_messages(self, user_a: str, user_b: str) -> List[Message]:
        key = pair_key(user_a, user_b)
        return [m for m in self._db.messages.values() if pair_key(m.sender_id, m.receiver_id) == key]

    def _unread(self, viewer_id: str, other_id: str) -> List[Message]:
        return [
            m
            for m in self._db.messages.values()
            if m.sender_id == other_id and m.receiver_id == viewer_id and not m.read
        ]

    async def save_message(
        self,
        sender_id: str,
        receiver_id: str,
        content: str,
        kind: MessageKind,
        media_ref: Optional[str] = None,
    ) -> Message:
        message = Message(
            id=self._db.next_id("messages"),
            sender_id=sender_id,
            receiver_id=receiver_id,
            content=content,
            kind=kind,
            media_ref=media_ref,
            timestamp=self._db.now(),
            read=False,
        )
        self._db.messages[message.id] = message
        return message.model_copy()

    async def get_message(self, message_id: str) -> Optional[Message]:
        message = self._db.messages.get(message_id)
        return message.model_copy() if message else None

    async def get_between(self, user_a: str, user_b: str) -> List[Message]:
        history = sorted(self._pair_messages(user_a, user_b), key=lambda m: (m.timestamp, int(m.id)))
        return [m.model_copy() for m in history]

    async def latest_between(self, user_a: str, user_b: str) -> Optional[Message]:
        history = self._pair_messages(user_a, user_b)
        if not history:
            return None
        return max(history, key=lambda m: (m.timestamp, int(m.id))).model_copy()

    async def mark_read(self, viewer_id: str, other_id: str) -> int:
        unread = self._unread(viewer_id, other_id)
        for message in unread:
            message.read = True
        return len(unread)

    async def count_unread(self, viewer_id: str, other_id: str) -> int:
        return len(self._unread(viewer_id, other_id))

    async def delete_message(self, message_id: str) -> bool:
        return self._db.messages.pop(message_id, None) is not None

    async def delete_between(self, user_a: str, user_b: str) -> int:
        doomed = self._pair_messages(user_a, user_b)
        for message in doomed:
            del self._db.messages[message.id]
        return len(doomed)


class InMemoryConversationRepository(BaseConversationRepository):

    def __init__(self, db: InMemoryDatabase) -> None:
        self._db = db

    def _find(self, user_a: str, user_b: str) -> Optional[Conversation]:
        key = pair_key(user_a, user_b)
        for conversation in self._db.conversations.values():
            if pair_key(conversation.user1_id, conversation.user2_id) == key:
                return conversation
        return None

    async def get_between(self, user_a: str, user_b: str) -> Optional[Conversation]:
        conversation = self._find(user_a, user_b)
        return conversation.model_copy() if conversation else None

    async def get_conversation(self, conversation_id: str) -> Optional[Conversation]:
        conversation = self._db.conversations.get(conversation_id)
        return conversation.model_copy() if conversation else None

    async def upsert_on_new_message(self, message: Message) -> Conversation:
        conversation = self._find(message.sender_id, message.receiver_id)
        if conversation is None:
            conversation = Conversation(
                id=self._db.next_id("conversations"),
                user1_id=message.sender_id,
                user2_id=message.receiver_id,
                last_message_id=message.id,
                updated_at=message.timestamp,
            )
            self._db.conversations[conversation.id] = conversation
        else:
            conversation.last_message_id = message.id
            conversation.updated_at = message.timestamp
        return conversation.model_copy()

    async def repoint(self, conversation_id: str, message: Optional[Message]) -> None:
        conversation = self._db.conversations.get(conversation_id)
        if conversation is not None:
            conversation.last_message_id = message.id if message else None

    async def list_for_user(self, user_id: str) -> List[Conversation]:
        mine = [c for c in self._db.conversations.values() if c.has_participant(user_id)]
        mine.sort(key=lambda c: (c.updated_at, int(c.id)), reverse=True)
        return [c.model_copy() for c in mine]

    async def delete_conversation(self, conversation_id: str) -> bool:
        return self._db.conversations.pop(conversation_id, None) is not None


def memory_store(db: Optional[InMemoryDatabase] = None) -> Store:
    db = db or InMemoryDatabase()
    return Store(
        users=InMemoryUserRepository(db),
        messages=InMemoryMessageRepository(db),
        conversations=InMemoryConversationRepository(db),
    )
