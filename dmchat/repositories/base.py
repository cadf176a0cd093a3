"""Storage contracts shared by the in-memory and MongoDB stores.

Both implementations must keep the same invariants: a single conversation
per unordered user pair, message histories ordered by timestamp, and
``read`` flags that only ever move from ``False`` to ``True``.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional, Tuple

from dmchat.schemas.conversation import Conversation
from dmchat.schemas.message import Message, MessageKind
from dmchat.schemas.user import User


def pair_key(user_a: str, user_b: str) -> Tuple[str, str]:
    """Orientation-independent key of a user pair."""
    first, second = sorted((user_a, user_b))
    return first, second


class BaseUserRepository(ABC):

    @abstractmethod
    async def create_user(self, username: str, name: str, email: str, avatar: Optional[str] = None) -> User:
        ...

    @abstractmethod
    async def get_user_by_id(self, user_id: str) -> Optional[User]:
        ...

    @abstractmethod
    async def set_status(self, user_id: str, is_online: bool) -> None:
        """Persist the online flag and bump ``last_active``."""

    @abstractmethod
    async def search_users(self, query: str, exclude_user_id: str, limit: int = 10) -> List[User]:
        ...


class BaseMessageRepository(ABC):

    @abstractmethod
    async def save_message(
        self,
        sender_id: str,
        receiver_id: str,
        content: str,
        kind: MessageKind,
        media_ref: Optional[str] = None,
    ) -> Message:
        ...

    @abstractmethod
    async def get_message(self, message_id: str) -> Optional[Message]:
        ...

    @abstractmethod
    async def get_between(self, user_a: str, user_b: str) -> List[Message]:
        """Every message exchanged by the pair, oldest first."""

    @abstractmethod
    async def latest_between(self, user_a: str, user_b: str) -> Optional[Message]:
        ...

    @abstractmethod
    async def mark_read(self, viewer_id: str, other_id: str) -> int:
        """Flip ``read`` on messages from ``other_id`` to ``viewer_id``; return how many changed."""

    @abstractmethod
    async def count_unread(self, viewer_id: str, other_id: str) -> int:
        ...

    @abstractmethod
    async def delete_message(self, message_id: str) -> bool:
        ...

    @abstractmethod
    async def delete_between(self, user_a: str, user_b: str) -> int:
        """Remove the whole history of the pair; return how many messages went."""


class BaseConversationRepository(ABC):

    @abstractmethod
    async def get_between(self, user_a: str, user_b: str) -> Optional[Conversation]:
        ...

    @abstractmethod
    async def get_conversation(self, conversation_id: str) -> Optional[Conversation]:
        ...

    @abstractmethod
    async def upsert_on_new_message(self, message: Message) -> Conversation:
        """Create or repoint the pair's conversation at ``message``."""

    @abstractmethod
    async def repoint(self, conversation_id: str, message: Optional[Message]) -> None:
        """Move the last-message pointer without touching ``updated_at``."""

    @abstractmethod
    async def list_for_user(self, user_id: str) -> List[Conversation]:
        """Conversations containing ``user_id``, most recently updated first."""

    @abstractmethod
    async def delete_conversation(self, conversation_id: str) -> bool:
        ...

@dataclass
class Store:

    users: BaseUserRepository
    messages: BaseMessageRepository
    conversations: BaseConversationRepository

    async def ensure_indexes(self) -> None:
        for repo in (self.users, self.messages, self.conversations):
            ensure = getattr(repo, "ensure_indexes", None)
            if ensure is not None:
                await ensure()
