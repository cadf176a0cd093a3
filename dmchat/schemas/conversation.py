from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from dmchat.schemas.message import Message
from dmchat.schemas.user import UserPublic


class Conversation(BaseModel):

    id: str
    user1_id: str
    user2_id: str
    last_message_id: Optional[str] = None
    updated_at: datetime

    def other_participant(self, user_id: str) -> str:
        return self.user2_id if self.user1_id == user_id else self.user1_id

    def has_participant(self, user_id: str) -> bool:
        return user_id in (self.user1_id, self.user2_id)


class ConversationSummary(Conversation):
    """A conversation as seen by one of its participants."""

    other_user: UserPublic
    last_message: Optional[Message] = None
    unread_count: int = 0
