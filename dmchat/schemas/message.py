from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class MessageKind(str, Enum):

    TEXT = "text"
    IMAGE = "image"
    VIDEO = "video"


MEDIA_KINDS = frozenset({MessageKind.IMAGE, MessageKind.VIDEO})


class Message(BaseModel):

    id: str
    sender_id: str
    receiver_id: str
    content: str
    kind: MessageKind = MessageKind.TEXT
    media_ref: Optional[str] = None
    timestamp: datetime
    read: bool = False


class MessageCreate(BaseModel):

    receiver_id: str = Field(min_length=1)
    content: str
    kind: MessageKind = MessageKind.TEXT
    media_ref: Optional[str] = None
