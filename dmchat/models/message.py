from datetime import datetime
from typing import Literal, Optional, TypedDict

from bson import ObjectId


MessageKindValue = Literal["text", "image", "video"]


class MessageDocument(TypedDict, total=False):
    _id: ObjectId
    sender_id: str
    receiver_id: str
    content: str
    kind: MessageKindValue
    # blob pointer, image/video only
    media_ref: Optional[str]
    timestamp: datetime
    read: bool
