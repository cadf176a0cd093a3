from datetime import datetime
from typing import List, Optional, TypedDict

from bson import ObjectId


class ConversationDocument(TypedDict, total=False):
    _id: ObjectId
    # "<lower id>:<higher id>", unique per unordered pair
    pair_key: str
    participants: List[str]
    user1_id: str
    user2_id: str
    last_message_id: Optional[str]
    updated_at: datetime
