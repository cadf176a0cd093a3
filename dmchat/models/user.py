from datetime import datetime
from typing import Optional, TypedDict

from bson import ObjectId


class UserDocument(TypedDict, total=False):

    _id: ObjectId
    username: str
    name: str
    email: str
    avatar: Optional[str]
    # written only by presence tracking
    is_online: bool
    last_active: datetime
    created_at: datetime
