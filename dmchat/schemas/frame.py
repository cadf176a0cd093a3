"""Wire format of the realtime channel.

Every WebSocket message is one self-contained JSON object.  Keys are
camelCase on the wire::

    {"kind": "text", "senderId": "1", "receiverId": "2", "content": "hi"}
    {"kind": "image", "senderId": "1", "receiverId": "2", "content": "", "mediaRef": "blob://a1"}
    {"kind": "typing", "senderId": "1", "receiverId": "2", "content": "typing"}
    {"kind": "status", "senderId": "1", "broadcast": true, "content": "online"}

Status frames always fan out to every other bound identity.  The fan-out
is marked by the ``broadcast`` flag rather than a reserved receiver id, so
no real identity can collide with it.  ``ping``/``pong`` are heartbeat
control frames and never reach the router's dispatch.
"""
import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from pydantic.alias_generators import to_camel

from dmchat.errors import MalformedFrame


class FrameKind(str, Enum):

    TEXT = "text"
    IMAGE = "image"
    VIDEO = "video"
    TYPING = "typing"
    STATUS = "status"


DURABLE_KINDS = frozenset({FrameKind.TEXT, FrameKind.IMAGE, FrameKind.VIDEO})
MEDIA_KINDS = frozenset({FrameKind.IMAGE, FrameKind.VIDEO})

TYPING_STARTED = "typing"
TYPING_STOPPED = "stopped_typing"
STATUS_ONLINE = "online"
STATUS_OFFLINE = "offline"

PING = "ping"
PONG = "pong"
PING_FRAME = json.dumps({"kind": PING})


class Frame(BaseModel):

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    kind: FrameKind
    sender_id: str = Field(min_length=1)
    receiver_id: Optional[str] = None
    broadcast: bool = False
    content: Optional[str] = None
    timestamp: Optional[datetime] = None
    media_ref: Optional[str] = None

    @field_validator("sender_id", "receiver_id", mode="before")
    @classmethod
    def _coerce_numeric_id(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @model_validator(mode="after")
    def _check_kind_fields(self) -> "Frame":
        if self.kind is FrameKind.STATUS:
            if self.content not in (STATUS_ONLINE, STATUS_OFFLINE):
                raise ValueError("status frames carry 'online' or 'offline'")
            self.broadcast = True
            self.receiver_id = None
            return self

        if self.broadcast:
            raise ValueError("only status frames can be broadcast")
        if not self.receiver_id:
            raise ValueError(f"{self.kind.value} frames need a receiverId")
        if self.kind is FrameKind.TYPING:
            if self.content not in (TYPING_STARTED, TYPING_STOPPED):
                raise ValueError("typing frames carry 'typing' or 'stopped_typing'")
        elif self.content is None:
            raise ValueError(f"{self.kind.value} frames need content")
        elif self.kind in MEDIA_KINDS and not self.media_ref:
            raise ValueError(f"{self.kind.value} frames need a mediaRef")
        return self

    @property
    def is_durable(self) -> bool:
        return self.kind in DURABLE_KINDS

    def encode(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True)

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "Frame":
        try:
            return cls.model_validate(payload)
        except ValidationError as exc:
            raise MalformedFrame(str(exc)) from exc


def parse_payload(raw: Union[str, bytes, None]) -> Dict[str, Any]:
    if not isinstance(raw, str):
        raise MalformedFrame("only text frames are accepted")
    try:
        payload = json.loads(raw)
    except ValueError as exc:
        raise MalformedFrame(f"frame is not valid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise MalformedFrame("frame must be a JSON object")
    return payload


def is_heartbeat_reply(payload: Dict[str, Any]) -> bool:
    return payload.get("kind") == PONG


def status_frame(user_id: str, status: str) -> Frame:
    return Frame(
        kind=FrameKind.STATUS,
        sender_id=user_id,
        broadcast=True,
        content=status,
        timestamp=datetime.now(timezone.utc),
    )
