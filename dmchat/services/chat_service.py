import asyncio
import logging
import weakref
from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional, Tuple

from dmchat.errors import (
    ChatError,
    ConversationNotFound,
    LedgerWriteFailure,
    MessageNotFound,
    MessageValidationError,
    ReceiverNotFound,
)
from dmchat.repositories.base import (
    BaseConversationRepository,
    BaseMessageRepository,
    BaseUserRepository,
    pair_key,
)
from dmchat.schemas.conversation import Conversation, ConversationSummary
from dmchat.schemas.message import MEDIA_KINDS, Message, MessageKind
from dmchat.services.user_service import to_public


logger = logging.getLogger(__name__)


class ChatService:
    """Durable side of direct messaging: messages, conversations and unread counts.

    Writes touching the same unordered pair are serialized through a
    per-pair lock so the conversation pointer always reflects the last
    message applied.  Unread counts are never stored; they are counted
    from the messages' ``read`` flags on every listing.
    """

    def __init__(
        self,
        message_repo: BaseMessageRepository,
        conversation_repo: BaseConversationRepository,
        user_repo: BaseUserRepository,
    ) -> None:
        self._message_repo = message_repo
        self._conversation_repo = conversation_repo
        self._user_repo = user_repo
        self._pair_locks: "weakref.WeakValueDictionary[Tuple[str, str], asyncio.Lock]" = weakref.WeakValueDictionary()

    @asynccontextmanager
    async def _pair_lock(self, user_a: str, user_b: str) -> AsyncIterator[None]:
        key = pair_key(user_a, user_b)
        lock = self._pair_locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._pair_locks[key] = lock
        async with lock:
            yield

    @staticmethod
    def _validate(sender_id: str, receiver_id: str, content: Optional[str], kind: MessageKind, media_ref: Optional[str]) -> str:
        if sender_id == receiver_id:
            raise MessageValidationError("Cannot send a message to yourself")
        if content is None:
            raise MessageValidationError("Message content is required")
        if kind in MEDIA_KINDS:
            if not media_ref:
                raise MessageValidationError(f"A media reference is required for {kind.value} messages")
            return content.strip()
        if media_ref:
            raise MessageValidationError("Only image and video messages carry a media reference")
        if not content.strip():
            raise MessageValidationError("Message content cannot be empty")
        return content.strip()

    async def record_message(
        self,
        sender_id: str,
        receiver_id: str,
        content: Optional[str],
        kind: MessageKind = MessageKind.TEXT,
        media_ref: Optional[str] = None,
    ) -> Message:
        content = self._validate(sender_id, receiver_id, content, kind, media_ref)
        try:
            receiver = await self._user_repo.get_user_by_id(receiver_id)
        except Exception as exc:
            logger.exception("Failed to look up receiver %s", receiver_id)
            raise LedgerWriteFailure(str(exc)) from exc
        if receiver is None:
            raise ReceiverNotFound(f"Receiver {receiver_id} not found")

        async with self._pair_lock(sender_id, receiver_id):
            try:
                message = await self._message_repo.save_message(
                    sender_id=sender_id,
                    receiver_id=receiver_id,
                    content=content,
                    kind=kind,
                    media_ref=media_ref,
                )
                await self._conversation_repo.upsert_on_new_message(message)
            except ChatError:
                raise
            except Exception as exc:
                logger.exception("Failed to record message from %s to %s", sender_id, receiver_id)
                raise LedgerWriteFailure(str(exc)) from exc
        return message

    async def list_conversations(self, user_id: str) -> List[ConversationSummary]:
        summaries: List[ConversationSummary] = []
        for conversation in await self._conversation_repo.list_for_user(user_id):
            other_id = conversation.other_participant(user_id)
            other_user = await self._user_repo.get_user_by_id(other_id)
            if other_user is None:
                continue
            last_message = None
            if conversation.last_message_id:
                last_message = await self._message_repo.get_message(conversation.last_message_id)
            unread = await self._message_repo.count_unread(user_id, other_id)
            summaries.append(
                ConversationSummary(
                    **conversation.model_dump(),
                    other_user=to_public(other_user),
                    last_message=last_message,
                    unread_count=unread,
                )
            )
        summaries.sort(key=lambda s: s.updated_at, reverse=True)
        return summaries

    async def mark_read(self, viewer_id: str, other_id: str) -> int:
        return await self._message_repo.mark_read(viewer_id, other_id)

    async def get_messages(self, viewer_id: str, other_id: str) -> List[Message]:
        # Viewing a history counts as reading it.
        await self.mark_read(viewer_id, other_id)
        return await self._message_repo.get_between(viewer_id, other_id)

    async def get_conversation_for(self, viewer_id: str, conversation_id: str) -> Conversation:
        conversation = await self._conversation_repo.get_conversation(conversation_id)
        if conversation is None or not conversation.has_participant(viewer_id):
            raise ConversationNotFound(f"Conversation {conversation_id} not found")
        return conversation

    async def get_conversation_messages(self, viewer_id: str, conversation_id: str) -> List[Message]:
        conversation = await self.get_conversation_for(viewer_id, conversation_id)
        return await self.get_messages(viewer_id, conversation.other_participant(viewer_id))

    async def mark_conversation_read(self, viewer_id: str, conversation_id: str) -> int:
        conversation = await self.get_conversation_for(viewer_id, conversation_id)
        return await self.mark_read(viewer_id, conversation.other_participant(viewer_id))

    async def delete_message(self, requester_id: str, message_id: str) -> None:
        message = await self._message_repo.get_message(message_id)
        if message is None or message.sender_id != requester_id:
            raise MessageNotFound(f"Message {message_id} not found")

        async with self._pair_lock(message.sender_id, message.receiver_id):
            try:
                if not await self._message_repo.delete_message(message_id):
                    raise MessageNotFound(f"Message {message_id} not found")
                conversation = await self._conversation_repo.get_between(message.sender_id, message.receiver_id)
                if conversation is not None and conversation.last_message_id == message_id:
                    latest = await self._message_repo.latest_between(message.sender_id, message.receiver_id)
                    await self._conversation_repo.repoint(conversation.id, latest)
            except ChatError:
                raise
            except Exception as exc:
                logger.exception("Failed to delete message %s", message_id)
                raise LedgerWriteFailure(str(exc)) from exc

    async def delete_conversation(self, viewer_id: str, conversation_id: str) -> int:
        """Drop the conversation and its whole history for both participants.

        The pair can start over afterwards; the next message creates a new
        conversation record.
        """
        conversation = await self.get_conversation_for(viewer_id, conversation_id)
        other_id = conversation.other_participant(viewer_id)

        async with self._pair_lock(viewer_id, other_id):
            try:
                removed = await self._message_repo.delete_between(viewer_id, other_id)
                await self._conversation_repo.delete_conversation(conversation.id)
            except Exception as exc:
                logger.exception("Failed to delete conversation %s", conversation_id)
                raise LedgerWriteFailure(str(exc)) from exc
        logger.info("Conversation %s deleted by %s (%d messages)", conversation_id, viewer_id, removed)
        return removed
