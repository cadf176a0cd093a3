from fastapi import APIRouter, Depends, HTTPException, Response, status

from dmchat.errors import ConversationNotFound, LedgerWriteFailure
from dmchat.schemas.user import User
from dmchat.services.chat_service import ChatService
from dmchat.utils.dependencies import get_chat_service, get_current_user


router = APIRouter(prefix="/conversations", tags=["chat"])


@router.get("")
async def list_conversations(current_user: User = Depends(get_current_user), service: ChatService = Depends(get_chat_service)):
    items = await service.list_conversations(current_user.id)
    return {"items": items}


@router.get("/{conversation_id}/messages")
async def list_messages(conversation_id: str, current_user: User = Depends(get_current_user), service: ChatService = Depends(get_chat_service)):
    try:
        messages = await service.get_conversation_messages(current_user.id, conversation_id)
    except ConversationNotFound:
        raise HTTPException(status_code=404, detail="Conversation not found")
    return {"items": messages}


@router.post("/{conversation_id}/read")
async def mark_read(conversation_id: str, current_user: User = Depends(get_current_user), service: ChatService = Depends(get_chat_service)):
    try:
        count = await service.mark_conversation_read(current_user.id, conversation_id)
    except ConversationNotFound:
        raise HTTPException(status_code=404, detail="Conversation not found")
    return {"updated": count}


@router.delete("/{conversation_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_conversation(conversation_id: str, current_user: User = Depends(get_current_user), service: ChatService = Depends(get_chat_service)):
    try:
        await service.delete_conversation(current_user.id, conversation_id)
    except ConversationNotFound:
        raise HTTPException(status_code=404, detail="Conversation not found")
    except LedgerWriteFailure:
        raise HTTPException(status_code=503, detail="Conversation could not be deleted")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
