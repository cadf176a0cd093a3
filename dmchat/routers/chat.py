import logging

from fastapi import APIRouter, Depends, HTTPException, Response, WebSocket, WebSocketDisconnect, status

from dmchat.errors import LedgerWriteFailure, MessageNotFound, MessageValidationError, ReceiverNotFound
from dmchat.realtime.connection import Connection
from dmchat.realtime.core import RealtimeCore
from dmchat.schemas.message import Message, MessageCreate
from dmchat.schemas.user import User
from dmchat.services.chat_service import ChatService
from dmchat.utils.dependencies import get_chat_service, get_current_user


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/messages", tags=["chat"])
ws_router = APIRouter(tags=["chat"])


@ws_router.websocket("/ws")
async def chat_socket(websocket: WebSocket):
    # Identity comes from the first frame's senderId, see FrameRouter.
    await websocket.accept()
    realtime: RealtimeCore = websocket.app.state.realtime
    connection = Connection(websocket, queue_size=websocket.app.state.settings.send_queue_size)
    realtime.registry.track(connection)
    connection.start()
    logger.debug("New WebSocket connection %s", connection.id)

    try:
        while not connection.closed:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            data = message.get("text")
            if data is None:
                data = message.get("bytes")
            try:
                await realtime.router.receive(connection, data)
            except Exception:
                logger.exception("Error processing frame on %s", connection.id)
    except WebSocketDisconnect:
        pass
    except RuntimeError as exc:
        # the server already closed this socket (eviction or heartbeat)
        logger.debug("Socket %s closed by server: %s", connection.id, exc)
    finally:
        await connection.close(notify=False)
        await realtime.router.disconnect(connection)


@router.post("", status_code=status.HTTP_201_CREATED, response_model=Message)
async def send_message(body: MessageCreate, current_user: User = Depends(get_current_user), service: ChatService = Depends(get_chat_service)):
    try:
        return await service.record_message(
            sender_id=current_user.id,
            receiver_id=body.receiver_id,
            content=body.content,
            kind=body.kind,
            media_ref=body.media_ref,
        )
    except ReceiverNotFound:
        raise HTTPException(status_code=404, detail="Receiver not found")
    except MessageValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except LedgerWriteFailure:
        raise HTTPException(status_code=503, detail="Message could not be saved")


@router.delete("/{message_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_message(message_id: str, current_user: User = Depends(get_current_user), service: ChatService = Depends(get_chat_service)):
    try:
        await service.delete_message(current_user.id, message_id)
    except MessageNotFound:
        raise HTTPException(status_code=404, detail="Message not found")
    except LedgerWriteFailure:
        raise HTTPException(status_code=503, detail="Message could not be deleted")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
