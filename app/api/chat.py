import asyncio
import logging
from datetime import datetime
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect
from pydantic import BaseModel, ConfigDict
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool
from app.api.auth import get_identity, user_from_token, websocket_token
from app.core.db import get_db
from app.core.errors import PortalError
from app.core.identity import Identity
from app.schemas.common import GroupRef, Message, UserRef
from app.services import chat
from app.services.chat_hub import ChatClient, ChatHub, get_chat_hub
from app.services.membership import load_identity

logger = logging.getLogger(__name__)

router = APIRouter()


class ChatMessageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    sender_id: int
    recipient_id: Optional[int] = None
    group_id: Optional[int] = None
    content: str
    is_read: bool
    created_at: Optional[datetime] = None


class ContactsResponse(BaseModel):
    users: List[UserRef]
    groups: List[GroupRef]


async def _writer(websocket: WebSocket, client: ChatClient) -> None:
    """Drain the client's queue onto the socket until the hub closes it."""
    while True:
        message = await client.queue.get()
        if message is None:
            break
        await websocket.send_json(message)
    await websocket.close()


def _handle_incoming(db: Session, user, data: dict):
    identity = load_identity(db, user)
    message, audience = chat.send_message(
        db,
        identity,
        data.get("content", ""),
        recipient_id=data.get("recipient_id"),
        group_id=data.get("group_id"),
    )
    return chat.message_dict(message), audience


@router.websocket("/ws")
async def chat_socket(websocket: WebSocket, db: Session = Depends(get_db), hub: ChatHub = Depends(get_chat_hub)):
    """
    Chat connection. The token comes from the Authorization header or ?token=.
    Incoming frames: {"type": "message", "content": ..., "recipient_id" | "group_id": ...}
    """
    token = websocket_token(websocket)
    if not token:
        await websocket.close(code=1008)  # Policy Violation
        return
    try:
        user = user_from_token(db, token)
    except PortalError:
        await websocket.close(code=4403)  # Forbidden
        return

    await websocket.accept()
    client = ChatClient(user.id)
    await hub.register(client)
    writer = asyncio.create_task(_writer(websocket, client))

    try:
        while True:
            data = await websocket.receive_json()
            if not isinstance(data, dict) or data.get("type") != "message":
                client.offer({"type": "error", "error": "invalid_frame", "message": "Unsupported frame"})
                continue
            try:
                payload, audience = await run_in_threadpool(_handle_incoming, db, user, data)
            except PortalError as exc:
                client.offer({"type": "error", "error": exc.error_code, "message": exc.message})
                continue
            await hub.send_to_users(audience, payload)
    except WebSocketDisconnect:
        pass
    except ValueError:
        logger.warning(f"⚠️ User {user.id} sent a frame that is not JSON, closing")
    finally:
        await hub.unregister(client)
        writer.cancel()


@router.get("/contacts", response_model=ContactsResponse)
def contacts(db: Session = Depends(get_db), identity: Identity = Depends(get_identity)):
    return chat.contacts(db, identity)


@router.get("/history", response_model=List[ChatMessageResponse])
def history(
    target_id: Optional[int] = None,
    group_id: Optional[int] = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_identity),
):
    """Conversation with a user (target_id) or a group (group_id), newest first"""
    return chat.history(db, identity, target_id=target_id, group_id=group_id, limit=limit, offset=offset)


@router.delete("/history", response_model=Message)
def clear_history(
    target_id: Optional[int] = None,
    group_id: Optional[int] = None,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_identity),
):
    deleted = chat.clear_conversation(db, identity, target_id=target_id, group_id=group_id)
    return {"message": f"{deleted} messages deleted"}


@router.delete("/messages/{message_id}", response_model=Message)
def delete_message(message_id: int, db: Session = Depends(get_db), identity: Identity = Depends(get_identity)):
    chat.delete_message(db, identity, message_id)
    return {"message": "Message deleted"}
