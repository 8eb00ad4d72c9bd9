from typing import Optional
from uuid import UUID
from fastapi import APIRouter, WebSocket, WebSocketDisconnect, Query
from pydantic import ValidationError as SchemaValidationError
import json
import logging

from ...core.database import AsyncSessionLocal
from ...core.exceptions import ChatRelayException, ValidationError
from ...schemas.chat_schemas import CreateMessageRequest, UpdateReadStatusRequest
from ...services.auth.authorization import AccessContext, Permission, ensure_authorized
from ...services.chat.chat_service import ChatService
from ...services.chat.context import ChatContext
from ...services.chat.subscription_manager import SubscriptionManager
from ...services.chat.websocket_manager import WebSocketManager

logger = logging.getLogger(__name__)
router = APIRouter()


async def _send_message(websocket: WebSocket, data: dict, token: Optional[str]) -> dict:
    try:
        request = CreateMessageRequest.model_validate(data)
    except SchemaValidationError as e:
        raise ValidationError("Invalid message", errors=[err["msg"] for err in e.errors()])

    context = ChatContext.build(request.context_app, request.context_entity_type, request.context_entity_id)
    await ensure_authorized(websocket.app.state.policy, AccessContext(context, token), Permission.CREATE_MESSAGE)

    async with AsyncSessionLocal() as db:
        service = ChatService(db, broadcaster=websocket.app.state.broadcaster, cache=websocket.app.state.cache)
        message = await service.post_message(request)
    return {"type": "message-sent", "data": {"messageId": str(message.id), "groupId": str(message.chat_group_id)}}


async def _mark_read(websocket: WebSocket, data: dict, token: Optional[str]) -> dict:
    try:
        message_id = UUID(str(data.get("messageId")))
        request = UpdateReadStatusRequest.model_validate(data)
    except ValueError:
        raise ValidationError("Invalid or missing message ID or isRead flag.")

    async with AsyncSessionLocal() as db:
        service = ChatService(db, broadcaster=websocket.app.state.broadcaster, cache=websocket.app.state.cache)
        context = await service.get_message_context(message_id)
        await ensure_authorized(websocket.app.state.policy, AccessContext(context, token), Permission.CHANGE_STATUS)
        message = await service.mark_read(message_id, request.is_read)
    return {"type": "read-status-updated", "data": {"messageId": str(message.id), "isRead": message.is_read}}


@router.websocket("/ws/chat")
async def websocket_endpoint(websocket: WebSocket, token: Optional[str] = Query(None)):
    """WebSocket endpoint for real-time chat"""
    manager: WebSocketManager = websocket.app.state.websocket_manager
    subscriptions: SubscriptionManager = websocket.app.state.subscriptions

    connection = await manager.connect(websocket)
    connection_id = connection.connection_id

    try:
        while True:
            frame = await websocket.receive()
            if frame["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(frame.get("code", 1000))
            try:
                message_data = json.loads(frame["text"])
            except (KeyError, TypeError, json.JSONDecodeError):
                message_data = None
            if not isinstance(message_data, dict):
                manager.send_personal_message({"type": "error", "data": {"message": "Frames must be JSON objects"}}, connection_id)
                continue

            message_type = message_data.get("type")

            if message_type == "join_room":
                subscriptions.join(connection_id, message_data.get("room"))

            elif message_type == "leave_room":
                subscriptions.leave(connection_id, message_data.get("room"))

            elif message_type in ("send_message", "mark_read"):
                handler = _send_message if message_type == "send_message" else _mark_read
                try:
                    reply = await handler(websocket, message_data, token)
                except ChatRelayException as e:
                    logger.warning(f"{message_type} from {connection_id} failed: {e.message}")
                    reply = {"type": "error", "data": {"message": e.message, "status": e.status_code}}
                except Exception as e:
                    logger.exception(f"Unexpected error handling {message_type} from {connection_id}: {e}")
                    reply = {"type": "error", "data": {"message": "An internal server error occurred"}}
                manager.send_personal_message(reply, connection_id)

            else:
                manager.send_personal_message({
                    "type": "error",
                    "data": {"message": f"Unknown message type: {message_type}"}
                }, connection_id)

    except WebSocketDisconnect as e:
        logger.info(f"Client {connection_id} disconnected, code: {e.code}")
    finally:
        await manager.disconnect(connection_id)
