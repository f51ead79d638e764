import json
import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, WebSocketException, status

from flexbase.db.models.user import User
from flexbase.services.auth_service import AuthService
from flexbase.services.connection_manager import ConnectionManager
from flexbase.services.notification_service import NotificationService, get_notifier

logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])


def handle_client_event(manager: ConnectionManager, websocket: WebSocket, raw: str) -> Optional[dict]:
    """Apply one client frame; returns a reply frame when one is due."""
    try:
        message = json.loads(raw)
        event = message["event"]
    except (ValueError, TypeError, KeyError):
        logger.warning("Ignoring malformed socket frame: %.100s", raw)
        return None

    if event == "ping":
        return {"event": "pong"}

    if event not in ("join_post", "leave_post"):
        logger.warning("Ignoring unknown socket event %r", event)
        return None

    try:
        post_id = uuid.UUID(str(message.get("postId")))
    except ValueError:
        logger.warning("Ignoring %s with invalid post id", event)
        return None

    room = manager.post_room(post_id)
    if event == "join_post":
        manager.join(websocket, room)
    else:
        manager.leave(websocket, room)
    return None


@router.websocket("/ws")
async def socket_endpoint(
    websocket: WebSocket,
    user: Optional[User] = Depends(AuthService.get_socket_user),
    notifier: NotificationService = Depends(get_notifier),
):
    if user is None:
        raise WebSocketException(code=status.WS_1008_POLICY_VIOLATION, reason="Not authorized")

    manager = notifier.manager
    user_id = user.id

    await manager.connect(websocket, user_id)
    logger.info("User connected: %s", user_id)

    try:
        while True:
            frame = await websocket.receive()
            if frame["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(frame.get("code", status.WS_1000_NORMAL_CLOSURE))

            raw = frame.get("text")
            if raw is None:
                logger.warning("Ignoring binary socket frame from %s", user_id)
                continue

            reply = handle_client_event(manager, websocket, raw)
            if reply is not None:
                await websocket.send_json(reply)
    except WebSocketDisconnect:
        pass
    finally:
        manager.disconnect(websocket)
        logger.info("User disconnected: %s", user_id)
