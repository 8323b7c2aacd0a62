import asyncio
import logging
from typing import Any

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from starlette.concurrency import run_in_threadpool

from .. import repo
from ..auth.deps import SESSION_COOKIE_NAME, authenticate_websocket_token
from ..deps import parse_uuid
from ..errors import FaithBlissError
from ..services import conversations
from ..services.notifications import (
    ConnectionRegistry,
    WebSocketConnection,
    match_room,
    typing_payload,
    unread_count_payload,
)

logger = logging.getLogger(__name__)

router = APIRouter()

# Policy violation; sent when the handshake carries no valid token.
WS_POLICY_VIOLATION = 1008


def _error(detail: str) -> dict[str, Any]:
    return {"type": "ERROR", "detail": detail}


async def _handle_action(
    registry: ConnectionRegistry,
    conn: WebSocketConnection,
    user_id: str,
    data: dict[str, Any],
) -> dict[str, Any] | None:
    action = str(data.get("action") or "")
    if action not in {"join_match", "leave_match", "typing", "send_message"}:
        return _error(f"Unknown action: {action or '<missing>'}")

    match_id = parse_uuid(str(data.get("match_id") or ""), "Match")
    if action == "leave_match":
        registry.leave(match_room(match_id), conn)
        return {"type": "LEFT_MATCH", "matchId": match_id}

    await run_in_threadpool(conversations.require_participant, match_id, user_id)
    if action == "join_match":
        registry.join(match_room(match_id), conn)
        return {"type": "JOINED_MATCH", "matchId": match_id}
    if action == "typing":
        registry.broadcast(match_room(match_id), typing_payload(user_id, match_id, bool(data.get("is_typing", True))))
        return None

    message = await run_in_threadpool(
        conversations.send_message, user_id, match_id, str(data.get("content") or ""), registry
    )
    return {"type": "MESSAGE_SENT", "message": message}


@router.websocket("/ws")
async def realtime(websocket: WebSocket, token: str | None = None) -> None:
    token = token or websocket.cookies.get(SESSION_COOKIE_NAME)
    user = await run_in_threadpool(authenticate_websocket_token, token)
    if not user:
        await websocket.close(code=WS_POLICY_VIOLATION)
        return

    await websocket.accept()
    registry: ConnectionRegistry = websocket.app.state.push
    user_id = str(user["id"])
    conn = WebSocketConnection(
        websocket,
        asyncio.get_running_loop(),
        on_failure=lambda dead: registry.drop(dead, user_id),
    )
    registry.register(user_id, conn)
    try:
        await run_in_threadpool(repo.update_last_seen, user_id)
        count = await run_in_threadpool(conversations.unread_count, user_id)
        await websocket.send_json(unread_count_payload(count))
        while True:
            try:
                data = await websocket.receive_json()
            except ValueError:
                await websocket.send_json(_error("Invalid JSON"))
                continue
            if not isinstance(data, dict):
                await websocket.send_json(_error("Expected a JSON object"))
                continue
            try:
                reply = await _handle_action(registry, conn, user_id, data)
            except FaithBlissError as exc:
                reply = _error(exc.message)
            if reply is not None:
                await websocket.send_json(reply)
    except WebSocketDisconnect:
        logger.debug(f"[ws] client closed user_id={user_id}")
    finally:
        registry.unregister(user_id, conn)
