"""Push fan-out to connected clients.

Services only see the :class:`PushChannel` protocol. The running app installs a
:class:`ConnectionRegistry` on ``app.state.push``; tests pass a recorder instead.
Delivery is fire-and-forget: nothing here raises back into a request, and a
connection whose send fails is dropped from the registry.
"""

import asyncio
import logging
import threading
from collections import defaultdict
from typing import Any, Callable, Protocol

from fastapi import Request

from ..config import MESSAGE_PREVIEW_LENGTH

logger = logging.getLogger(__name__)

NEW_MATCH = "NEW_MATCH"
PROFILE_LIKED = "PROFILE_LIKED"
NEW_MESSAGE = "NEW_MESSAGE"
UNREAD_COUNT = "UNREAD_COUNT"
MESSAGE = "MESSAGE"
TYPING = "TYPING"


class PushChannel(Protocol):
    def deliver(self, user_id: str, payload: dict[str, Any]) -> None: ...

    def broadcast(self, room: str, payload: dict[str, Any]) -> None: ...


class Connection(Protocol):
    def send(self, payload: dict[str, Any]) -> None: ...


class WebSocketConnection:
    """Adapter that lets worker threads push onto a socket owned by the event loop."""

    def __init__(
        self,
        websocket,
        loop: asyncio.AbstractEventLoop,
        on_failure: Callable[["WebSocketConnection"], None] | None = None,
    ) -> None:
        self.websocket = websocket
        self.loop = loop
        self.on_failure = on_failure

    def send(self, payload: dict[str, Any]) -> None:
        future = asyncio.run_coroutine_threadsafe(self.websocket.send_json(payload), self.loop)
        future.add_done_callback(lambda f: self._check_sent(f, payload))

    def _check_sent(self, future, payload: dict[str, Any]) -> None:
        # Called once the scheduled send settles.
        if future.cancelled() or future.exception() is None:
            return
        logger.warning(f"[push] socket send failed type={payload.get('type')}: {future.exception()}")
        if self.on_failure is not None:
            self.on_failure(self)


def match_room(match_id: str) -> str:
    return f"match_{match_id}"


class ConnectionRegistry:
    def __init__(self) -> None:
        self._by_user: dict[str, set[Connection]] = defaultdict(set)
        self._by_room: dict[str, set[Connection]] = defaultdict(set)
        self._lock = threading.Lock()

    def register(self, user_id: str, conn: Connection) -> None:
        with self._lock:
            self._by_user[user_id].add(conn)
        logger.info(f"[push] connected user_id={user_id}")

    def unregister(self, user_id: str, conn: Connection) -> None:
        with self._lock:
            self._discard(conn, user_id)
        logger.info(f"[push] disconnected user_id={user_id}")

    def join(self, room: str, conn: Connection) -> None:
        with self._lock:
            self._by_room[room].add(conn)

    def leave(self, room: str, conn: Connection) -> None:
        with self._lock:
            conns = self._by_room.get(room)
            if conns is not None:
                conns.discard(conn)
                if not conns:
                    del self._by_room[room]

    def drop(self, conn: Connection, user_id: str | None = None) -> None:
        with self._lock:
            self._discard(conn, user_id)
        logger.info(f"[push] dropped connection user_id={user_id}")

    def is_online(self, user_id: str) -> bool:
        with self._lock:
            return bool(self._by_user.get(user_id))

    def deliver(self, user_id: str, payload: dict[str, Any]) -> None:
        with self._lock:
            targets = list(self._by_user.get(user_id, ()))
        self._send_all(targets, payload, user_id=user_id)

    def broadcast(self, room: str, payload: dict[str, Any]) -> None:
        with self._lock:
            targets = list(self._by_room.get(room, ()))
        self._send_all(targets, payload)

    def _send_all(self, targets: list[Connection], payload: dict[str, Any], user_id: str | None = None) -> None:
        for conn in targets:
            try:
                conn.send(payload)
            except Exception as exc:
                logger.warning(f"[push] send failed user_id={user_id} type={payload.get('type')}: {exc}")
                self.drop(conn, user_id)

    def _discard(self, conn: Connection, user_id: str | None) -> None:
        user_ids = [user_id] if user_id else list(self._by_user)
        for uid in user_ids:
            conns = self._by_user.get(uid)
            if conns is not None:
                conns.discard(conn)
                if not conns:
                    del self._by_user[uid]
        for room in list(self._by_room):
            self._by_room[room].discard(conn)
            if not self._by_room[room]:
                del self._by_room[room]


def get_push_channel(request: Request) -> PushChannel:
    return request.app.state.push


def _user_summary(user: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": str(user["id"]),
        "name": user.get("name"),
        "age": user.get("age"),
        "profilePhoto": user.get("profile_photo_1"),
    }


def new_match_payload(match_id: str, other_user: dict[str, Any]) -> dict[str, Any]:
    return {
        "type": NEW_MATCH,
        "matchId": match_id,
        "otherUser": _user_summary(other_user),
        "message": f"You matched with {other_user.get('name') or 'someone'}!",
    }


def profile_liked_payload(sender: dict[str, Any]) -> dict[str, Any]:
    return {
        "type": PROFILE_LIKED,
        "senderId": str(sender["id"]),
        "senderName": sender.get("name"),
        "message": f"{sender.get('name') or 'Someone'} liked your profile",
    }


def new_message_payload(sender_id: str, match_id: str, content: str) -> dict[str, Any]:
    preview = content if len(content) <= MESSAGE_PREVIEW_LENGTH else content[:MESSAGE_PREVIEW_LENGTH] + "..."
    return {"type": NEW_MESSAGE, "senderId": sender_id, "matchId": match_id, "preview": preview}


def unread_count_payload(count: int) -> dict[str, Any]:
    return {"type": UNREAD_COUNT, "unreadCount": int(count)}


def room_message_payload(message: dict[str, Any]) -> dict[str, Any]:
    return {
        "type": MESSAGE,
        "message": {
            "id": str(message["id"]),
            "matchId": str(message["match_id"]),
            "senderId": str(message["sender_id"]),
            "receiverId": str(message["receiver_id"]),
            "content": message["content"],
            "isRead": bool(message.get("is_read")),
            "createdAt": str(message.get("created_at") or ""),
        },
    }


def typing_payload(user_id: str, match_id: str, is_typing: bool) -> dict[str, Any]:
    return {"type": TYPING, "userId": user_id, "matchId": match_id, "isTyping": bool(is_typing)}
