import logging
from typing import Any

from .. import repo
from ..config import MESSAGE_MAX_LENGTH, MESSAGE_PAGE_SIZE
from ..errors import InvalidOperationError, NotFoundError, UnauthorizedError
from .notifications import (
    PushChannel,
    match_room,
    new_message_payload,
    room_message_payload,
    unread_count_payload,
)

logger = logging.getLogger(__name__)


def serialize_message(row: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": str(row["id"]),
        "match_id": str(row["match_id"]),
        "sender_id": str(row["sender_id"]),
        "receiver_id": str(row["receiver_id"]),
        "content": row["content"],
        "is_read": bool(row.get("is_read")),
        "created_at": row.get("created_at"),
    }


def serialize_match_row(row: dict[str, Any], *, include_unread: bool = True) -> dict[str, Any]:
    last_message = None
    if row.get("last_message_id"):
        last_message = {
            "id": str(row["last_message_id"]),
            "sender_id": str(row["last_message_sender_id"]),
            "content": row.get("last_message_content"),
            "is_read": bool(row.get("last_message_is_read")),
            "created_at": row.get("last_message_at"),
        }
    out = {
        "id": str(row["id"]),
        "status": row.get("status"),
        "created_at": row.get("created_at"),
        "updated_at": row.get("updated_at"),
        "other_user": {
            "id": str(row["other_user_id"]),
            "name": row.get("other_name"),
            "age": row.get("other_age"),
            "profile_photo": row.get("other_photo"),
        },
        "last_message": last_message,
    }
    if include_unread:
        out["unread_count"] = int(row.get("unread_count") or 0)
    return out


def _participants(match: dict[str, Any]) -> tuple[str, str]:
    return str(match["user1_id"]), str(match["user2_id"])


def require_participant(match_id: str, user_id: str) -> tuple[dict[str, Any], str]:
    """Return the match and the other participant's id."""
    match = repo.get_match(match_id)
    if not match:
        raise NotFoundError("Match not found")
    a, b = _participants(match)
    if user_id not in {a, b}:
        raise UnauthorizedError("You are not part of this match")
    return match, (b if user_id == a else a)


def send_message(sender_id: str, match_id: str, content: str, push: PushChannel) -> dict[str, Any]:
    body = (content or "").strip()
    if not body:
        raise InvalidOperationError("Message content required")
    if len(body) > MESSAGE_MAX_LENGTH:
        raise InvalidOperationError(f"Message must be {MESSAGE_MAX_LENGTH} characters or fewer")

    _, receiver_id = require_participant(match_id, sender_id)
    message = repo.create_message(match_id, sender_id, receiver_id, body)
    logger.info(f"[chat] message sent match_id={match_id} sender_id={sender_id}")

    push.broadcast(match_room(match_id), room_message_payload(message))
    push.deliver(receiver_id, unread_count_payload(repo.count_unread(receiver_id)))
    push.deliver(receiver_id, new_message_payload(sender_id, match_id, body))
    return serialize_message(message)


def mark_read(message_id: str, reader_id: str) -> dict[str, Any]:
    message = repo.get_message(message_id)
    if not message:
        raise NotFoundError("Message not found")
    if str(message["receiver_id"]) != reader_id:
        raise UnauthorizedError("Only the receiver can mark a message as read")
    if message.get("is_read"):
        return serialize_message(message)
    updated = repo.mark_message_read(message_id) or message
    return serialize_message(updated)


def unread_count(user_id: str) -> int:
    return repo.count_unread(user_id)


def list_conversations(user_id: str) -> list[dict[str, Any]]:
    return [serialize_match_row(r) for r in repo.list_match_rows(user_id)]


def get_match_messages(match_id: str, user_id: str, page: int = 1, limit: int | None = None) -> list[dict[str, Any]]:
    require_participant(match_id, user_id)
    p = max(1, int(page or 1))
    size = max(1, min(int(limit or MESSAGE_PAGE_SIZE), MESSAGE_PAGE_SIZE * 2))
    return [serialize_message(r) for r in repo.list_match_messages(match_id, p, size)]
