from typing import Any

from fastapi import APIRouter, Depends

from ..auth.deps import get_current_user
from ..config import RL_MESSAGE_LIMIT, RL_WINDOW_SECONDS
from ..deps import parse_uuid
from ..schemas import SendMessageRequest
from ..services import conversations
from ..services.notifications import PushChannel, get_push_channel
from ..services.rate_limit import rate_limit_dependency

router = APIRouter()

RL_MESSAGE = rate_limit_dependency("message_send", RL_MESSAGE_LIMIT, RL_WINDOW_SECONDS)


@router.get("/conversations")
def list_conversations(current_user: dict[str, Any] = Depends(get_current_user)) -> dict[str, Any]:
    return {"conversations": conversations.list_conversations(str(current_user["id"]))}


@router.get("/unread-count")
def unread_count(current_user: dict[str, Any] = Depends(get_current_user)) -> dict[str, int]:
    return {"unread_count": conversations.unread_count(str(current_user["id"]))}


@router.post("", status_code=201)
def send_message(
    payload: SendMessageRequest,
    current_user: dict[str, Any] = Depends(get_current_user),
    push: PushChannel = Depends(get_push_channel),
    _: None = RL_MESSAGE,
) -> dict[str, Any]:
    match_id = parse_uuid(payload.match_id, "Match")
    return {"message": conversations.send_message(str(current_user["id"]), match_id, payload.content, push)}


@router.get("/match/{match_id}")
def match_messages(
    match_id: str,
    page: int = 1,
    limit: int | None = None,
    current_user: dict[str, Any] = Depends(get_current_user),
) -> dict[str, Any]:
    rows = conversations.get_match_messages(parse_uuid(match_id, "Match"), str(current_user["id"]), page=page, limit=limit)
    return {"messages": rows, "page": max(1, page)}


@router.patch("/{message_id}/read")
def mark_message_read(message_id: str, current_user: dict[str, Any] = Depends(get_current_user)) -> dict[str, Any]:
    return {"message": conversations.mark_read(parse_uuid(message_id, "Message"), str(current_user["id"]))}
