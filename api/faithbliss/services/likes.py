import logging
from typing import Any

from .. import repo
from ..errors import InvalidOperationError, NotFoundError
from .conversations import serialize_match_row
from .notifications import PushChannel, new_match_payload, profile_liked_payload
from .profiles import public_profile
from .state_machine import PairState

logger = logging.getLogger(__name__)


def _require_active_target(user_id: str) -> dict[str, Any]:
    target = repo.get_user_by_id(user_id)
    if not target or not target.get("is_active"):
        raise NotFoundError("User not found")
    return target


def like_user(liker_id: str, liked_id: str, push: PushChannel) -> dict[str, Any]:
    if liker_id == liked_id:
        raise InvalidOperationError("You cannot like yourself")
    liked = _require_active_target(liked_id)

    result = repo.record_like(liker_id, liked_id)
    liker = repo.get_user_by_id(liker_id) or {"id": liker_id}
    state = PairState(result["state"])

    if state != PairState.MATCHED:
        logger.info(f"[match] like liker_id={liker_id} liked_id={liked_id}")
        push.deliver(liked_id, profile_liked_payload(liker))
        return {"is_match": False, "match": None}

    match = result["match"]
    match_id = str(match["id"])
    logger.info(f"[match] mutual like, match_id={match_id} users={liker_id},{liked_id}")
    push.deliver(liker_id, new_match_payload(match_id, liked))
    push.deliver(liked_id, new_match_payload(match_id, liker))
    return {
        "is_match": True,
        "match": {
            "id": match_id,
            "user1_id": str(match["user1_id"]),
            "user2_id": str(match["user2_id"]),
            "status": match.get("status"),
            "created_at": match.get("created_at"),
            "other_user": public_profile(liked),
        },
    }


def pass_user(user_id: str, passed_id: str) -> dict[str, Any]:
    if user_id == passed_id:
        raise InvalidOperationError("You cannot pass on yourself")
    repo.record_pass(user_id, passed_id)
    return {"passed": True, "user_id": passed_id}


def list_matches(user_id: str) -> list[dict[str, Any]]:
    return [serialize_match_row(r, include_unread=False) for r in repo.list_match_rows(user_id)]
