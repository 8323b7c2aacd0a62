from typing import Any

from fastapi import APIRouter, Depends

from ..auth.deps import get_current_user
from ..config import RL_LIKE_LIMIT, RL_PASS_LIMIT, RL_WINDOW_SECONDS
from ..deps import parse_uuid
from ..schemas import CandidateFilterRequest, LikeResult
from ..services import discovery, likes
from ..services.notifications import PushChannel, get_push_channel
from ..services.profiles import public_profile
from ..services.rate_limit import rate_limit_dependency

router = APIRouter()

RL_LIKE = rate_limit_dependency("match_like", RL_LIKE_LIMIT, RL_WINDOW_SECONDS)
RL_PASS = rate_limit_dependency("match_pass", RL_PASS_LIMIT, RL_WINDOW_SECONDS)


@router.get("")
def list_matches(current_user: dict[str, Any] = Depends(get_current_user)) -> dict[str, Any]:
    return {"matches": likes.list_matches(str(current_user["id"]))}


@router.get("/potential")
def potential_matches(
    page: int = 1,
    limit: int | None = None,
    current_user: dict[str, Any] = Depends(get_current_user),
) -> dict[str, Any]:
    rows = discovery.get_candidates_from_preferences(str(current_user["id"]), page=page, page_size=limit)
    return {"users": [public_profile(r) for r in rows], "page": max(1, page)}


@router.post("/potential/filter")
def potential_matches_filtered(
    payload: CandidateFilterRequest,
    page: int = 1,
    limit: int | None = None,
    current_user: dict[str, Any] = Depends(get_current_user),
) -> dict[str, Any]:
    rows = discovery.get_candidates_from_filters(
        str(current_user["id"]),
        payload.model_dump(mode="json"),
        page=page,
        page_size=limit,
    )
    return {"users": [public_profile(r) for r in rows], "page": max(1, page)}


@router.post("/like/{user_id}", response_model=LikeResult)
def like_user(
    user_id: str,
    current_user: dict[str, Any] = Depends(get_current_user),
    push: PushChannel = Depends(get_push_channel),
    _: None = RL_LIKE,
) -> dict[str, Any]:
    return likes.like_user(str(current_user["id"]), parse_uuid(user_id, "User"), push)


@router.post("/pass/{user_id}")
def pass_user(
    user_id: str,
    current_user: dict[str, Any] = Depends(get_current_user),
    _: None = RL_PASS,
) -> dict[str, Any]:
    return likes.pass_user(str(current_user["id"]), parse_uuid(user_id, "User"))
