from typing import Any

from fastapi import APIRouter, Depends, File, Query, Request, Response, UploadFile

from ..auth.deps import get_current_user, get_current_user_allow_inactive
from ..http_helpers import store_uploaded_photo
from ..schemas import Denomination, Gender, OnboardingRequest, PreferencesUpdateRequest, ProfileUpdateRequest
from ..services import profiles
from .auth import start_session

router = APIRouter()


@router.get("/me")
def get_me(current_user: dict[str, Any] = Depends(get_current_user)) -> dict[str, Any]:
    return profiles.private_profile(current_user)


@router.patch("/me")
def update_me(payload: ProfileUpdateRequest, current_user: dict[str, Any] = Depends(get_current_user)) -> dict[str, Any]:
    return profiles.update_profile(str(current_user["id"]), payload.model_dump(mode="json", exclude_unset=True))


@router.get("/me/preferences")
def get_my_preferences(current_user: dict[str, Any] = Depends(get_current_user)) -> dict[str, Any]:
    return profiles.get_preferences(str(current_user["id"]))


@router.put("/me/preferences")
def update_my_preferences(payload: PreferencesUpdateRequest, current_user: dict[str, Any] = Depends(get_current_user)) -> dict[str, Any]:
    return profiles.update_preferences(str(current_user["id"]), payload.model_dump(mode="json", exclude_unset=True))


@router.post("/me/onboarding")
def complete_my_onboarding(payload: OnboardingRequest, current_user: dict[str, Any] = Depends(get_current_user)) -> dict[str, Any]:
    fields = payload.model_dump(mode="json", exclude_unset=True)
    fields["preferences"] = payload.preferences.model_dump(mode="json", exclude_unset=True)
    return profiles.complete_onboarding(str(current_user["id"]), fields)


@router.post("/me/deactivate")
def deactivate_me(current_user: dict[str, Any] = Depends(get_current_user)) -> dict[str, Any]:
    return profiles.deactivate(str(current_user["id"]))


@router.post("/me/reactivate")
def reactivate_me(
    request: Request,
    response: Response,
    current_user: dict[str, Any] = Depends(get_current_user_allow_inactive),
) -> dict[str, Any]:
    status = profiles.reactivate(str(current_user["id"]))
    # The caller may hold a reactivation-only token, so a full session replaces it.
    session = start_session({**current_user, "is_active": True}, request, response)
    return {**status, **session}


@router.put("/me/photos/{slot}")
async def upload_my_photo(
    slot: int,
    request: Request,
    file: UploadFile = File(...),
    current_user: dict[str, Any] = Depends(get_current_user),
) -> dict[str, Any]:
    profiles.photo_column(slot)
    url = await store_uploaded_photo(file, str(current_user["id"]), request)
    return profiles.set_photo(str(current_user["id"]), slot, url)


@router.delete("/me/photos/{slot}")
def remove_my_photo(slot: int, current_user: dict[str, Any] = Depends(get_current_user)) -> dict[str, Any]:
    return profiles.remove_photo(str(current_user["id"]), slot)


@router.get("/search")
def search_users(
    search: str | None = None,
    gender: Gender | None = None,
    denominations: list[Denomination] | None = Query(default=None),
    min_age: int | None = None,
    max_age: int | None = None,
    location: str | None = None,
    is_verified: bool | None = None,
    page: int = 1,
    limit: int | None = None,
    current_user: dict[str, Any] = Depends(get_current_user),
) -> dict[str, Any]:
    filters = {
        "search": (search or "").strip() or None,
        "gender": gender.value if gender else None,
        "denominations": [d.value for d in denominations] if denominations else None,
        "min_age": min_age,
        "max_age": max_age,
        "location": (location or "").strip() or None,
        "is_verified": is_verified,
    }
    return profiles.search_users(str(current_user["id"]), filters, page=page, limit=limit)
