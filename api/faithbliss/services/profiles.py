import logging
from datetime import datetime, timedelta, timezone
from typing import Any

from .. import repo
from ..config import (
    ACTIVE_WINDOW_HOURS,
    CANDIDATE_MAX_PAGE_SIZE,
    DEFAULT_MAX_DISTANCE,
    MAX_USER_AGE,
    MIN_USER_AGE,
    ONBOARDING_MIN_PHOTOS,
    ONLINE_WINDOW_MINUTES,
    PHOTO_SLOTS,
    SEARCH_PAGE_SIZE,
)
from ..errors import ConflictError, InvalidOperationError, NotFoundError
from .candidate_filter import validate_age_bounds

logger = logging.getLogger(__name__)

OPPOSITE_GENDER = {"MALE": "FEMALE", "FEMALE": "MALE"}


def photo_column(slot: int) -> str:
    if slot < 1 or slot > PHOTO_SLOTS:
        raise InvalidOperationError(f"Photo slot must be between 1 and {PHOTO_SLOTS}")
    return f"profile_photo_{slot}"


def _photos(row: dict[str, Any]) -> list[str]:
    return [row[f"profile_photo_{i}"] for i in range(1, PHOTO_SLOTS + 1) if row.get(f"profile_photo_{i}")]


def _list(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []


def public_profile(row: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": str(row["id"]),
        "name": row.get("name"),
        "age": row.get("age"),
        "gender": row.get("gender"),
        "denomination": row.get("denomination"),
        "location": row.get("location"),
        "bio": row.get("bio"),
        "faith_journey": row.get("faith_journey"),
        "sunday_activity": row.get("sunday_activity"),
        "favorite_verse": row.get("favorite_verse"),
        "looking_for": _list(row.get("looking_for")),
        "interests": _list(row.get("interests")),
        "hobbies": _list(row.get("hobbies")),
        "photos": _photos(row),
        "is_verified": bool(row.get("is_verified")),
        "created_at": row.get("created_at"),
    }


def private_profile(row: dict[str, Any]) -> dict[str, Any]:
    out = public_profile(row)
    out.update(
        {
            "email": row.get("email"),
            "latitude": row.get("latitude"),
            "longitude": row.get("longitude"),
            "phone_number": row.get("phone_number"),
            "country_code": row.get("country_code"),
            "birthday": row.get("birthday"),
            "field_of_study": row.get("field_of_study"),
            "profession": row.get("profession"),
            "values": _list(row.get("values")),
            "is_active": bool(row.get("is_active")),
            "onboarding_completed": bool(row.get("onboarding_completed")),
            "last_seen": row.get("last_seen"),
        }
    )
    return out


def serialize_preferences(row: dict[str, Any]) -> dict[str, Any]:
    return {
        "preferred_gender": row.get("preferred_gender"),
        "preferred_denomination": _list(row.get("preferred_denomination")),
        "min_age": row.get("min_age"),
        "max_age": row.get("max_age"),
        "max_distance": row.get("max_distance"),
        "preferred_faith_journey": _list(row.get("preferred_faith_journey")),
        "preferred_church_attendance": _list(row.get("preferred_church_attendance")),
        "preferred_relationship_goals": _list(row.get("preferred_relationship_goals")),
    }


def default_preferences(gender: str, denomination: str, age: int) -> dict[str, Any]:
    return {
        "preferred_gender": OPPOSITE_GENDER.get(gender),
        "preferred_denomination": [denomination],
        "min_age": max(MIN_USER_AGE, age - 5),
        "max_age": min(MAX_USER_AGE, age + 10),
        "max_distance": DEFAULT_MAX_DISTANCE,
        "preferred_faith_journey": [],
        "preferred_church_attendance": [],
        "preferred_relationship_goals": [],
    }


def register_user(fields: dict[str, Any], password_hash: str) -> dict[str, Any]:
    if repo.get_user_by_email(fields["email"]):
        raise ConflictError("Email already registered")
    user = dict(fields, password_hash=password_hash)
    prefs = default_preferences(fields["gender"], fields["denomination"], int(fields["age"]))
    created = repo.create_user_with_preferences(user, prefs)
    if not created:
        raise ConflictError("Email already registered")
    logger.info(f"[auth] registered user_id={created['id']}")
    return created


def _require_user(user_id: str) -> dict[str, Any]:
    user = repo.get_user_by_id(user_id)
    if not user:
        raise NotFoundError("User not found")
    return user


def get_profile(user_id: str) -> dict[str, Any]:
    return private_profile(_require_user(user_id))


def update_profile(user_id: str, fields: dict[str, Any]) -> dict[str, Any]:
    _require_user(user_id)
    updated = repo.update_user_profile(user_id, fields)
    return private_profile(updated or {})


def get_preferences(user_id: str) -> dict[str, Any]:
    prefs = repo.get_preferences(user_id)
    if not prefs:
        raise NotFoundError("User preferences not found")
    return serialize_preferences(prefs)


def _check_preference_bounds(user_id: str | None, fields: dict[str, Any]) -> None:
    min_age = fields.get("min_age")
    max_age = fields.get("max_age")
    if user_id and (min_age is None) != (max_age is None):
        current = repo.get_preferences(user_id) or {}
        min_age = min_age if min_age is not None else current.get("min_age")
        max_age = max_age if max_age is not None else current.get("max_age")
    validate_age_bounds(min_age, max_age)


def update_preferences(user_id: str, fields: dict[str, Any]) -> dict[str, Any]:
    _require_user(user_id)
    _check_preference_bounds(user_id, fields)
    return serialize_preferences(repo.upsert_preferences(user_id, fields) or {})


def complete_onboarding(user_id: str, fields: dict[str, Any]) -> dict[str, Any]:
    user = _require_user(user_id)
    profile_fields = dict(fields)
    preference_fields = dict(profile_fields.pop("preferences", None) or {})
    photos = [p for p in (profile_fields.pop("photos", None) or []) if p]
    for i, ref in enumerate(photos[:PHOTO_SLOTS], start=1):
        profile_fields[photo_column(i)] = ref

    merged = {f"profile_photo_{i}": profile_fields.get(f"profile_photo_{i}") or user.get(f"profile_photo_{i}") for i in range(1, PHOTO_SLOTS + 1)}
    if len(_photos(merged)) < ONBOARDING_MIN_PHOTOS:
        raise InvalidOperationError(f"At least {ONBOARDING_MIN_PHOTOS} photos are required to complete onboarding")

    _check_preference_bounds(user_id, preference_fields)
    updated = repo.complete_onboarding(user_id, profile_fields, preference_fields)
    logger.info(f"[profile] onboarding completed user_id={user_id}")
    return private_profile(updated or {})


def deactivate(user_id: str) -> dict[str, Any]:
    if not repo.set_user_active(user_id, False):
        raise NotFoundError("User not found")
    logger.info(f"[profile] deactivated user_id={user_id}")
    return {"id": user_id, "is_active": False}


def reactivate(user_id: str) -> dict[str, Any]:
    if not repo.set_user_active(user_id, True):
        raise NotFoundError("User not found")
    logger.info(f"[profile] reactivated user_id={user_id}")
    return {"id": user_id, "is_active": True}


def set_photo(user_id: str, slot: int, reference: str) -> dict[str, Any]:
    column = photo_column(slot)
    _require_user(user_id)
    return private_profile(repo.update_user_profile(user_id, {column: reference}) or {})


def remove_photo(user_id: str, slot: int) -> dict[str, Any]:
    column = photo_column(slot)
    _require_user(user_id)
    return private_profile(repo.update_user_profile(user_id, {column: None}) or {})


def search_users(requester_id: str, filters: dict[str, Any], page: int | None = 1, limit: int | None = None) -> dict[str, Any]:
    p = max(1, int(page or 1))
    size = max(1, min(int(limit or SEARCH_PAGE_SIZE), CANDIDATE_MAX_PAGE_SIZE))
    clean = dict(filters)
    for key in ("min_age", "max_age"):
        if clean.get(key) is not None and int(clean[key]) <= 0:
            clean[key] = None
    rows, total = repo.search_users(requester_id, clean, p, size)
    return {
        "users": [public_profile(r) for r in rows],
        "pagination": {
            "page": p,
            "limit": size,
            "total": total,
            "total_pages": (total + size - 1) // size,
        },
    }


def discover_stats(user_id: str) -> dict[str, int]:
    user = _require_user(user_id)
    token = str(user.get("location") or "").split(",")[0].strip()
    now = datetime.now(timezone.utc)
    return repo.discover_counts(
        user_id,
        token,
        active_since=now - timedelta(hours=ACTIVE_WINDOW_HOURS),
        online_since=now - timedelta(minutes=ONLINE_WINDOW_MINUTES),
    )
