"""Translate matching preferences into a discovery predicate.

A :class:`CandidateFilter` has one independently optional field per preference.
``None`` always means "no constraint". Stored preferences keep empty lists for
"anything", so every builder routes list values through :func:`_constraint`,
which is the single place where an empty list becomes ``None``.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, fields
from enum import Enum
from typing import Any, Iterable

from ..errors import InvalidOperationError

PROFILE_SUMMARY_COLUMNS = """
  u.id,
  u.name,
  u.age,
  u.gender,
  u.denomination,
  u.location,
  u.bio,
  u.faith_journey,
  u.sunday_activity,
  u.favorite_verse,
  COALESCE(u.looking_for, '[]'::jsonb) AS looking_for,
  COALESCE(u.interests, '[]'::jsonb) AS interests,
  COALESCE(u.hobbies, '[]'::jsonb) AS hobbies,
  u.profile_photo_1,
  u.profile_photo_2,
  u.profile_photo_3,
  u.is_verified,
  u.created_at
"""


@dataclass(frozen=True)
class CandidateFilter:
    gender: str | None = None
    denominations: tuple[str, ...] | None = None
    min_age: int | None = None
    max_age: int | None = None
    faith_journeys: tuple[str, ...] | None = None
    church_attendance: tuple[str, ...] | None = None
    relationship_goals: tuple[str, ...] | None = None

    def is_unconstrained(self) -> bool:
        return all(getattr(self, f.name) is None for f in fields(self))


def _enum_value(value: Any) -> str:
    if isinstance(value, Enum):
        value = value.value
    return str(value or "").strip().upper()


def _as_list(value: Any) -> list[Any]:
    # Older preference rows stored JSON-encoded strings instead of arrays.
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError:
            return [value] if value.strip() else []
    if isinstance(value, (list, tuple, set)):
        return list(value)
    return []


def _constraint(values: Any) -> tuple[str, ...] | None:
    """Empty or missing list -> no constraint; otherwise de-duplicated upper-case values."""
    out: list[str] = []
    for item in _as_list(values):
        v = _enum_value(item)
        if v and v not in out:
            out.append(v)
    return tuple(out) or None


def _bound(value: Any) -> int | None:
    if value is None or value == "":
        return None
    return int(value)


def _single(value: Any) -> str | None:
    v = _enum_value(value)
    return v or None


def filter_from_preferences(prefs: dict[str, Any]) -> CandidateFilter:
    return CandidateFilter(
        gender=_single(prefs.get("preferred_gender")),
        denominations=_constraint(prefs.get("preferred_denomination")),
        min_age=_bound(prefs.get("min_age")),
        max_age=_bound(prefs.get("max_age")),
        faith_journeys=_constraint(prefs.get("preferred_faith_journey")),
        church_attendance=_constraint(prefs.get("preferred_church_attendance")),
        relationship_goals=_constraint(prefs.get("preferred_relationship_goals")),
    )


def filter_from_payload(payload: dict[str, Any]) -> CandidateFilter:
    return CandidateFilter(
        gender=_single(payload.get("gender")),
        denominations=_constraint(payload.get("denominations")),
        min_age=_bound(payload.get("min_age")),
        max_age=_bound(payload.get("max_age")),
        faith_journeys=_constraint(payload.get("faith_journeys")),
        church_attendance=_constraint(payload.get("church_attendance")),
        relationship_goals=_constraint(payload.get("relationship_goals")),
    )


def validate_age_bounds(min_age: int | None, max_age: int | None) -> None:
    if min_age is not None and max_age is not None and min_age > max_age:
        raise InvalidOperationError(
            "min_age cannot be greater than max_age",
            details={"min_age": min_age, "max_age": max_age},
        )


def validate_filter(criteria: CandidateFilter) -> CandidateFilter:
    validate_age_bounds(criteria.min_age, criteria.max_age)
    return criteria


def _in_list(column: str, name: str, values: Iterable[str], params: dict[str, Any]) -> str:
    params[name] = list(values)
    return f"{column} = ANY(CAST(:{name} AS text[]))"


def build_candidate_query(
    requester_id: str,
    criteria: CandidateFilter | None,
    page: int,
    page_size: int,
) -> tuple[str, dict[str, Any]]:
    """Return ``(sql, params)`` for one page of candidates.

    ``criteria=None`` yields the base predicate only: active, onboarded, not the
    requester and not already liked by the requester.
    """
    params: dict[str, Any] = {
        "requester_id": requester_id,
        "limit": page_size,
        "offset": (page - 1) * page_size,
    }
    clauses = [
        "u.is_active = TRUE",
        "u.onboarding_completed = TRUE",
        "u.id <> CAST(:requester_id AS uuid)",
        """NOT EXISTS (
              SELECT 1 FROM user_like l
              WHERE l.liker_id = CAST(:requester_id AS uuid) AND l.liked_id = u.id
            )""",
    ]

    if criteria is not None:
        if criteria.gender is not None:
            params["gender"] = criteria.gender
            clauses.append("u.gender = :gender")
        if criteria.denominations is not None:
            clauses.append(_in_list("u.denomination", "denominations", criteria.denominations, params))
        if criteria.min_age is not None:
            params["min_age"] = criteria.min_age
            clauses.append("u.age >= :min_age")
        if criteria.max_age is not None:
            params["max_age"] = criteria.max_age
            clauses.append("u.age <= :max_age")
        if criteria.faith_journeys is not None:
            clauses.append(_in_list("u.faith_journey", "faith_journeys", criteria.faith_journeys, params))
        if criteria.church_attendance is not None:
            clauses.append(_in_list("u.sunday_activity", "church_attendance", criteria.church_attendance, params))
        if criteria.relationship_goals is not None:
            params["relationship_goals"] = list(criteria.relationship_goals)
            clauses.append("jsonb_exists_any(u.looking_for, CAST(:relationship_goals AS text[]))")

    where = "\n  AND ".join(clauses)
    sql = f"""
        SELECT {PROFILE_SUMMARY_COLUMNS}
        FROM user_account u
        WHERE {where}
        ORDER BY u.created_at DESC, u.id DESC
        LIMIT :limit OFFSET :offset
    """
    return sql, params
