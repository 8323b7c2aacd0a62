import json
import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError

from .database import SessionLocal
from .errors import ConflictError
from .services.candidate_filter import PROFILE_SUMMARY_COLUMNS, CandidateFilter, build_candidate_query
from .services.events import LIKE_SENT, MATCH_CREATED, MESSAGE_SENT, PROFILE_PASSED, log_match_event
from .services.state_machine import LIKE, PairState, pair_state, transition_pair

USER_SCALAR_FIELDS = (
    "name",
    "age",
    "bio",
    "location",
    "latitude",
    "longitude",
    "denomination",
    "faith_journey",
    "sunday_activity",
    "favorite_verse",
    "field_of_study",
    "profession",
    "phone_number",
    "country_code",
    "birthday",
    "profile_photo_1",
    "profile_photo_2",
    "profile_photo_3",
)
USER_LIST_FIELDS = ("hobbies", "values", "interests", "looking_for")

PREFERENCE_SCALAR_FIELDS = ("preferred_gender", "min_age", "max_age", "max_distance")
PREFERENCE_LIST_FIELDS = (
    "preferred_denomination",
    "preferred_faith_journey",
    "preferred_church_attendance",
    "preferred_relationship_goals",
)

PREFERENCE_COLUMNS = """
  p.preferred_gender,
  COALESCE(p.preferred_denomination, '[]'::jsonb) AS preferred_denomination,
  p.min_age,
  p.max_age,
  p.max_distance,
  COALESCE(p.preferred_faith_journey, '[]'::jsonb) AS preferred_faith_journey,
  COALESCE(p.preferred_church_attendance, '[]'::jsonb) AS preferred_church_attendance,
  COALESCE(p.preferred_relationship_goals, '[]'::jsonb) AS preferred_relationship_goals
"""


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def _column(name: str) -> str:
    # "values" is a reserved word in PostgreSQL.
    return f'"{name}"' if name == "values" else name


def _assignments(
    fields: dict[str, Any],
    scalar_fields: tuple[str, ...],
    list_fields: tuple[str, ...],
    params: dict[str, Any],
) -> list[str]:
    out: list[str] = []
    for key in scalar_fields:
        if key in fields:
            params[key] = fields[key]
            out.append(f"{_column(key)} = :{key}")
    for key in list_fields:
        if key in fields:
            params[key] = json.dumps(list(fields[key] or []))
            out.append(f"{_column(key)} = CAST(:{key} AS jsonb)")
    return out


# Users and preferences


def create_user_with_preferences(user: dict[str, Any], preferences: dict[str, Any]) -> dict[str, Any] | None:
    user_id = str(uuid.uuid4())
    try:
        with SessionLocal() as db:
            db.execute(
                text(
                    """
                    INSERT INTO user_account (id, email, password_hash, name, gender, age, denomination, location, bio)
                    VALUES (:id, :email, :password_hash, :name, :gender, :age, :denomination, :location, :bio)
                    """
                ),
                {
                    "id": user_id,
                    "email": user["email"],
                    "password_hash": user["password_hash"],
                    "name": user["name"],
                    "gender": user["gender"],
                    "age": user["age"],
                    "denomination": user["denomination"],
                    "location": user.get("location") or "",
                    "bio": user.get("bio") or "",
                },
            )
            _upsert_preferences(db, user_id, preferences)
            db.commit()
    except IntegrityError:
        return None
    return get_user_by_id(user_id)


def get_user_by_id(user_id: str) -> dict[str, Any] | None:
    with SessionLocal() as db:
        row = db.execute(text("SELECT * FROM user_account WHERE id=CAST(:id AS uuid)"), {"id": user_id}).mappings().first()
    return dict(row) if row else None


def get_user_by_email(email: str) -> dict[str, Any] | None:
    with SessionLocal() as db:
        row = db.execute(text("SELECT * FROM user_account WHERE email=:email"), {"email": email}).mappings().first()
    return dict(row) if row else None


def update_last_seen(user_id: str) -> None:
    with SessionLocal() as db:
        db.execute(
            text("UPDATE user_account SET last_seen=:now WHERE id=CAST(:id AS uuid)"),
            {"id": user_id, "now": _now_utc()},
        )
        db.commit()


def get_preferences(user_id: str) -> dict[str, Any] | None:
    with SessionLocal() as db:
        row = db.execute(
            text(f"SELECT p.user_id, {PREFERENCE_COLUMNS} FROM user_preferences p WHERE p.user_id=CAST(:id AS uuid)"),
            {"id": user_id},
        ).mappings().first()
    return dict(row) if row else None


def _update_user(db, user_id: str, fields: dict[str, Any], extra: list[str] | None = None) -> None:
    params: dict[str, Any] = {"id": user_id, "now": _now_utc()}
    sets = _assignments(fields, USER_SCALAR_FIELDS, USER_LIST_FIELDS, params) + list(extra or [])
    sets.append("updated_at = :now")
    db.execute(text(f"UPDATE user_account SET {', '.join(sets)} WHERE id=CAST(:id AS uuid)"), params)


def _upsert_preferences(db, user_id: str, fields: dict[str, Any]) -> None:
    params: dict[str, Any] = {"user_id": user_id, "now": _now_utc()}
    sets = _assignments(fields, PREFERENCE_SCALAR_FIELDS, PREFERENCE_LIST_FIELDS, params)
    columns = [key for key in PREFERENCE_SCALAR_FIELDS + PREFERENCE_LIST_FIELDS if key in fields]
    values = [f"CAST(:{key} AS jsonb)" if key in PREFERENCE_LIST_FIELDS else f":{key}" for key in columns]
    sets.append("updated_at = :now")
    db.execute(
        text(
            f"""
            INSERT INTO user_preferences (user_id, {''.join(c + ', ' for c in columns)}updated_at)
            VALUES (CAST(:user_id AS uuid), {''.join(v + ', ' for v in values)}:now)
            ON CONFLICT (user_id) DO UPDATE SET {', '.join(sets)}
            """
        ),
        params,
    )


def update_user_profile(user_id: str, fields: dict[str, Any]) -> dict[str, Any] | None:
    with SessionLocal() as db:
        _update_user(db, user_id, fields)
        db.commit()
    return get_user_by_id(user_id)


def upsert_preferences(user_id: str, fields: dict[str, Any]) -> dict[str, Any] | None:
    with SessionLocal() as db:
        _upsert_preferences(db, user_id, fields)
        db.commit()
    return get_preferences(user_id)


def complete_onboarding(user_id: str, profile_fields: dict[str, Any], preference_fields: dict[str, Any]) -> dict[str, Any] | None:
    with SessionLocal() as db:
        _update_user(db, user_id, profile_fields, extra=["onboarding_completed = TRUE"])
        _upsert_preferences(db, user_id, preference_fields)
        db.commit()
    return get_user_by_id(user_id)


def set_user_active(user_id: str, active: bool) -> dict[str, Any] | None:
    with SessionLocal() as db:
        row = db.execute(
            text(
                """
                UPDATE user_account
                SET is_active=:active, updated_at=:now
                WHERE id=CAST(:id AS uuid)
                RETURNING id, is_active
                """
            ),
            {"id": user_id, "active": active, "now": _now_utc()},
        ).mappings().first()
        if row and not active:
            db.execute(text("DELETE FROM refresh_token WHERE user_id=CAST(:id AS uuid)"), {"id": user_id})
        db.commit()
    return dict(row) if row else None


# Discovery


def find_candidates(requester_id: str, criteria: CandidateFilter | None, page: int, page_size: int) -> list[dict[str, Any]]:
    sql, params = build_candidate_query(requester_id, criteria, page, page_size)
    with SessionLocal() as db:
        rows = db.execute(text(sql), params).mappings().all()
    return [dict(r) for r in rows]


def search_users(requester_id: str, filters: dict[str, Any], page: int, limit: int) -> tuple[list[dict[str, Any]], int]:
    params: dict[str, Any] = {"requester_id": requester_id, "limit": limit, "offset": (page - 1) * limit}
    clauses = ["u.id <> CAST(:requester_id AS uuid)", "u.is_active = TRUE"]
    if filters.get("search"):
        params["search"] = f"%{filters['search']}%"
        clauses.append("(u.name ILIKE :search OR u.bio ILIKE :search OR u.location ILIKE :search)")
    if filters.get("gender"):
        params["gender"] = filters["gender"]
        clauses.append("u.gender = :gender")
    if filters.get("denominations"):
        params["denominations"] = list(filters["denominations"])
        clauses.append("u.denomination = ANY(CAST(:denominations AS text[]))")
    if filters.get("min_age"):
        params["min_age"] = filters["min_age"]
        clauses.append("u.age >= :min_age")
    if filters.get("max_age"):
        params["max_age"] = filters["max_age"]
        clauses.append("u.age <= :max_age")
    if filters.get("location"):
        params["location"] = f"%{filters['location']}%"
        clauses.append("u.location ILIKE :location")
    if filters.get("is_verified") is not None:
        params["is_verified"] = bool(filters["is_verified"])
        clauses.append("u.is_verified = :is_verified")
    where = " AND ".join(clauses)
    with SessionLocal() as db:
        rows = db.execute(
            text(
                f"""
                SELECT {PROFILE_SUMMARY_COLUMNS}
                FROM user_account u
                WHERE {where}
                ORDER BY u.is_verified DESC, u.created_at DESC, u.id DESC
                LIMIT :limit OFFSET :offset
                """
            ),
            params,
        ).mappings().all()
        total = db.execute(text(f"SELECT COUNT(*) FROM user_account u WHERE {where}"), params).scalar_one()
    return [dict(r) for r in rows], int(total)


def discover_counts(user_id: str, location_token: str, active_since: datetime, online_since: datetime) -> dict[str, int]:
    with SessionLocal() as db:
        row = db.execute(
            text(
                """
                SELECT
                  COUNT(*) FILTER (WHERE :location_pattern <> '' AND u.location ILIKE :location_pattern) AS nearby,
                  COUNT(*) FILTER (WHERE u.last_seen >= :active_since) AS active_today,
                  COUNT(*) FILTER (WHERE u.last_seen >= :online_since) AS online_now
                FROM user_account u
                WHERE u.is_active = TRUE
                  AND u.id <> CAST(:user_id AS uuid)
                """
            ),
            {
                "user_id": user_id,
                "location_pattern": f"%{location_token}%" if location_token else "",
                "active_since": active_since,
                "online_since": online_since,
            },
        ).mappings().first()
    row = row or {}
    return {
        "nearby": int(row.get("nearby") or 0),
        "active_today": int(row.get("active_today") or 0),
        "online_now": int(row.get("online_now") or 0),
    }


# Likes and matches


def record_like(liker_id: str, liked_id: str) -> dict[str, Any]:
    """Insert a like and, when the pair reaches ``MATCHED``, the match, in one transaction.

    The advisory lock serializes concurrent likes on the same unordered pair; the
    unique pair index on ``user_match`` still rejects a second match row.
    """
    pair_key = ":".join(sorted((liker_id, liked_id)))
    with SessionLocal() as db:
        db.execute(text("SELECT pg_advisory_xact_lock(hashtext(:pair_key))"), {"pair_key": pair_key})
        like = db.execute(
            text(
                """
                INSERT INTO user_like (id, liker_id, liked_id)
                VALUES (:id, CAST(:liker AS uuid), CAST(:liked AS uuid))
                ON CONFLICT (liker_id, liked_id) DO NOTHING
                RETURNING id, liker_id, liked_id, created_at
                """
            ),
            {"id": str(uuid.uuid4()), "liker": liker_id, "liked": liked_id},
        ).mappings().first()
        if not like:
            db.rollback()
            raise ConflictError("User already liked")
        log_match_event(db, liker_id, LIKE_SENT, target_user_id=liked_id)

        reciprocal = db.execute(
            text("SELECT id FROM user_like WHERE liker_id=CAST(:liked AS uuid) AND liked_id=CAST(:liker AS uuid)"),
            {"liker": liker_id, "liked": liked_id},
        ).first()
        state = transition_pair(pair_state(False, reciprocal is not None), LIKE)
        match = None
        if state == PairState.MATCHED:
            try:
                match = db.execute(
                    text(
                        """
                        INSERT INTO user_match (id, user1_id, user2_id, status)
                        VALUES (:id, CAST(:user1 AS uuid), CAST(:user2 AS uuid), 'MATCHED')
                        RETURNING id, user1_id, user2_id, status, created_at, updated_at
                        """
                    ),
                    {"id": str(uuid.uuid4()), "user1": liker_id, "user2": liked_id},
                ).mappings().first()
            except IntegrityError as exc:
                db.rollback()
                raise ConflictError("Match already exists for this pair") from exc
            for uid, other in ((liker_id, liked_id), (liked_id, liker_id)):
                log_match_event(db, uid, MATCH_CREATED, target_user_id=other, match_id=str(match["id"]))
        db.commit()
    return {"like": dict(like), "match": dict(match) if match else None, "state": state}


def record_pass(user_id: str, passed_id: str) -> None:
    with SessionLocal() as db:
        log_match_event(db, user_id, PROFILE_PASSED, target_user_id=passed_id)
        db.commit()


def get_match(match_id: str) -> dict[str, Any] | None:
    with SessionLocal() as db:
        row = db.execute(text("SELECT * FROM user_match WHERE id=CAST(:id AS uuid)"), {"id": match_id}).mappings().first()
    return dict(row) if row else None


def list_match_rows(user_id: str) -> list[dict[str, Any]]:
    with SessionLocal() as db:
        rows = db.execute(
            text(
                """
                SELECT
                  m.id,
                  m.status,
                  m.created_at,
                  m.updated_at,
                  o.id AS other_user_id,
                  o.name AS other_name,
                  o.age AS other_age,
                  o.profile_photo_1 AS other_photo,
                  lm.id AS last_message_id,
                  lm.sender_id AS last_message_sender_id,
                  lm.content AS last_message_content,
                  lm.is_read AS last_message_is_read,
                  lm.created_at AS last_message_at,
                  (
                    SELECT COUNT(*)
                    FROM message um
                    WHERE um.match_id = m.id
                      AND um.receiver_id = CAST(:user_id AS uuid)
                      AND um.is_read = FALSE
                  ) AS unread_count
                FROM user_match m
                JOIN user_account o
                  ON o.id = (
                    CASE WHEN m.user1_id = CAST(:user_id AS uuid) THEN m.user2_id ELSE m.user1_id END
                  )
                LEFT JOIN LATERAL (
                  SELECT x.id, x.sender_id, x.content, x.is_read, x.created_at
                  FROM message x
                  WHERE x.match_id = m.id
                  ORDER BY x.created_at DESC, x.id DESC
                  LIMIT 1
                ) lm ON TRUE
                WHERE m.status = 'MATCHED'
                  AND (m.user1_id = CAST(:user_id AS uuid) OR m.user2_id = CAST(:user_id AS uuid))
                ORDER BY m.updated_at DESC, m.id DESC
                """
            ),
            {"user_id": user_id},
        ).mappings().all()
    return [dict(r) for r in rows]


# Messages


def create_message(match_id: str, sender_id: str, receiver_id: str, content: str) -> dict[str, Any]:
    now = _now_utc()
    with SessionLocal() as db:
        row = db.execute(
            text(
                """
                INSERT INTO message (id, match_id, sender_id, receiver_id, content, is_read, created_at)
                VALUES (:id, CAST(:match_id AS uuid), CAST(:sender_id AS uuid), CAST(:receiver_id AS uuid), :content, FALSE, :now)
                RETURNING id, match_id, sender_id, receiver_id, content, is_read, created_at
                """
            ),
            {
                "id": str(uuid.uuid4()),
                "match_id": match_id,
                "sender_id": sender_id,
                "receiver_id": receiver_id,
                "content": content,
                "now": now,
            },
        ).mappings().first()
        db.execute(
            text("UPDATE user_match SET updated_at=:now WHERE id=CAST(:match_id AS uuid)"),
            {"match_id": match_id, "now": now},
        )
        log_match_event(db, sender_id, MESSAGE_SENT, target_user_id=receiver_id, match_id=match_id)
        db.commit()
    return dict(row)


def get_message(message_id: str) -> dict[str, Any] | None:
    with SessionLocal() as db:
        row = db.execute(text("SELECT * FROM message WHERE id=CAST(:id AS uuid)"), {"id": message_id}).mappings().first()
    return dict(row) if row else None


def mark_message_read(message_id: str) -> dict[str, Any] | None:
    with SessionLocal() as db:
        row = db.execute(
            text(
                """
                UPDATE message
                SET is_read = TRUE
                WHERE id=CAST(:id AS uuid)
                RETURNING id, match_id, sender_id, receiver_id, content, is_read, created_at
                """
            ),
            {"id": message_id},
        ).mappings().first()
        db.commit()
    return dict(row) if row else None


def count_unread(user_id: str) -> int:
    with SessionLocal() as db:
        value = db.execute(
            text("SELECT COUNT(*) FROM message WHERE receiver_id=CAST(:id AS uuid) AND is_read = FALSE"),
            {"id": user_id},
        ).scalar_one()
    return int(value or 0)


def list_match_messages(match_id: str, page: int, limit: int) -> list[dict[str, Any]]:
    with SessionLocal() as db:
        rows = db.execute(
            text(
                """
                SELECT id, match_id, sender_id, receiver_id, content, is_read, created_at
                FROM message
                WHERE match_id=CAST(:match_id AS uuid)
                ORDER BY created_at ASC, id ASC
                LIMIT :limit OFFSET :offset
                """
            ),
            {"match_id": match_id, "limit": limit, "offset": (page - 1) * limit},
        ).mappings().all()
    return [dict(r) for r in rows]


# Refresh tokens


def create_refresh_token_row(user_id: str, token_hash: str, expires_at: datetime) -> None:
    with SessionLocal() as db:
        db.execute(
            text(
                """
                INSERT INTO refresh_token (id, user_id, token_hash, expires_at)
                VALUES (:id, CAST(:user_id AS uuid), :token_hash, :expires_at)
                """
            ),
            {"id": str(uuid.uuid4()), "user_id": user_id, "token_hash": token_hash, "expires_at": expires_at},
        )
        db.commit()


def get_refresh_token_row(token_hash: str) -> dict[str, Any] | None:
    with SessionLocal() as db:
        row = db.execute(text("SELECT * FROM refresh_token WHERE token_hash=:token_hash"), {"token_hash": token_hash}).mappings().first()
    return dict(row) if row else None


def rotate_refresh_token(old_token_hash: str, user_id: str, new_token_hash: str, expires_at: datetime) -> None:
    with SessionLocal() as db:
        db.execute(
            text("UPDATE refresh_token SET revoked_at=:now WHERE token_hash=:token_hash AND revoked_at IS NULL"),
            {"token_hash": old_token_hash, "now": _now_utc()},
        )
        db.execute(
            text(
                """
                INSERT INTO refresh_token (id, user_id, token_hash, expires_at)
                VALUES (:id, CAST(:user_id AS uuid), :token_hash, :expires_at)
                """
            ),
            {"id": str(uuid.uuid4()), "user_id": user_id, "token_hash": new_token_hash, "expires_at": expires_at},
        )
        db.commit()


def revoke_user_refresh_tokens(user_id: str) -> None:
    with SessionLocal() as db:
        db.execute(
            text("UPDATE refresh_token SET revoked_at=:now WHERE user_id=CAST(:user_id AS uuid) AND revoked_at IS NULL"),
            {"user_id": user_id, "now": _now_utc()},
        )
        db.commit()
