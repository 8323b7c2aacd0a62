import os
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

os.environ.setdefault("JWT_SECRET", "test-secret")

from faithbliss import repo
from faithbliss.errors import ConflictError
from faithbliss.services.candidate_filter import CandidateFilter
from faithbliss.services.state_machine import LIKE, PairState, pair_state, transition_pair


class RecordingPush:
    def __init__(self):
        self.delivered: list[tuple[str, dict[str, Any]]] = []
        self.broadcasts: list[tuple[str, dict[str, Any]]] = []

    def deliver(self, user_id, payload):
        self.delivered.append((user_id, payload))

    def broadcast(self, room, payload):
        self.broadcasts.append((room, payload))

    def types_for(self, user_id):
        return [p["type"] for uid, p in self.delivered if uid == user_id]


def _passes(user: dict[str, Any], criteria: CandidateFilter | None) -> bool:
    if criteria is None:
        return True
    if criteria.gender is not None and user["gender"] != criteria.gender:
        return False
    if criteria.denominations is not None and user["denomination"] not in criteria.denominations:
        return False
    if criteria.min_age is not None and user["age"] < criteria.min_age:
        return False
    if criteria.max_age is not None and user["age"] > criteria.max_age:
        return False
    if criteria.faith_journeys is not None and user.get("faith_journey") not in criteria.faith_journeys:
        return False
    if criteria.church_attendance is not None and user.get("sunday_activity") not in criteria.church_attendance:
        return False
    if criteria.relationship_goals is not None and not set(user.get("looking_for") or []) & set(criteria.relationship_goals):
        return False
    return True


class FakeStore:
    """In-memory stand-in for the repo module, patched in function by function."""

    def __init__(self):
        self.users: dict[str, dict[str, Any]] = {}
        self.preferences: dict[str, dict[str, Any]] = {}
        self.likes: set[tuple[str, str]] = set()
        self.passes: list[tuple[str, str]] = []
        self.matches: dict[str, dict[str, Any]] = {}
        self.messages: dict[str, dict[str, Any]] = {}
        self.refresh_tokens: dict[str, dict[str, Any]] = {}
        self._clock = datetime(2026, 1, 1, tzinfo=timezone.utc)

    def _tick(self) -> datetime:
        self._clock += timedelta(seconds=1)
        return self._clock

    def add_user(self, name: str, gender: str = "FEMALE", age: int = 25, denomination: str = "BAPTIST", **extra) -> str:
        uid = str(uuid.uuid4())
        self.users[uid] = {
            "id": uid,
            "email": f"{name.lower()}@example.com",
            "password_hash": "x",
            "name": name,
            "gender": gender,
            "age": age,
            "denomination": denomination,
            "location": "Lagos, Nigeria",
            "bio": "",
            "looking_for": [],
            "interests": [],
            "hobbies": [],
            "values": [],
            "profile_photo_1": None,
            "profile_photo_2": None,
            "profile_photo_3": None,
            "is_active": True,
            "is_verified": False,
            "onboarding_completed": True,
            "last_seen": None,
            "created_at": self._tick(),
        }
        self.users[uid].update(extra)
        return uid

    # users and preferences

    def get_user_by_id(self, user_id):
        user = self.users.get(str(user_id))
        return dict(user) if user else None

    def get_user_by_email(self, email):
        for user in self.users.values():
            if user["email"] == email:
                return dict(user)
        return None

    def create_user_with_preferences(self, user, preferences):
        if self.get_user_by_email(user["email"]):
            return None
        uid = self.add_user(
            user["name"],
            gender=user["gender"],
            age=user["age"],
            denomination=user["denomination"],
            email=user["email"],
            password_hash=user["password_hash"],
            location=user.get("location") or "",
            bio=user.get("bio") or "",
            onboarding_completed=False,
        )
        self.preferences[uid] = dict(preferences, user_id=uid)
        return self.get_user_by_id(uid)

    def update_last_seen(self, user_id):
        self.users[user_id]["last_seen"] = datetime.now(timezone.utc)

    def get_preferences(self, user_id):
        prefs = self.preferences.get(user_id)
        return dict(prefs) if prefs else None

    def update_user_profile(self, user_id, fields):
        self.users[user_id].update(fields)
        return self.get_user_by_id(user_id)

    def upsert_preferences(self, user_id, fields):
        self.preferences.setdefault(user_id, {"user_id": user_id}).update(fields)
        return self.get_preferences(user_id)

    def complete_onboarding(self, user_id, profile_fields, preference_fields):
        self.users[user_id].update(profile_fields)
        self.users[user_id]["onboarding_completed"] = True
        self.upsert_preferences(user_id, preference_fields)
        return self.get_user_by_id(user_id)

    def set_user_active(self, user_id, active):
        if user_id not in self.users:
            return None
        self.users[user_id]["is_active"] = active
        if not active:
            self.refresh_tokens = {k: v for k, v in self.refresh_tokens.items() if v["user_id"] != user_id}
        return {"id": user_id, "is_active": active}

    # discovery

    def find_candidates(self, requester_id, criteria, page, page_size):
        rows = [
            u
            for u in self.users.values()
            if u["is_active"]
            and u["onboarding_completed"]
            and u["id"] != requester_id
            and (requester_id, u["id"]) not in self.likes
            and _passes(u, criteria)
        ]
        rows.sort(key=lambda u: (u["created_at"], u["id"]), reverse=True)
        start = (page - 1) * page_size
        return [dict(u) for u in rows[start : start + page_size]]

    # likes and matches

    def record_like(self, liker_id, liked_id):
        if (liker_id, liked_id) in self.likes:
            raise ConflictError("User already liked")
        state = transition_pair(pair_state(False, (liked_id, liker_id) in self.likes), LIKE)
        self.likes.add((liker_id, liked_id))
        match = None
        if state == PairState.MATCHED:
            pair = {liker_id, liked_id}
            if any({m["user1_id"], m["user2_id"]} == pair for m in self.matches.values()):
                raise ConflictError("Match already exists for this pair")
            now = self._tick()
            match = {
                "id": str(uuid.uuid4()),
                "user1_id": liker_id,
                "user2_id": liked_id,
                "status": "MATCHED",
                "created_at": now,
                "updated_at": now,
            }
            self.matches[match["id"]] = match
        return {
            "like": {"liker_id": liker_id, "liked_id": liked_id},
            "match": dict(match) if match else None,
            "state": state,
        }

    def record_pass(self, user_id, passed_id):
        self.passes.append((user_id, passed_id))

    def get_match(self, match_id):
        match = self.matches.get(match_id)
        return dict(match) if match else None

    def list_match_rows(self, user_id):
        rows = []
        for m in self.matches.values():
            if user_id not in {m["user1_id"], m["user2_id"]}:
                continue
            other_id = m["user2_id"] if m["user1_id"] == user_id else m["user1_id"]
            other = self.users[other_id]
            msgs = sorted(
                (x for x in self.messages.values() if x["match_id"] == m["id"]),
                key=lambda x: (x["created_at"], x["id"]),
            )
            last = msgs[-1] if msgs else None
            rows.append(
                {
                    "id": m["id"],
                    "status": m["status"],
                    "created_at": m["created_at"],
                    "updated_at": m["updated_at"],
                    "other_user_id": other_id,
                    "other_name": other["name"],
                    "other_age": other["age"],
                    "other_photo": other.get("profile_photo_1"),
                    "last_message_id": last["id"] if last else None,
                    "last_message_sender_id": last["sender_id"] if last else None,
                    "last_message_content": last["content"] if last else None,
                    "last_message_is_read": last["is_read"] if last else None,
                    "last_message_at": last["created_at"] if last else None,
                    "unread_count": sum(1 for x in msgs if x["receiver_id"] == user_id and not x["is_read"]),
                }
            )
        rows.sort(key=lambda r: (r["updated_at"], r["id"]), reverse=True)
        return rows

    # messages

    def create_message(self, match_id, sender_id, receiver_id, content):
        now = self._tick()
        msg = {
            "id": str(uuid.uuid4()),
            "match_id": match_id,
            "sender_id": sender_id,
            "receiver_id": receiver_id,
            "content": content,
            "is_read": False,
            "created_at": now,
        }
        self.messages[msg["id"]] = msg
        self.matches[match_id]["updated_at"] = now
        return dict(msg)

    def get_message(self, message_id):
        msg = self.messages.get(message_id)
        return dict(msg) if msg else None

    def mark_message_read(self, message_id):
        self.messages[message_id]["is_read"] = True
        return dict(self.messages[message_id])

    def count_unread(self, user_id):
        return sum(1 for m in self.messages.values() if m["receiver_id"] == user_id and not m["is_read"])

    def list_match_messages(self, match_id, page, limit):
        msgs = sorted(
            (m for m in self.messages.values() if m["match_id"] == match_id),
            key=lambda m: (m["created_at"], m["id"]),
        )
        start = (page - 1) * limit
        return [dict(m) for m in msgs[start : start + limit]]

    # refresh tokens

    def create_refresh_token_row(self, user_id, token_hash, expires_at):
        self.refresh_tokens[token_hash] = {"user_id": user_id, "token_hash": token_hash, "expires_at": expires_at, "revoked_at": None}

    def get_refresh_token_row(self, token_hash):
        row = self.refresh_tokens.get(token_hash)
        return dict(row) if row else None

    def rotate_refresh_token(self, old_token_hash, user_id, new_token_hash, expires_at):
        self.refresh_tokens[old_token_hash]["revoked_at"] = datetime.now(timezone.utc)
        self.create_refresh_token_row(user_id, new_token_hash, expires_at)

    def revoke_user_refresh_tokens(self, user_id):
        for row in self.refresh_tokens.values():
            if row["user_id"] == user_id and row["revoked_at"] is None:
                row["revoked_at"] = datetime.now(timezone.utc)


PATCHED_REPO_FUNCTIONS = [
    "get_user_by_id",
    "get_user_by_email",
    "create_user_with_preferences",
    "update_last_seen",
    "get_preferences",
    "update_user_profile",
    "upsert_preferences",
    "complete_onboarding",
    "set_user_active",
    "find_candidates",
    "record_like",
    "record_pass",
    "get_match",
    "list_match_rows",
    "create_message",
    "get_message",
    "mark_message_read",
    "count_unread",
    "list_match_messages",
    "create_refresh_token_row",
    "get_refresh_token_row",
    "rotate_refresh_token",
    "revoke_user_refresh_tokens",
]


@pytest.fixture
def store(monkeypatch):
    s = FakeStore()
    for name in PATCHED_REPO_FUNCTIONS:
        monkeypatch.setattr(repo, name, getattr(s, name))
    return s


@pytest.fixture
def push():
    return RecordingPush()


class _DummyResult:
    def mappings(self):
        return self

    def first(self):
        return None

    def all(self):
        return []


class _DummySession:
    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False

    def execute(self, *args, **kwargs):
        return _DummyResult()

    def commit(self):
        return None


@pytest.fixture
def app_module(monkeypatch):
    pytest.importorskip("fastapi")
    import faithbliss.main as m
    from faithbliss.services import rate_limit

    monkeypatch.setattr(m, "wait_for_db", lambda *args, **kwargs: None)
    monkeypatch.setattr(m, "run_migrations", lambda *args, **kwargs: None)
    monkeypatch.setattr(m, "SessionLocal", lambda: _DummySession())
    rate_limit.limiter.reset()
    yield m
    m.app.dependency_overrides.clear()
