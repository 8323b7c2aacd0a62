import json
import uuid
from typing import Any

from sqlalchemy import text

LIKE_SENT = "like_sent"
PROFILE_PASSED = "profile_passed"
MATCH_CREATED = "match_created"
MESSAGE_SENT = "message_sent"


def log_match_event(
    db,
    user_id: str,
    event_type: str,
    *,
    target_user_id: str | None = None,
    match_id: str | None = None,
    payload: dict[str, Any] | None = None,
) -> None:
    payload = payload or {}
    db.execute(
        text(
            """
            INSERT INTO match_event (id, user_id, target_user_id, match_id, event_type, payload)
            VALUES (
              :id,
              CAST(:user_id AS uuid),
              CAST(NULLIF(:target_user_id, '') AS uuid),
              CAST(NULLIF(:match_id, '') AS uuid),
              :event_type,
              CAST(:payload AS jsonb)
            )
            """
        ),
        {
            "id": str(uuid.uuid4()),
            "user_id": user_id,
            "target_user_id": target_user_id or "",
            "match_id": match_id or "",
            "event_type": event_type,
            "payload": json.dumps(payload),
        },
    )
