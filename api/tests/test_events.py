from faithbliss.services.events import LIKE_SENT, log_match_event


class FakeDB:
    def __init__(self):
        self.calls = []

    def execute(self, stmt, params):
        self.calls.append((str(stmt), params))


def test_log_match_event_inserts_expected_payload_shape():
    db = FakeDB()
    log_match_event(
        db=db,
        user_id="00000000-0000-0000-0000-000000000123",
        event_type=LIKE_SENT,
        target_user_id="00000000-0000-0000-0000-000000000456",
        payload={"source": "discover"},
    )
    assert len(db.calls) == 1
    sql, params = db.calls[0]
    assert "INSERT INTO match_event" in sql
    assert params["event_type"] == "like_sent"
    assert params["user_id"] == "00000000-0000-0000-0000-000000000123"
    assert params["target_user_id"] == "00000000-0000-0000-0000-000000000456"
    assert params["match_id"] == ""
    assert params["payload"] == '{"source": "discover"}'
