import pytest

from faithbliss.errors import InvalidOperationError, NotFoundError, UnauthorizedError
from faithbliss.services import conversations, likes


@pytest.fixture
def matched(store, push):
    a = store.add_user("Ann", gender="MALE")
    b = store.add_user("Bea")
    likes.like_user(a, b, push)
    match = likes.like_user(b, a, push)["match"]
    push.delivered.clear()
    return a, b, match["id"]


def test_send_message_persists_and_pushes_in_order(store, push, matched):
    a, b, match_id = matched

    msg = conversations.send_message(a, match_id, "  Hello there  ", push)

    assert msg["content"] == "Hello there"
    assert msg["receiver_id"] == b
    assert push.broadcasts == [(f"match_{match_id}", push.broadcasts[0][1])]
    assert push.broadcasts[0][1]["type"] == "MESSAGE"
    assert push.types_for(b) == ["UNREAD_COUNT", "NEW_MESSAGE"]
    assert push.delivered[0][1]["unreadCount"] == 1
    assert push.delivered[1][1]["preview"] == "Hello there"


def test_long_message_preview_is_truncated(store, push, matched):
    a, b, match_id = matched
    conversations.send_message(a, match_id, "x" * 80, push)
    preview = push.delivered[-1][1]["preview"]
    assert preview == "x" * 50 + "..."


def test_non_participant_cannot_send_and_no_row_written(store, push, matched):
    _, _, match_id = matched
    outsider = store.add_user("Otto", gender="MALE")

    with pytest.raises(UnauthorizedError):
        conversations.send_message(outsider, match_id, "hi", push)
    assert store.messages == {}
    assert push.delivered == []


def test_send_validation(store, push, matched):
    a, _, match_id = matched
    with pytest.raises(InvalidOperationError):
        conversations.send_message(a, match_id, "   ", push)
    with pytest.raises(InvalidOperationError):
        conversations.send_message(a, match_id, "x" * 2001, push)
    with pytest.raises(NotFoundError):
        conversations.send_message(a, "00000000-0000-0000-0000-000000000000", "hi", push)


def test_mark_read_decrements_unread_and_is_idempotent(store, push, matched):
    a, b, match_id = matched
    first = conversations.send_message(a, match_id, "one", push)
    conversations.send_message(a, match_id, "two", push)
    assert conversations.unread_count(b) == 2

    read = conversations.mark_read(first["id"], b)
    assert read["is_read"] is True
    assert conversations.unread_count(b) == 1

    again = conversations.mark_read(first["id"], b)
    assert again["is_read"] is True
    assert conversations.unread_count(b) == 1


def test_only_receiver_marks_read(store, push, matched):
    a, _, match_id = matched
    msg = conversations.send_message(a, match_id, "hi", push)
    with pytest.raises(UnauthorizedError):
        conversations.mark_read(msg["id"], a)
    with pytest.raises(NotFoundError):
        conversations.mark_read("00000000-0000-0000-0000-000000000000", a)


def test_list_conversations_orders_by_latest_activity(store, push, matched):
    a, b, first_match = matched
    c = store.add_user("Cleo")
    likes.like_user(a, c, push)
    second_match = likes.like_user(c, a, push)["match"]["id"]

    conversations.send_message(b, first_match, "newest", push)

    rows = conversations.list_conversations(a)
    assert [r["id"] for r in rows] == [first_match, second_match]
    assert rows[0]["last_message"]["content"] == "newest"
    assert rows[0]["unread_count"] == 1
    assert rows[1]["last_message"] is None
    assert rows[1]["unread_count"] == 0


def test_match_messages_oldest_first_for_participants(store, push, matched):
    a, b, match_id = matched
    conversations.send_message(a, match_id, "one", push)
    conversations.send_message(b, match_id, "two", push)

    rows = conversations.get_match_messages(match_id, b)
    assert [r["content"] for r in rows] == ["one", "two"]
    with pytest.raises(UnauthorizedError):
        conversations.get_match_messages(match_id, store.add_user("Otto"))
