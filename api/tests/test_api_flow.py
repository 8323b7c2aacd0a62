import pytest

pytest.importorskip("fastapi")
from fastapi.testclient import TestClient

from faithbliss.auth.deps import get_current_user
from faithbliss.services.notifications import get_push_channel


@pytest.fixture
def api(app_module, store, push):
    state = {"user_id": None}
    app_module.app.dependency_overrides[get_current_user] = lambda: store.get_user_by_id(state["user_id"])
    app_module.app.dependency_overrides[get_push_channel] = lambda: push

    def as_user(user_id):
        state["user_id"] = user_id
        return client

    client = TestClient(app_module.app)
    return as_user


def test_health_endpoints(api):
    client = api(None)
    assert client.get("/api/health").json() == {"status": "ok"}
    assert client.get("/api").status_code == 200


def test_discover_like_match_and_chat_flow(api, store, push):
    a = store.add_user("Andrew", gender="MALE", age=28, denomination="BAPTIST")
    b = store.add_user("Beth", gender="FEMALE", age=25, denomination="METHODIST")
    store.add_user("Cara", gender="FEMALE", age=40, denomination="METHODIST")
    store.preferences[a] = {
        "preferred_gender": "FEMALE",
        "preferred_denomination": ["BAPTIST", "METHODIST"],
        "min_age": 22,
        "max_age": 35,
    }

    res = api(a).get("/matches/potential")
    assert res.status_code == 200
    assert [u["name"] for u in res.json()["users"]] == ["Beth"]

    res = api(a).post(f"/matches/like/{b}")
    assert res.status_code == 200
    assert res.json() == {"is_match": False, "match": None}

    res = api(b).post(f"/matches/like/{a}")
    assert res.status_code == 200
    body = res.json()
    assert body["is_match"] is True
    match_id = body["match"]["id"]

    res = api(a).post("/messages", json={"match_id": match_id, "content": "Hi Beth"})
    assert res.status_code == 201
    message_id = res.json()["message"]["id"]

    assert api(b).get("/messages/unread-count").json() == {"unread_count": 1}
    convs = api(b).get("/messages/conversations").json()["conversations"]
    assert convs[0]["last_message"]["content"] == "Hi Beth"

    res = api(b).patch(f"/messages/{message_id}/read")
    assert res.status_code == 200
    assert res.json()["message"]["is_read"] is True
    assert api(b).get("/messages/unread-count").json() == {"unread_count": 0}

    history = api(a).get(f"/messages/match/{match_id}").json()["messages"]
    assert [m["content"] for m in history] == ["Hi Beth"]
    matches = api(a).get("/matches").json()["matches"]
    assert [m["other_user"]["name"] for m in matches] == ["Beth"]


def test_domain_errors_map_to_status_codes(api, store):
    a = store.add_user("Andrew", gender="MALE")
    b = store.add_user("Beth")
    outsider = store.add_user("Otto", gender="MALE")

    assert api(a).post(f"/matches/like/{a}").status_code == 400
    assert api(a).post("/matches/like/not-a-uuid").status_code == 404
    assert api(a).post(f"/matches/like/{b}").status_code == 200
    res = api(a).post(f"/matches/like/{b}")
    assert res.status_code == 409
    assert res.json() == {"detail": "User already liked"}

    match_id = api(b).post(f"/matches/like/{a}").json()["match"]["id"]
    res = api(outsider).post("/messages", json={"match_id": match_id, "content": "hey"})
    assert res.status_code == 403
    assert store.messages == {}

    assert api(a).get("/matches/potential").status_code == 404
    res = api(a).post("/matches/potential/filter", json={"min_age": 40, "max_age": 30})
    assert res.status_code == 400


def test_filter_endpoint_rejects_bad_enum(api, store):
    a = store.add_user("Andrew", gender="MALE")
    assert api(a).post("/matches/potential/filter", json={"gender": "ROBOT"}).status_code == 422


def test_pass_does_not_hide_candidate(api, store):
    a = store.add_user("Andrew", gender="MALE", age=28)
    b = store.add_user("Beth", age=25)
    store.preferences[a] = {"preferred_gender": "FEMALE"}

    assert api(a).post(f"/matches/pass/{b}").json() == {"passed": True, "user_id": b}
    assert [u["id"] for u in api(a).get("/matches/potential").json()["users"]] == [b]
