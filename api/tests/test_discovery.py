import pytest

from faithbliss.errors import InvalidOperationError, NotFoundError
from faithbliss.services import discovery
from faithbliss.services.discovery import RelaxationPolicy


def _prefs_a():
    return {
        "preferred_gender": "FEMALE",
        "preferred_denomination": ["BAPTIST", "METHODIST"],
        "min_age": 22,
        "max_age": 35,
        "preferred_faith_journey": [],
        "preferred_church_attendance": [],
        "preferred_relationship_goals": [],
    }


def test_candidates_follow_stored_preferences(store):
    a = store.add_user("Andrew", gender="MALE", age=28, denomination="BAPTIST")
    store.preferences[a] = _prefs_a()
    b = store.add_user("Beth", gender="FEMALE", age=25, denomination="METHODIST")
    c = store.add_user("Cara", gender="FEMALE", age=40, denomination="METHODIST")

    ids = [r["id"] for r in discovery.get_candidates_from_preferences(a)]
    assert b in ids
    assert c not in ids
    assert a not in ids


def test_liked_and_non_onboarded_users_are_excluded(store):
    a = store.add_user("Andrew", gender="MALE", age=28)
    store.preferences[a] = _prefs_a()
    liked = store.add_user("Liked", age=26)
    store.add_user("Draft", age=26, onboarding_completed=False)
    store.add_user("Gone", age=26, is_active=False)
    visible = store.add_user("Visible", age=27)
    store.likes.add((a, liked))

    ids = [r["id"] for r in discovery.get_candidates_from_preferences(a)]
    assert ids == [visible]


def test_passed_users_still_appear(store):
    a = store.add_user("Andrew", gender="MALE", age=28)
    store.preferences[a] = _prefs_a()
    b = store.add_user("Beth", age=25)
    store.passes.append((a, b))

    assert [r["id"] for r in discovery.get_candidates_from_preferences(a)] == [b]


def test_empty_strict_page_relaxes_to_base_predicate(store):
    a = store.add_user("Andrew", gender="MALE", age=28)
    store.preferences[a] = _prefs_a()
    older = store.add_user("Olive", age=60, denomination="CATHOLIC")
    store.likes.add((a, store.add_user("AlreadyLiked", age=60)))

    rows = discovery.get_candidates_from_preferences(a)
    assert [r["id"] for r in rows] == [older]


def test_strict_only_policy_does_not_relax(store):
    a = store.add_user("Andrew", gender="MALE", age=28)
    store.preferences[a] = _prefs_a()
    store.add_user("Olive", age=60, denomination="CATHOLIC")

    assert discovery.get_candidates_from_preferences(a, policy=RelaxationPolicy.STRICT_ONLY) == []


def test_newest_first_and_paging(store):
    a = store.add_user("Andrew", gender="MALE", age=28)
    store.preferences[a] = _prefs_a()
    first = store.add_user("First", age=25)
    second = store.add_user("Second", age=25)
    third = store.add_user("Third", age=25)

    page1 = discovery.get_candidates_from_preferences(a, page=1, page_size=2)
    page2 = discovery.get_candidates_from_preferences(a, page=2, page_size=2)
    assert [r["id"] for r in page1] == [third, second]
    assert [r["id"] for r in page2] == [first]


def test_page_size_is_clamped(store, monkeypatch):
    seen = {}

    def fake_find(requester_id, criteria, page, page_size):
        seen["page"], seen["page_size"] = page, page_size
        return [{"id": "x"}]

    monkeypatch.setattr(discovery.repo, "find_candidates", fake_find)
    discovery.select_candidates("u1", None, page=0, page_size=1000)
    assert seen == {"page": 1, "page_size": 100}


def test_missing_preferences_is_not_found(store):
    a = store.add_user("Andrew", gender="MALE")
    with pytest.raises(NotFoundError):
        discovery.get_candidates_from_preferences(a)


def test_adhoc_filters_validate_and_do_not_persist(store):
    a = store.add_user("Andrew", gender="MALE", age=28)
    store.preferences[a] = _prefs_a()
    m = store.add_user("Mark", gender="MALE", age=30, denomination="CATHOLIC")

    rows = discovery.get_candidates_from_filters(a, {"gender": "MALE", "denominations": ["CATHOLIC"]})
    assert [r["id"] for r in rows] == [m]
    assert store.preferences[a] == _prefs_a()

    with pytest.raises(InvalidOperationError):
        discovery.get_candidates_from_filters(a, {"min_age": 50, "max_age": 30})
