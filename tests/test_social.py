from datetime import datetime

import pytest

import storage
import social
from errors import ValidationError, NotFoundError, PermissionDeniedError


@pytest.fixture
def entry(db, make_challenge):
    task = make_challenge(duration=30).tasks[0]
    return storage.log_task_progress(db, task.id, datetime(2024, 1, 2), "completed", notes="5k done")


def connect(db, a, b):
    connection = social.request_connection(db, a.id, b.id)
    return social.update_connection(db, b.id, connection.id, "accepted")


# ─────────────────────────────────────────────────────────────────────────────
# SEARCH
# ─────────────────────────────────────────────────────────────────────────────

def test_search_matches_username_and_name(db, user, other_user):
    storage.create_user(db, "robert", "robert@example.com", "Rob Smith", "x")

    found = social.search_users(db, user.id, "bo")
    assert sorted(u.username for u in found) == ["bob"]

    found = social.search_users(db, user.id, "SMITH")
    assert [u.username for u in found] == ["robert"]


def test_search_never_returns_the_caller(db, user):
    assert social.search_users(db, user.id, "alice") == []


@pytest.mark.parametrize("query", ["", "   ", "x" * 51])
def test_search_query_length(db, user, query):
    with pytest.raises(ValidationError):
        social.search_users(db, user.id, query)


# ─────────────────────────────────────────────────────────────────────────────
# CONNECTIONS
# ─────────────────────────────────────────────────────────────────────────────

def test_request_and_accept(db, user, other_user):
    connection = social.request_connection(db, user.id, other_user.id)
    assert connection.status == "pending"
    assert social.connected_users(db, user.id) == []

    accepted = social.update_connection(db, other_user.id, connection.id, "accepted")

    assert accepted.status == "accepted"
    assert [u.id for u in social.connected_users(db, user.id)] == [other_user.id]
    assert [u.id for u in social.connected_users(db, other_user.id)] == [user.id]
    assert social.are_connected(db, other_user.id, user.id)


def test_only_the_recipient_can_answer(db, user, other_user):
    connection = social.request_connection(db, user.id, other_user.id)
    with pytest.raises(PermissionDeniedError):
        social.update_connection(db, user.id, connection.id, "accepted")


def test_answer_must_be_accept_or_reject(db, user, other_user):
    connection = social.request_connection(db, user.id, other_user.id)
    for status in ("pending", "maybe"):
        with pytest.raises(ValidationError):
            social.update_connection(db, other_user.id, connection.id, status)


def test_rejected_connection_is_not_connected(db, user, other_user):
    connection = social.request_connection(db, user.id, other_user.id)
    social.update_connection(db, other_user.id, connection.id, "rejected")
    assert not social.are_connected(db, user.id, other_user.id)
    assert len(social.list_connections(db, user.id)) == 1


def test_duplicate_request_returns_existing_row(db, user, other_user):
    first = social.request_connection(db, user.id, other_user.id)
    reverse = social.request_connection(db, other_user.id, user.id)
    assert reverse.id == first.id
    assert len(social.list_connections(db, user.id)) == 1


def test_cannot_connect_with_yourself(db, user):
    with pytest.raises(ValidationError):
        social.request_connection(db, user.id, user.id)


def test_connect_with_unknown_user(db, user):
    with pytest.raises(NotFoundError):
        social.request_connection(db, user.id, 999)
    with pytest.raises(NotFoundError):
        social.update_connection(db, user.id, 999, "accepted")


# ─────────────────────────────────────────────────────────────────────────────
# SHARED NOTES
# ─────────────────────────────────────────────────────────────────────────────

def test_share_requires_an_accepted_connection(db, user, other_user, entry):
    with pytest.raises(PermissionDeniedError):
        social.share_note(db, user.id, entry.id, other_user.id)

    connect(db, user, other_user)
    note = social.share_note(db, user.id, entry.id, other_user.id)

    assert note.shared_by_user_id == user.id
    [shared] = social.shared_notes_for(db, other_user.id)
    assert shared["note"].id == note.id
    assert shared["entry"].notes == "5k done"
    assert shared["task"].name == "Run"
    assert shared["challenge"].name == "Morning Routine"
    assert shared["shared_by"].id == user.id
    assert social.shared_notes_for(db, user.id) == []


def test_cannot_share_someone_elses_note(db, user, other_user, entry):
    connect(db, user, other_user)
    with pytest.raises(PermissionDeniedError):
        social.share_note(db, other_user.id, entry.id, user.id)


def test_share_unknown_note_or_user(db, user, entry):
    with pytest.raises(NotFoundError):
        social.share_note(db, user.id, 999, user.id)
    with pytest.raises(NotFoundError):
        social.share_note(db, user.id, entry.id, 999)


# ─────────────────────────────────────────────────────────────────────────────
# HTTP
# ─────────────────────────────────────────────────────────────────────────────

def bearer(token_response):
    return {"Authorization": f"Bearer {token_response['access_token']}"}


def test_connection_flow_over_http(client, register_user):
    dan = register_user("dan")
    eve = register_user("eve")

    r = client.post("/user/search", json={"query": "ev"}, headers=bearer(dan))
    assert [u["username"] for u in r.json()] == ["eve"]
    assert "email" not in r.json()[0]

    r = client.post("/user/connections", json={"connected_user_id": dan["user_id"]}, headers=bearer(dan))
    assert r.status_code == 400

    r = client.post("/user/connections", json={"connected_user_id": eve["user_id"]}, headers=bearer(dan))
    assert r.status_code == 201
    connection = r.json()
    assert connection["status"] == "pending"
    assert connection["connected_user"]["username"] == "eve"

    path = f"/user/connections/{connection['id']}"
    assert client.patch(path, json={"status": "accepted"}, headers=bearer(dan)).status_code == 403
    assert client.patch(path, json={"status": "pending"}, headers=bearer(eve)).status_code == 422
    r = client.patch(path, json={"status": "accepted"}, headers=bearer(eve))
    assert r.status_code == 200
    assert r.json()["status"] == "accepted"

    r = client.get("/user/connected-users", headers=bearer(eve))
    assert [u["username"] for u in r.json()] == ["dan"]


def test_share_note_over_http(client, register_user):
    dan = register_user("dan")
    eve = register_user("eve")

    r = client.post("/challenges", headers=bearer(dan), json={
        "name": "Read daily", "category": "learning", "duration": 30,
        "tasks": [{"name": "Read 20 pages"}],
    })
    task_id = r.json()["tasks"][0]["id"]
    r = client.post(f"/tasks/{task_id}/progress", headers=bearer(dan), json={
        "date": datetime.utcnow().isoformat(), "status": "completed", "hours_spent": 1, "notes": "Chapter 3",
    })
    progress_id = r.json()["id"]
    share = {"task_progress_id": progress_id, "shared_with_user_id": eve["user_id"]}

    assert client.post("/user/share-note", json=share, headers=bearer(dan)).status_code == 403

    r = client.post("/user/connections", json={"connected_user_id": eve["user_id"]}, headers=bearer(dan))
    client.patch(f"/user/connections/{r.json()['id']}", json={"status": "accepted"}, headers=bearer(eve))

    r = client.post("/user/share-note", json=share, headers=bearer(dan))
    assert r.status_code == 201
    assert r.json()["task_name"] == "Read 20 pages"

    [note] = client.get("/user/shared-notes", headers=bearer(eve)).json()
    assert note["shared_by"]["username"] == "dan"
    assert note["challenge_name"] == "Read daily"
    assert note["progress"]["notes"] == "Chapter 3"
    assert note["progress"]["minutes_spent"] == 60
