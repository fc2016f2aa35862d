"""Tests for the guest chat router."""

GUEST = {"X-Guest-Session": "browser-session-1"}


def test_initialize_session(client):
    r = client.post("/guest-chat/session", headers=GUEST)
    assert r.status_code == 200
    data = r.json()
    assert data["session"]["session_id"] == "browser-session-1"
    assert data["conversation"]["status"] == "active"
    assert data["conversation"]["owner"]["kind"] == "guest_session"
    assert data["messages"] == []


def test_session_id_from_cookie(client):
    r = client.post(
        "/guest-chat/session", headers={"Cookie": "guest_session=cookie-session"}
    )
    assert r.status_code == 200
    assert r.json()["session"]["session_id"] == "cookie-session"


def test_missing_session_id(client):
    r = client.post("/guest-chat/messages", json={"body": "Hello"})
    assert r.status_code == 400


def test_send_and_list_messages(client, notifier, broadcaster):
    r = client.post("/guest-chat/messages", json={"body": "Hello"}, headers=GUEST)
    assert r.status_code == 201
    data = r.json()
    assert data["message"]["body"] == "Hello"
    assert data["message"]["status"] == "sent"
    assert data["conversation"]["unread_count"] == 1
    assert len(broadcaster.events) == 1

    r = client.get("/guest-chat/messages", headers=GUEST)
    assert r.status_code == 200
    assert [m["body"] for m in r.json()] == ["Hello"]


def test_send_rejects_system_type(client):
    r = client.post(
        "/guest-chat/messages",
        json={"body": "Hello", "message_type": "system"},
        headers=GUEST,
    )
    assert r.status_code == 422


def test_send_rejects_long_body(client):
    r = client.post("/guest-chat/messages", json={"body": "x" * 5001}, headers=GUEST)
    assert r.status_code == 422
    assert "5000" in r.json()["detail"]


def test_update_guest_info(client):
    client.post("/guest-chat/session", headers=GUEST)
    r = client.patch(
        "/guest-chat/session",
        json={"guest_name": "Grace", "guest_email": "grace@gmail.com"},
        headers=GUEST,
    )
    assert r.status_code == 200
    assert r.json()["display_name"] == "Grace"


def test_update_guest_info_unknown_session(client):
    r = client.patch("/guest-chat/session", json={"guest_name": "X"}, headers=GUEST)
    assert r.status_code == 404


def test_list_messages_unknown_session(client):
    r = client.get("/guest-chat/messages", headers=GUEST)
    assert r.status_code == 404
