"""Chat API: the policy pipeline as seen over HTTP."""

from concurrent.futures import ThreadPoolExecutor


def _send(client, user_id, chat_id="chat-1", model="chat-model", message="hello"):
    return client.post(
        "/api/chat",
        headers={"X-User-Id": user_id} if user_id else {},
        json={"id": chat_id, "message": message, "selected_chat_model": model},
    )


def test_send_requires_session(client):
    resp = _send(client, None)
    assert resp.status_code == 401


def test_send_creates_chat_and_records_message(client, make_user):
    make_user("writer")
    resp = _send(client, "writer", message="What is a quota?\nsecond line")
    assert resp.status_code == 200
    body = resp.json()
    assert body["chat_id"] == "chat-1"
    assert body["quota"]["used"] == 1
    assert body["quota"]["limit"] == 20

    history = client.get("/api/chat/chat-1/messages", headers={"X-User-Id": "writer"})
    assert history.status_code == 200
    messages = history.json()["messages"]
    assert [m["content"] for m in messages] == ["What is a quota?\nsecond line"]
    assert messages[0]["role"] == "user"


def test_messages_are_owner_only(client, make_user):
    make_user("writer")
    make_user("admin-reader", is_admin=True)
    _send(client, "writer")

    resp = client.get("/api/chat/chat-1/messages", headers={"X-User-Id": "admin-reader"})
    assert resp.status_code == 403

    resp = client.get("/api/chat/missing/messages", headers={"X-User-Id": "writer"})
    assert resp.status_code == 404


def test_cannot_post_into_someone_elses_chat(client, make_user):
    make_user("writer")
    make_user("intruder")
    _send(client, "writer")

    resp = _send(client, "intruder")
    assert resp.status_code == 403


def test_model_outside_subscription(client, make_user):
    make_user("basic")
    resp = _send(client, "basic", model="gpt-4")
    assert resp.status_code == 403
    assert resp.json()["error"]["code"] == "model_not_allowed"


def test_quota_exhaustion_returns_429(client, make_user):
    make_user("root", is_admin=True)
    client.patch(
        "/api/admin/subscription-types/1",
        headers={"X-User-Id": "root"},
        json={"max_messages_per_day": 2},
    )
    make_user("talker")

    assert _send(client, "talker").status_code == 200
    assert _send(client, "talker").status_code == 200
    resp = _send(client, "talker")

    assert resp.status_code == 429
    error = resp.json()["error"]
    assert error["code"] == "quota_exceeded"
    assert error["details"]["limit"] == 2
    assert error["details"]["used"] == 2


def test_unlimited_tier_never_hits_429(client, make_user):
    make_user("enterprise", subscription_type_id=3)
    for i in range(25):
        assert _send(client, "enterprise", message=f"msg {i}").status_code == 200


def test_change_chat_model(client, make_user):
    make_user("premium", subscription_type_id=2)
    _send(client, "premium")

    resp = client.patch("/api/chat/chat-1/model", headers={"X-User-Id": "premium"}, json={"model": "gpt-4"})
    assert resp.status_code == 200
    assert resp.json()["model"] == "gpt-4"

    resp = client.patch(
        "/api/chat/chat-1/model",
        headers={"X-User-Id": "premium"},
        json={"model": "chat-model-reasoning"},
    )
    assert resp.status_code == 403


def test_delete_chat_owner_only(client, make_user):
    make_user("writer")
    make_user("other")
    _send(client, "writer")

    assert client.delete("/api/chat/chat-1", headers={"X-User-Id": "other"}).status_code == 403
    assert client.delete("/api/chat/chat-1", headers={"X-User-Id": "writer"}).status_code == 200
    assert client.get("/api/chat/chat-1/messages", headers={"X-User-Id": "writer"}).status_code == 404


def test_concurrent_first_messages_share_one_chat(client, make_user):
    make_user("burst-writer")

    with ThreadPoolExecutor(max_workers=6) as pool:
        responses = list(pool.map(lambda i: _send(client, "burst-writer", chat_id="fresh-chat", message=f"m{i}"), range(6)))

    assert [r.status_code for r in responses] == [200] * 6
    history = client.get("/api/chat/fresh-chat/messages", headers={"X-User-Id": "burst-writer"})
    assert history.json()["count"] == 6
    usage = client.get("/api/usage", headers={"X-User-Id": "burst-writer"}).json()
    assert usage["usage"]["used"] == 6


def test_chat_created_by_someone_else_mid_request_is_forbidden(client, make_user, monkeypatch):
    make_user("first")
    make_user("second")
    assert _send(client, "first", chat_id="contested").status_code == 200

    # Simulate the second request reading before the first one's insert landed
    monkeypatch.setattr("chatgate.features.policy.service.get_chat", lambda chat_id: None)
    resp = _send(client, "second", chat_id="contested")

    assert resp.status_code == 403
    assert resp.json()["error"]["code"] == "forbidden"
    history = client.get("/api/chat/contested/messages", headers={"X-User-Id": "first"})
    assert history.json()["count"] == 1
