"""Admin API: registry CRUD and user management behind the admin gate."""


def _admin(make_user):
    make_user("root", subscription_type_id=3, is_admin=True)
    return {"X-User-Id": "root"}


def test_admin_routes_require_session(client):
    resp = client.get("/api/admin/subscription-types")
    assert resp.status_code == 401
    assert resp.json()["error"]["code"] == "unauthenticated"


def test_admin_routes_forbid_non_admins(client, make_user):
    make_user("member")
    resp = client.get("/api/admin/users", headers={"X-User-Id": "member"})
    assert resp.status_code == 403
    assert resp.json()["error"]["code"] == "forbidden"

    resp = client.post(
        "/api/admin/subscription-types",
        headers={"X-User-Id": "member"},
        json={"name": "Sneaky", "max_messages_per_day": -1, "available_model_ids": ["gpt-4"]},
    )
    assert resp.status_code == 403


def test_unknown_user_header_is_unauthenticated(client):
    resp = client.get("/api/admin/users", headers={"X-User-Id": "nobody"})
    assert resp.status_code == 401


def test_list_includes_inactive_by_default(client, make_user):
    headers = _admin(make_user)
    client.patch("/api/admin/subscription-types/2", headers=headers, json={"is_active": False})

    body = client.get("/api/admin/subscription-types", headers=headers).json()
    assert body["count"] == 3
    active_only = client.get(
        "/api/admin/subscription-types", headers=headers, params={"include_inactive": False}
    ).json()
    assert [t["id"] for t in active_only["subscription_types"]] == [1, 3]


def test_create_update_delete_cycle(client, make_user):
    headers = _admin(make_user)

    created = client.post(
        "/api/admin/subscription-types",
        headers=headers,
        json={"name": "Team", "price": 50, "max_messages_per_day": 500, "available_model_ids": ["chat-model", "gpt-4"]},
    )
    assert created.status_code == 201
    tier_id = created.json()["id"]

    updated = client.patch(
        f"/api/admin/subscription-types/{tier_id}",
        headers=headers,
        json={"max_messages_per_day": -1},
    )
    assert updated.status_code == 200
    assert updated.json()["max_messages_per_day"] == -1
    assert updated.json()["name"] == "Team"

    fetched = client.get(f"/api/admin/subscription-types/{tier_id}", headers=headers)
    assert fetched.json()["max_messages_per_day"] == -1

    deleted = client.delete(f"/api/admin/subscription-types/{tier_id}", headers=headers)
    assert deleted.status_code == 200
    assert client.get(f"/api/admin/subscription-types/{tier_id}", headers=headers).status_code == 404


def test_create_rejects_unknown_model(client, make_user):
    headers = _admin(make_user)
    resp = client.post(
        "/api/admin/subscription-types",
        headers=headers,
        json={"name": "Bad", "max_messages_per_day": 5, "available_model_ids": ["gpt-99"]},
    )
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "validation_error"


def test_delete_referenced_type_reports_count(client, make_user):
    headers = _admin(make_user)
    make_user("holder", subscription_type_id=2)

    resp = client.delete("/api/admin/subscription-types/2", headers=headers)
    assert resp.status_code == 409
    error = resp.json()["error"]
    assert error["code"] == "subscription_type_in_use"
    assert error["details"]["referencing_users"] == 1


def test_admin_updates_user_tier(client, make_user):
    headers = _admin(make_user)
    make_user("upgrade-me")

    resp = client.patch("/api/admin/users/upgrade-me", headers=headers, json={"subscription_type_id": 2})
    assert resp.status_code == 200
    assert resp.json()["subscription_type_id"] == 2

    users = client.get("/api/admin/users", headers=headers).json()["users"]
    assert {u["user_id"]: u["subscription_type_id"] for u in users}["upgrade-me"] == 2


def test_admin_cannot_assign_inactive_tier(client, make_user):
    headers = _admin(make_user)
    make_user("stuck")
    client.patch("/api/admin/subscription-types/2", headers=headers, json={"is_active": False})

    resp = client.patch("/api/admin/users/stuck", headers=headers, json={"subscription_type_id": 2})
    assert resp.status_code == 400


def test_admin_flag_is_read_per_request(client, make_user):
    headers = _admin(make_user)
    make_user("soon-admin")

    assert client.get("/api/admin/users", headers={"X-User-Id": "soon-admin"}).status_code == 403
    client.patch("/api/admin/users/soon-admin", headers=headers, json={"is_admin": True})
    assert client.get("/api/admin/users", headers={"X-User-Id": "soon-admin"}).status_code == 200


def test_audit_log_lists_mutations(client, make_user):
    headers = _admin(make_user)
    client.patch("/api/admin/subscription-types/1", headers=headers, json={"max_messages_per_day": 30})

    events = client.get("/api/admin/audit", headers=headers).json()["events"]
    assert events[0]["action"] == "update_subscription_type"
    assert events[0]["actor"] == "root"
