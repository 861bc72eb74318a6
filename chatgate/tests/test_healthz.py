def test_ping_short_circuits(client):
    resp = client.get("/ping")
    assert resp.status_code == 200
    assert resp.text == "pong"
    assert resp.headers.get("x-request-id")


def test_healthz_and_subpaths(client):
    assert client.get("/healthz").text == "pong"
    assert client.get("/ping/anything").status_code == 200


def test_health_check_skips_session_lookup(client, monkeypatch):
    from chatgate.core.middleware import gate

    def _boom(request):
        raise AssertionError("session lookup must not run for health checks")

    monkeypatch.setattr(gate, "get_session", _boom)
    assert client.get("/ping", headers={"X-User-Id": "anyone"}).status_code == 200


def test_readyz_ok(client):
    resp = client.get("/readyz")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_readyz_reports_missing_tables(client):
    from chatgate.core.database import quota_counters, get_engine

    quota_counters.drop(bind=get_engine())
    resp = client.get("/readyz")
    assert resp.status_code == 503
    assert "quota_counters" in resp.json()["detail"]


def test_metrics_endpoint_exports_counters(client, make_user):
    make_user("metered")
    client.post("/api/chat", headers={"X-User-Id": "metered"}, json={"id": "c", "message": "hi"})
    client.get("/images/logo.png")

    text = client.get("/metrics").text
    assert "# TYPE http_requests_total counter" in text
    assert 'quota_decisions_total{status="ALLOWED",ceiling="limited"} 1.0' in text
    assert 'kind="static_asset"' in text
    assert 'path="/api/chat",status="200",kind="api"' in text
