from conftest import make_share, make_wishlist


def test_health_ok(client):
    res = client.get("/health")
    assert res.status_code == 200
    assert res.json().get("status") == "ok"


def test_request_id_is_generated(client):
    res = client.get("/health")
    assert res.headers.get("X-Request-Id")


def test_request_id_is_echoed(client):
    res = client.get("/health", headers={"X-Request-Id": "trace-123"})
    assert res.headers["X-Request-Id"] == "trace-123"


def test_security_headers(client):
    res = client.get("/health")
    assert res.headers["X-Content-Type-Options"] == "nosniff"
    assert res.headers["X-Frame-Options"] == "DENY"
    assert res.headers["Referrer-Policy"] == "no-referrer"


def test_metrics_shape(client):
    client.get("/health")
    res = client.get("/metrics")
    assert res.status_code == 200
    data = res.json()
    assert data["requests_total"] >= 1
    assert "errors_total" in data
    assert "avg_latency_ms" in data
    assert data["by_path"]["/health"]["count"] >= 1


def test_metrics_hide_share_tokens(client, owner):
    wl = make_wishlist(client, owner)
    token = make_share(client, owner, wl["id"])["share_token"]
    client.get(f"/shares/{token}")

    by_path = client.get("/metrics").json()["by_path"]
    assert "/shares/{token}" in by_path
    assert not any(token in path for path in by_path)


def test_unknown_route(client):
    assert client.get("/does-not-exist").status_code == 404
