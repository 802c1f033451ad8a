def test_health_endpoints(client):
    assert client.get("/api/health").json() == {"status": "ok"}

    ready = client.get("/api/health/ready")
    assert ready.status_code in {200, 503}
    payload = ready.json()
    assert "database" in payload
    assert set(payload["database"]) >= {"ok", "schema_ok", "missing_tables"}
