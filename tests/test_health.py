import pytest
from fastapi import status

def test_health_check(client):
    """Test the /health endpoint returns 200 and up status."""
    response = client.get("/health")
    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["status"] == "up"
    assert "version" in data
    assert "timestamp" in data

def test_readiness_check(client):
    """Test the /readiness endpoint returns 200 and database status."""
    response = client.get("/readiness")
    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["status"] == "ready"
    assert data["components"]["database"] == "connected"

def test_root_endpoint(client):
    response = client.get("/")
    assert response.status_code == 200
    assert "Appraisal Platform API" in response.json()["message"]

def test_request_id_is_propagated(client):
    response = client.get("/health", headers={"X-Request-ID": "abc-123"})
    assert response.headers["X-Request-ID"] == "abc-123"
    assert "X-Process-Time" in response.headers

def test_request_id_is_generated(client):
    response = client.get("/liveness")
    assert response.status_code == 200
    assert response.headers["X-Request-ID"]

def test_unknown_route_uses_error_envelope(client):
    response = client.get("/api/does-not-exist")
    assert response.status_code == 404
    assert response.json()["success"] is False
    assert response.json()["request_id"] == response.headers["X-Request-ID"]

def test_readiness_reports_optional_components(client):
    components = client.get("/readiness").json()["components"]
    # Test settings run without OneSignal credentials and with analytics off
    assert components["push"] == "disabled"
    assert components["analytics"] == "disabled"
