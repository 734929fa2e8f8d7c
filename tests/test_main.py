from __future__ import annotations

from fastapi.testclient import TestClient

from app.main import app


def test_health_and_request_id_header():
    client = TestClient(app)

    response = client.get("/health", headers={"X-Request-Id": "abc123"})

    assert response.status_code == 200
    assert response.json()["ok"] is True
    assert response.headers["X-Request-Id"] == "abc123"


def test_request_id_generated_when_missing():
    client = TestClient(app)
    response = client.get("/health")
    assert len(response.headers["X-Request-Id"]) == 32


def test_news_routes_mounted_under_api_v1():
    paths = set(app.openapi()["paths"])
    assert "/api/v1/news" in paths
    assert "/api/v1/news/search" in paths
    assert "/api/v1/news/status" in paths
    assert "/api/v1/news/refresh" in paths
    assert "/api/v1/news/{item_id}" in paths
