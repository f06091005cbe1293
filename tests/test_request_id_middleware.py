from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from request_throttling.core.app_factory import create_app


@pytest.fixture
def client(settings_factory, memory_store) -> TestClient:
    app = create_app(settings_factory(max_requests=100, period_seconds=60), memory_store)
    return TestClient(app)


def test_preserves_incoming_request_id_header(client):
    incoming_id = "test-request-id-123"
    resp = client.get("/health", headers={"X-Request-ID": incoming_id})

    assert resp.status_code == 200
    assert resp.headers.get("X-Request-ID") == incoming_id


def test_generates_request_id_when_missing(client):
    resp = client.get("/health")

    assert resp.status_code == 200
    assert resp.headers.get("X-Request-ID")
    assert resp.headers.get("X-Request-Duration-ms") is not None
