from __future__ import annotations

from unittest.mock import Mock

import pytest
from fastapi.testclient import TestClient

from ratewindow.core.app_factory import create_app
from ratewindow.core.config import RateLimitSettings
from ratewindow.core.rate_limit import RateLimiterRegistry


@pytest.fixture
def client() -> TestClient:
    registry = RateLimiterRegistry(
        RateLimitSettings(global_requests=1),
        clock=Mock(return_value=1000.0),
    )
    return TestClient(create_app(registry=registry))


def test_preserves_incoming_request_id_header(client: TestClient):
    incoming_id = "test-request-id-123"
    resp = client.get("/health", headers={"X-Request-ID": incoming_id})

    assert resp.status_code == 200
    assert resp.headers.get("X-Request-ID") == incoming_id


def test_generates_request_id_when_missing(client: TestClient):
    resp = client.get("/health")

    assert resp.status_code == 200
    generated = resp.headers.get("X-Request-ID")
    assert generated
    assert resp.headers.get("X-Request-Duration-ms") is not None


def test_throttled_response_carries_request_id(client: TestClient):
    client.get("/")
    resp = client.get("/", headers={"X-Request-ID": "req-throttled"})

    assert resp.status_code == 429
    assert resp.headers.get("X-Request-ID") == "req-throttled"
    assert resp.json()["error"]["request_id"] == "req-throttled"
