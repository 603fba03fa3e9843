from __future__ import annotations

from unittest.mock import patch

from fastapi import Request
from fastapi.testclient import TestClient

from market_guard.core.app_factory import create_app
from market_guard.core.config import settings
from market_guard.main import app


client = TestClient(app)


def test_preserves_incoming_request_id_header():
    incoming_id = "test-request-id-123"
    resp = client.get("/health", headers={"X-Request-ID": incoming_id})

    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}
    assert resp.headers.get("X-Request-ID") == incoming_id


def test_generates_request_id_when_missing():
    resp = client.get("/health")

    assert resp.status_code == 200
    assert resp.headers.get("X-Request-ID")
    assert resp.headers.get("X-Request-Duration-ms") is not None


def test_records_client_ip_on_request_state():
    local_app = create_app()

    @local_app.get("/whoami")
    def whoami(request: Request) -> dict:
        return {"client_ip": request.state.client_ip}

    local_client = TestClient(local_app)

    forwarded_headers = {"X-Forwarded-For": "203.0.113.9, 10.0.0.2"}

    ignored = local_client.get("/whoami", headers=forwarded_headers)
    direct = local_client.get("/whoami")
    with patch.object(settings.rate_limit, "trusted_proxy_hops", 1):
        one_hop = local_client.get("/whoami", headers=forwarded_headers)
    with patch.object(settings.rate_limit, "trusted_proxy_hops", 3):
        too_few = local_client.get("/whoami", headers=forwarded_headers)

    assert ignored.json() == {"client_ip": "testclient"}
    assert direct.json() == {"client_ip": "testclient"}
    assert one_hop.json() == {"client_ip": "10.0.0.2"}
    assert too_few.json() == {"client_ip": "testclient"}
