"""
tests/test_health.py -- Integration tests for GET /api/health and error envelopes.

Covers:
  - 200 response with status and version
  - No authentication required
  - Unknown routes use the {code, message} error envelope
"""

from __future__ import annotations


def test_health_returns_200(client):
    resp = client.get("/api/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "ok"
    assert "version" in data


def test_health_no_auth_required(client):
    resp = client.get("/api/health", headers={})
    assert resp.status_code == 200


def test_unknown_route_uses_error_envelope(client):
    resp = client.get("/api/does-not-exist")
    assert resp.status_code == 404
    body = resp.json()
    assert set(body) == {"code", "message"}
