"""Integration tests for metrics and health endpoints."""

from __future__ import annotations


def test_metrics_endpoint_available(client):
    client.get("/healthz")
    response = client.get("/metrics")
    assert response.status_code == 200
    body = response.content.decode()
    assert "slipscan_http_requests_total" in body
    assert "slipscan_ocr_provider_attempts_total" in body


def test_healthz(client):
    response = client.get("/healthz")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"
