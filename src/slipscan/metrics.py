"""Prometheus metrics definitions for Slipscan."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

REQUEST_COUNT = Counter(
    "slipscan_http_requests_total",
    "Total number of HTTP requests processed by the Slipscan API",
    ["method", "path", "status"],
)

REQUEST_LATENCY = Histogram(
    "slipscan_http_request_duration_seconds",
    "Latency of HTTP requests processed by the Slipscan API",
    ["method", "path"],
)

OCR_JOBS = Counter(
    "slipscan_ocr_jobs_total",
    "Number of receipt OCR jobs executed by status",
    ["status"],
)

OCR_PROVIDER_ATTEMPTS = Counter(
    "slipscan_ocr_provider_attempts_total",
    "OCR provider attempts by provider and outcome",
    ["provider", "outcome"],
)

__all__ = [
    "REQUEST_COUNT",
    "REQUEST_LATENCY",
    "OCR_JOBS",
    "OCR_PROVIDER_ATTEMPTS",
]
