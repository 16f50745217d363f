"""Prometheus metrics for photo uploads."""

from prometheus_client import Counter


UPLOAD_ATTEMPTS = Counter(
    "photo_upload_attempts_total",
    "Total number of photo upload attempts",
    ["kind"],
)
UPLOAD_SUCCESSES = Counter(
    "photo_upload_success_total",
    "Total number of successful photo uploads",
    ["kind"],
)
UPLOAD_FAILURES = Counter(
    "photo_upload_failure_total",
    "Total number of failed photo uploads",
    ["kind", "reason"],
)
