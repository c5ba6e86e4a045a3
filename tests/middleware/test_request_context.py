"""Request ID propagation and the per-request access log line."""

from __future__ import annotations

import logging
import uuid

import pytest
from fastapi.testclient import TestClient


def test_request_id_generated(client: TestClient) -> None:
    resp = client.get("/health")
    uuid.UUID(resp.headers["x-request-id"])


def test_request_id_echoed(client: TestClient) -> None:
    resp = client.get("/health", headers={"X-Request-ID": "trace-abc"})
    assert resp.headers["x-request-id"] == "trace-abc"


def test_request_id_on_error_responses(client: TestClient) -> None:
    resp = client.get(f"/v1/progress/courses/{uuid.uuid4()}")
    assert resp.status_code == 401
    assert resp.headers.get("x-request-id") is not None


def _access_records(caplog: pytest.LogCaptureFixture) -> list[logging.LogRecord]:
    return [r for r in caplog.records if r.name == "academy.middleware.request_context"]


def test_access_log_line(client: TestClient, caplog: pytest.LogCaptureFixture) -> None:
    course_id = uuid.uuid4()
    with caplog.at_level(logging.INFO, logger="academy.middleware.request_context"):
        client.get(f"/v1/progress/courses/{course_id}", headers={"X-Request-ID": "log-me"})

    (record,) = _access_records(caplog)
    assert record.levelno == logging.INFO
    assert record.getMessage().startswith(f"GET /v1/progress/courses/{course_id} -> 401 (")
    assert record.request_id == "log-me"  # type: ignore[attr-defined]
    assert record.status_code == 401  # type: ignore[attr-defined]


def test_probes_log_at_debug(client: TestClient, caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.INFO, logger="academy.middleware.request_context"):
        client.get("/health")
        client.get("/ready")
    assert _access_records(caplog) == []

    with caplog.at_level(logging.DEBUG, logger="academy.middleware.request_context"):
        client.get("/health")
    (record,) = _access_records(caplog)
    assert record.levelno == logging.DEBUG
