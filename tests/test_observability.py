import json
import logging

from fastapi.testclient import TestClient

from artisan_directory.logging_utils import (
    JSONLogFormatter,
    RequestContextFilter,
    bind_request_context,
    reset_request_context,
)
from artisan_directory.main import app


client = TestClient(app)


def test_health_endpoint():
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_metrics_endpoint():
    response = client.get("/metrics")
    assert response.status_code == 200
    assert "artisan_directory_requests_total" in response.text
    assert "artisan_directory_contact_messages_total" in response.text
    assert response.headers["content-type"].startswith("text/plain")


def test_json_formatter_keeps_extra_fields():
    record = logging.LogRecord(
        "artisan_directory.test", logging.INFO, __file__, 1, "import finished", None, None
    )
    record.providers_created = 3
    RequestContextFilter().filter(record)

    entry = json.loads(JSONLogFormatter().format(record))

    assert entry["message"] == "import finished"
    assert entry["level"] == "INFO"
    assert entry["providers_created"] == 3
    assert entry["request_id"] is None


def test_request_context_is_bound_then_reset():
    def formatted() -> dict:
        record = logging.LogRecord(
            "artisan_directory.test", logging.INFO, __file__, 1, "searched", None, None
        )
        RequestContextFilter().filter(record)
        return json.loads(JSONLogFormatter().format(record))

    tokens = bind_request_context("req-1", "203.0.113.7")
    try:
        entry = formatted()
    finally:
        reset_request_context(tokens)

    assert (entry["request_id"], entry["client_id"]) == ("req-1", "203.0.113.7")
    assert formatted()["request_id"] is None
