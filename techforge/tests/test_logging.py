"""Structured log output and request id handling."""
import json
import logging

import pytest

from techforge.core.logging import (
    JsonFormatter,
    PrettyFormatter,
    RequestIdFilter,
    latency_bucket_ms,
    mask_email,
    request_id_ctx_var,
)
from techforge.models.plan import Plan


@pytest.fixture
def issued_license(services):
    return services.licenses.issue("a@x.com", Plan.PRO, "cs_log")


def _record(**extra):
    record = logging.LogRecord("techforge", logging.INFO, __file__, 1, "fulfillment.processed", None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


@pytest.mark.parametrize(
    "raw, masked",
    [("buyer@example.com", "b***@example.com"), ("x", "x"), (None, None), ("@x.com", "***@x.com")],
)
def test_mask_email(raw, masked):
    assert mask_email(raw) == masked


@pytest.mark.parametrize("ms, bucket", [(None, "unknown"), (3, "<10ms"), (50, "10-100ms"), (700, "500-1000ms"), (5000, ">=1000ms")])
def test_latency_bucket(ms, bucket):
    assert latency_bucket_ms(ms) == bucket


def test_json_formatter_masks_email_and_keeps_fields():
    record = _record(request_id="req-1", event_id="cs_1", email="buyer@example.com", plan="pro")

    out = json.loads(JsonFormatter().format(record))

    assert out["message"] == "fulfillment.processed"
    assert out["request_id"] == "req-1"
    assert out["event_id"] == "cs_1"
    assert out["email"] == "b***@example.com"
    assert out["plan"] == "pro"
    assert "template" not in out


def test_formatters_render_every_extra_field():
    record = _record(service="storage", error_detail="object saas.zip not found", actor_id="key:abc")

    out = json.loads(JsonFormatter().format(record))
    line = PrettyFormatter().format(record)

    assert out["service"] == "storage"
    assert out["error_detail"] == "object saas.zip not found"
    assert out["actor_id"] == "key:abc"
    assert "error_detail=object saas.zip not found" in line
    assert "lineno" not in out


def test_upstream_failure_cause_reaches_the_log(client, services, issued_license, object_store, caplog):
    object_store.objects.clear()

    with caplog.at_level(logging.ERROR, logger="techforge"):
        response = client.get("/download", params={"template": "saas", "license": issued_license.key})

    assert response.status_code == 500
    assert "saas.zip" not in response.text
    [record] = [r for r in caplog.records if r.getMessage() == "app.error"]
    out = json.loads(JsonFormatter().format(record))
    assert out["service"] == "storage"
    assert "object saas.zip not found" in out["error_detail"]


def test_pretty_formatter_line():
    line = PrettyFormatter().format(_record(request_id="req-1", error_code="inactive"))
    assert "[rid=req-1]" in line
    assert "error_code=inactive" in line


def test_filter_uses_context_request_id():
    token = request_id_ctx_var.set("ctx-rid")
    try:
        record = _record()
        RequestIdFilter().filter(record)
    finally:
        request_id_ctx_var.reset(token)
    assert record.request_id == "ctx-rid"


def test_unsafe_incoming_request_id_is_replaced(client):
    response = client.get("/healthz", headers={"X-Request-ID": "bad id with spaces"})
    rid = response.headers["x-request-id"]
    assert rid != "bad id with spaces"
    assert len(rid) == 36
