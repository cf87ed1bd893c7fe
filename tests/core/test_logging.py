import json
import logging

from app.core.logging_config import (
    ContextEnricher,
    JSONFormatter,
    bind_request_context,
    org_id_ctx,
    reset_request_context,
    user_id_ctx,
)


def _record(msg="hello", **extra):
    record = logging.LogRecord("app.notifications", logging.INFO, __file__, 1, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_bind_and_reset_request_context():
    tokens = bind_request_context(user_id="u1", org_id="o1")
    assert user_id_ctx.get() == "u1"
    assert org_id_ctx.get() == "o1"

    reset_request_context(tokens)
    assert user_id_ctx.get() is None
    assert org_id_ctx.get() is None


def test_context_enricher_adds_bound_identity():
    tokens = bind_request_context(user_id="u1", request_id="req-1")
    try:
        record = _record()
        ContextEnricher().filter(record)
    finally:
        reset_request_context(tokens)

    assert record.user_id == "u1"
    assert record.request_id == "req-1"
    assert not hasattr(record, "org_id")


def test_json_formatter_includes_delivery_fields():
    output = json.loads(
        JSONFormatter().format(_record(channel="tasks", client_key="u1:o1"))
    )
    assert output["message"] == "hello"
    assert output["channel"] == "tasks"
    assert output["client_key"] == "u1:o1"
    assert output["timestamp"].endswith("Z")
