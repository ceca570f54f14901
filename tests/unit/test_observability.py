"""Tests for the observability module — prompt registry, structured logging, tracing."""

import json
import logging
import sys

import pytest

from relatos.observability.logging import (
    JSONFormatter,
    bind_correlation_id,
    correlation_id,
    setup_logging,
)
from relatos.observability.prompts import (
    get_active_prompt,
    get_prompt_version,
)
from relatos.observability.tracing import start_span


def _record(msg: str = "test message", **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="relatos.test",
        level=logging.INFO,
        pathname="test.py",
        lineno=1,
        msg=msg,
        args=None,
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestPromptRegistry:
    def test_agent_prompt(self):
        """The agent prompt names its only tool and carries the contract placeholder."""
        prompt = get_active_prompt("relatos_agent")
        assert isinstance(prompt, str)
        assert "queryRelatos" in prompt
        assert "{contrato_line}" in prompt
        assert "Resumo curto" in prompt

    def test_get_prompt_version(self):
        assert get_prompt_version("relatos_agent") == "v1"
        assert get_prompt_version("ui_filters_note") == "v1"

    def test_unknown_prompt_raises(self):
        with pytest.raises(KeyError, match="Unknown prompt"):
            get_active_prompt("nonexistent")
        with pytest.raises(KeyError, match="Unknown prompt"):
            get_prompt_version("nonexistent")


class TestJSONFormatter:
    def test_json_formatter_output(self):
        """JSONFormatter produces valid JSON with required fields."""
        parsed = json.loads(JSONFormatter().format(_record()))
        assert parsed["level"] == "INFO"
        assert parsed["logger"] == "relatos.test"
        assert parsed["message"] == "test message"
        assert "timestamp" in parsed
        assert "correlation_id" not in parsed

    def test_json_formatter_includes_correlation_id(self):
        token = correlation_id.set("test-123")
        try:
            parsed = json.loads(JSONFormatter().format(_record("hi")))
            assert parsed["correlation_id"] == "test-123"
        finally:
            correlation_id.reset(token)

    def test_query_fields_included(self):
        record = _record(
            "relatos.query",
            user_id=4242,
            contrato="X",
            filters={"status": "Vencido", "has_search_text": False},
            duration_ms=12.5,
            returned=3,
        )
        parsed = json.loads(JSONFormatter().format(record))
        assert parsed["user_id"] == 4242
        assert parsed["contrato"] == "X"
        assert parsed["filters"] == {"status": "Vencido", "has_search_text": False}
        assert parsed["duration_ms"] == 12.5
        assert parsed["returned"] == 3

    def test_unlisted_extras_not_emitted(self):
        parsed = json.loads(JSONFormatter().format(_record(search_text="vazamento", turn=2)))
        assert "search_text" not in parsed
        assert parsed["turn"] == 2

    def test_non_ascii_kept(self):
        output = JSONFormatter().format(_record("Consulta concluída", contrato="São Paulo"))
        assert "concluída" in output
        assert "São Paulo" in output

    def test_exception_included(self):
        try:
            raise ValueError("boom")
        except ValueError:
            record = _record("failed")
            record.exc_info = sys.exc_info()
        parsed = json.loads(JSONFormatter().format(record))
        assert "ValueError: boom" in parsed["exception"]

    async def test_correlation_id_propagation(self):
        """ContextVar propagates correlation ID across async chain."""
        results = []

        async def inner():
            results.append(correlation_id.get())

        token = correlation_id.set("async-456")
        try:
            await inner()
        finally:
            correlation_id.reset(token)

        assert results == ["async-456"]
        assert correlation_id.get() == ""


class TestSetupLogging:
    def test_setup_logging_json(self):
        setup_logging(json_format=True, level="WARNING")
        root = logging.getLogger()
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, JSONFormatter)
        assert root.level == logging.WARNING
        # Restore default for other tests
        setup_logging(json_format=False, level="INFO")

    def test_setup_logging_text(self):
        setup_logging(json_format=False, level="DEBUG")
        root = logging.getLogger()
        assert not isinstance(root.handlers[0].formatter, JSONFormatter)
        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING
        setup_logging(json_format=False, level="INFO")


def test_start_span_accepts_inputs_and_outputs():
    with start_span(name="unit", span_type="TOOL") as span:
        span.set_inputs({"a": 1})
        span.set_outputs({"b": 2})


def test_bind_correlation_id_scopes_value():
    with bind_correlation_id("req-789") as cid:
        assert cid == "req-789"
        assert correlation_id.get() == "req-789"
    assert correlation_id.get() == ""
