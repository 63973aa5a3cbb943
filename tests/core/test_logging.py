"""Tests for structured logging setup."""

from __future__ import annotations

import json
import logging

import pytest

from eventsync.core.logging import (
    _NOISE_LOGGERS,
    _delivery_context,
    add_delivery_context,
    add_otel_context,
    configure_logging,
    get_delivery_context,
    set_delivery_context,
)

pytestmark = pytest.mark.unit


@pytest.fixture(autouse=True)
def _reset_logging():
    """Reset logging and delivery context between tests."""
    token = _delivery_context.set(None)
    yield
    _delivery_context.reset(token)
    root = logging.getLogger()
    for handler in root.handlers:
        handler.close()
    root.handlers.clear()
    root.setLevel(logging.WARNING)
    for name in _NOISE_LOGGERS:
        logging.getLogger(name).handlers.clear()


class TestDeliveryContext:
    def test_set_and_get(self):
        set_delivery_context("d-1")
        assert get_delivery_context() == "d-1"

    def test_default_is_none(self):
        assert get_delivery_context() is None

    def test_processor_injects_delivery_id(self):
        set_delivery_context("d-2")
        result = add_delivery_context(None, "info", {"event": "x"})
        assert result["delivery_id"] == "d-2"


class TestAddOtelContext:
    def test_zero_ids_without_active_span(self):
        result = add_otel_context(None, "info", {"event": "x"})
        assert result["trace_id"] == "0" * 32
        assert result["span_id"] == "0" * 16


class TestConfigureLogging:
    def test_reconfiguring_does_not_duplicate_handlers(self):
        configure_logging("INFO")
        configure_logging("DEBUG")

        root = logging.getLogger()
        assert len(root.handlers) == 1
        assert root.level == logging.DEBUG

    def test_noise_loggers_are_quieted(self):
        configure_logging("DEBUG")
        assert logging.getLogger("httpx").level == logging.WARNING

    def test_log_root_writes_json_lines(self, tmp_path):
        configure_logging("INFO", fmt="json", log_root=tmp_path, service_name="events")
        set_delivery_context("d-3")

        logging.getLogger("eventsync.test").info("Synced %d items", 2)
        for handler in logging.getLogger().handlers:
            handler.flush()

        path = tmp_path / "eventsync" / "events.log"
        record = json.loads(path.read_text().strip().splitlines()[-1])
        assert record["event"] == "Synced 2 items"
        assert record["delivery_id"] == "d-3"
        assert record["level"] == "info"
        assert (tmp_path / "uvicorn" / "events.log").exists()
