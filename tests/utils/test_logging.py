"""Tests for the structlog setup and contextvars-based log context."""

from __future__ import annotations

import json
import logging
import os
from io import StringIO
from unittest.mock import patch

import structlog

from src.utils.logging import (
    LogContext,
    _get_log_renderer,
    _is_local_environment,
    add_log_context,
    clear_log_context,
    configure_logging,
    get_logger,
    redact_secret,
    remove_log_context,
)


class TestEnvironmentDetection:
    def test_is_local_environment(self):
        with patch.dict(os.environ, {"RELAY_ENVIRONMENT": "local"}):
            assert _is_local_environment() is True

        with patch.dict(os.environ, {"RELAY_ENVIRONMENT": "production"}):
            assert _is_local_environment() is False

    def test_renderer_follows_environment(self):
        with patch.dict(os.environ, {"RELAY_ENVIRONMENT": "local", "LOG_RENDERER": ""}):
            assert isinstance(_get_log_renderer(), structlog.dev.ConsoleRenderer)

        with patch.dict(os.environ, {"RELAY_ENVIRONMENT": "production", "LOG_RENDERER": ""}):
            assert isinstance(_get_log_renderer(), structlog.processors.JSONRenderer)

    def test_log_renderer_override(self):
        with patch.dict(os.environ, {"RELAY_ENVIRONMENT": "production", "LOG_RENDERER": "console"}):
            assert isinstance(_get_log_renderer(), structlog.dev.ConsoleRenderer)

        with patch.dict(os.environ, {"RELAY_ENVIRONMENT": "local", "LOG_RENDERER": "json"}):
            assert isinstance(_get_log_renderer(), structlog.processors.JSONRenderer)


class TestRedactSecret:
    def test_long_secret_keeps_prefix_and_suffix(self):
        assert redact_secret("0123456789abcdef") == "0123...ef"

    def test_short_secret_is_fully_hidden(self):
        assert redact_secret("abc123") == "***"

    def test_missing_secret(self):
        assert redact_secret(None) == "<empty>"
        assert redact_secret("") == "<empty>"


class TestLogOutput:
    """JSON log lines carry bound context."""

    def setup_method(self):
        clear_log_context()
        self.log_stream = StringIO()
        self.handler = logging.StreamHandler(self.log_stream)

        with patch.dict(os.environ, {"LOG_RENDERER": "json"}):
            configure_logging()

        # Keep configure_logging's formatter, write to our buffer
        root_logger = logging.getLogger()
        self.handler.setFormatter(root_logger.handlers[0].formatter)
        root_logger.handlers.clear()
        root_logger.addHandler(self.handler)

    def teardown_method(self):
        clear_log_context()
        logging.getLogger().removeHandler(self.handler)
        configure_logging()

    def _logged(self) -> list[dict]:
        output = self.log_stream.getvalue().strip()
        return [json.loads(line) for line in output.split("\n") if line.strip()]

    def test_context_appears_in_logs(self):
        add_log_context(spreadsheet_id="SHEET1")
        get_logger(__name__).info("Persisting webhook secret", webhook_id="wh1")

        (log_data,) = self._logged()
        assert log_data["spreadsheet_id"] == "SHEET1"
        assert log_data["webhook_id"] == "wh1"
        assert log_data["message"] == "Persisting webhook secret"

    def test_log_context_is_scoped(self):
        logger = get_logger(__name__)

        with LogContext(task_gid="1209", action="changed"):
            logger.info("Inside context")
        logger.info("After context")

        inside, after = self._logged()
        assert inside["task_gid"] == "1209"
        assert inside["action"] == "changed"
        assert "task_gid" not in after

    def test_log_context_cleans_up_after_exception(self):
        logger = get_logger(__name__)

        try:
            with LogContext(webhook_id="wh1"):
                raise ValueError("boom")
        except ValueError:
            pass
        logger.info("After exception")

        (log_data,) = self._logged()
        assert "webhook_id" not in log_data

    def test_remove_and_clear_log_context(self):
        logger = get_logger(__name__)
        add_log_context(spreadsheet_id="SHEET1", webhook_id="wh1")

        remove_log_context("webhook_id")
        logger.info("Partial context")
        clear_log_context()
        logger.info("No context")

        partial, empty = self._logged()
        assert partial["spreadsheet_id"] == "SHEET1"
        assert "webhook_id" not in partial
        assert "spreadsheet_id" not in empty
