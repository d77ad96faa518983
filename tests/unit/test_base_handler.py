"""Tests for base handler functionality."""

from __future__ import annotations

import json
import logging

import kopf
import pytest

from pagerduty_operator.handlers.base import BaseHandler

META = {"name": "osd", "namespace": "pagerduty-operator", "uid": "uid-1", "generation": 4}


class TestBaseHandler:
    """Test cases for BaseHandler class."""

    def test_init(self):
        """Test handler initialization."""
        handler = BaseHandler(kind="TestKind")
        assert handler.kind == "TestKind"
        assert handler.logger is not None

    def test_get_resource_context_defaults(self):
        """Test context extraction with missing metadata."""
        handler = BaseHandler(kind="TestKind")
        assert handler._get_resource_context({}) == {"name": "unknown", "namespace": "default", "uid": "unknown"}

    def test_log_error_includes_sanitized_error(self, caplog):
        """Test that errors are logged with their type and a sanitized message."""
        handler = BaseHandler(kind="TestKind")
        with caplog.at_level(logging.ERROR):
            handler.log_error(META, "failed", error=RuntimeError("api key: abcdefgh12345678"))

        data = json.loads(caplog.records[-1].getMessage())
        assert data["name"] == "osd"
        assert data["error_type"] == "RuntimeError"
        assert "abcdefgh12345678" not in data["error"]

    def test_reconcile_with_metrics_returns_result(self):
        """Test that the wrapped function's result is returned."""
        handler = BaseHandler(kind="TestKind")
        assert handler.reconcile_with_metrics(META, lambda: "done") == "done"

    def test_reconcile_with_metrics_reraises_temporary_error(self):
        """Test that TemporaryError passes through."""
        handler = BaseHandler(kind="TestKind")

        def fail():
            raise kopf.TemporaryError("later", delay=1)

        with pytest.raises(kopf.TemporaryError):
            handler.reconcile_with_metrics(META, fail)

    def test_reconcile_with_metrics_logs_and_reraises(self, caplog):
        """Test that unexpected errors are logged and re-raised."""
        handler = BaseHandler(kind="TestKind")

        def fail():
            raise ValueError("boom")

        with caplog.at_level(logging.ERROR):
            with pytest.raises(ValueError):
                handler.reconcile_with_metrics(META, fail)

        assert "Reconciliation failed" in caplog.records[-1].getMessage()

    def test_update_resource_status(self):
        """Test that status carries the observed generation."""
        handler = BaseHandler(kind="TestKind")
        patch = kopf.Patch()

        handler.update_resource_status(patch, META, {"clusterCount": 2})

        assert patch.status["observedGeneration"] == 4
        assert patch.status["clusterCount"] == 2
