"""Tests for the structlog configuration.

Tests are deliberately minimal since structlog's own test suite is
comprehensive. We verify our configuration wrapper is correct.
"""

import logging

import structlog

from app.core.logging import _inject_request_id, configure_structlog
from app.core.middleware import _request_id_var


class TestConfigureStructlog:
    def test_configure_does_not_raise_in_debug_mode(self) -> None:
        configure_structlog(debug=True)

    def test_configure_does_not_raise_in_prod_mode(self) -> None:
        configure_structlog(debug=False)

    def test_logger_usable_after_configure(self) -> None:
        configure_structlog(debug=True)
        logger = structlog.get_logger("test")
        logger.info("test message", key="value")

    def test_configure_multiple_times_is_safe(self) -> None:
        configure_structlog(debug=True)
        configure_structlog(debug=False)
        configure_structlog(debug=True)

    def test_httpx_is_quiet_outside_debug(self) -> None:
        configure_structlog(debug=False)
        assert logging.getLogger("httpx").level == logging.WARNING


class TestInjectRequestId:
    def test_adds_request_id_inside_request(self) -> None:
        token = _request_id_var.set("req-abc")
        try:
            event = _inject_request_id(None, "info", {"event": "x"})
        finally:
            _request_id_var.reset(token)
        assert event["request_id"] == "req-abc"

    def test_no_request_id_outside_request(self) -> None:
        event = _inject_request_id(None, "info", {"event": "x"})
        assert "request_id" not in event
