"""
Tests for structured logging setup.
"""

import json
import logging

import structlog

from appcheck.logging import add_component_context, configure_logging, get_logger


def test_add_component_context():
    event = add_component_context(None, "info", {"logger": "appcheck.jwks", "event": "x"})

    assert event["component"] == "jwks"


def test_add_component_context_without_dot():
    event = add_component_context(None, "info", {"logger": "appcheck", "event": "x"})

    assert "component" not in event


def test_configure_logging_renders_json(caplog):
    configure_logging("debug")
    caplog.set_level(logging.DEBUG)
    try:
        get_logger("appcheck.validator").info("App Check token rejected", code="UNKNOWN_KEY")
    finally:
        structlog.reset_defaults()

    record = json.loads(caplog.records[-1].getMessage())

    assert record["event"] == "App Check token rejected"
    assert record["code"] == "UNKNOWN_KEY"
    assert record["logger"] == "appcheck.validator"
    assert record["component"] == "validator"
    assert record["level"] == "info"
