"""Tests for console helpers and structlog configuration."""

import json
import logging
from unittest.mock import patch

import pytest
import structlog

from vitality import logging as vlog
from vitality.config import Config, LoggingConfig


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers:
        handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
    structlog.reset_defaults()


def test_usage_color_thresholds():
    assert vlog.usage_color(0.2) == "green"
    assert vlog.usage_color(0.6) == "bright_yellow"
    assert vlog.usage_color(0.9) == "bright_red"


def test_log_prints_level_and_icon():
    with patch.object(vlog._console, "print") as mock_print:
        vlog.warn("disk almost full", vlog.Icon.EJECT)

    line = mock_print.call_args.args[0]
    assert "[warn]" in line
    assert vlog.Icon.EJECT in line
    assert "disk almost full" in line


def test_kill_result_failure_uses_error_level():
    with patch.object(vlog._console, "print") as mock_print:
        vlog.kill_result(4242, ok=False, message="access denied")

    line = mock_print.call_args.args[0]
    assert "[err]" in line
    assert "4242" in line
    assert "access denied" in line


def test_eject_result_success():
    with patch.object(vlog._console, "print") as mock_print:
        vlog.eject_result("/Volumes/USB", ok=True)

    line = mock_print.call_args.args[0]
    assert "Ejected" in line
    assert "/Volumes/USB" in line


def test_configure_writes_json_lines(home, restore_logging):
    config = Config(logging=LoggingConfig(level="info"))

    vlog.configure(config)
    vlog.get_structlog().info("probe_failed", probe="battery", error="timeout")
    vlog.get_structlog().debug("probe_unparsed", probe="thermal")
    for handler in logging.getLogger().handlers:
        handler.flush()

    lines = config.log_path.read_text().splitlines()
    assert len(lines) == 1
    event = json.loads(lines[0])
    assert event["event"] == "probe_failed"
    assert event["probe"] == "battery"
    assert event["level"] == "info"
    assert "ts" in event
