import json
import logging

import pytest
import structlog

from dice_mcp_server.config import Settings
from dice_mcp_server.logging import setup_logging


@pytest.fixture(autouse=True)
def _restore_logging():
    yield
    structlog.reset_defaults()
    logging.basicConfig(handlers=[logging.NullHandler()], force=True)


def test_json_logs_go_to_stderr(capsys):
    setup_logging(Settings(log_json=True, log_level="debug"))

    structlog.get_logger().info("server.roll.ok", expression="2d6", total=7)

    captured = capsys.readouterr()
    assert captured.out == ""
    event = json.loads(captured.err.strip().splitlines()[-1])
    assert event["event"] == "server.roll.ok"
    assert event["total"] == 7
    assert event["level"] == "info"
    assert "timestamp" in event


def test_level_filters_debug(capsys):
    setup_logging(Settings(log_level="WARNING"))

    structlog.get_logger().debug("dice.parse.ok")
    structlog.get_logger().warning("server.roll.rate_limited", window="minute")

    err = capsys.readouterr().err
    assert "dice.parse.ok" not in err
    assert "server.roll.rate_limited" in err
