"""
Test per configure_logging
==========================
"""

import json
import logging

import pytest
import structlog

from entitrain.log_config import configure_logging


@pytest.fixture(autouse=True)
def reset_structlog():
    yield
    structlog.reset_defaults()


class TestConfigureLogging:
    """Test configurazione structlog."""

    def test_json_output(self, capsys):
        configure_logging(logging.INFO, json_output=True)
        structlog.get_logger().info("training_started", sentences=2)

        record = json.loads(capsys.readouterr().err.strip().splitlines()[-1])
        assert record["event"] == "training_started"
        assert record["sentences"] == 2
        assert record["level"] == "info"
        assert "timestamp" in record

    def test_level_filter(self, capsys):
        configure_logging(logging.WARNING, json_output=True)
        log = structlog.get_logger()
        log.info("ssvm_iteration", iteration=10)
        log.warning("ssvm_not_converged", iterations=5)

        lines = capsys.readouterr().err.strip().splitlines()
        assert len(lines) == 1
        assert json.loads(lines[0])["event"] == "ssvm_not_converged"
