"""Tests for logging setup."""

import json
import logging

from rust_forest.logging import JsonFormatter, get_logger, setup_logging, verbosity_level


class TestSetup:
    """Tests for setup_logging and verbosity_level."""

    def test_verbosity_levels(self):
        assert verbosity_level() == logging.WARNING
        assert verbosity_level(verbose=True) == logging.DEBUG
        assert verbosity_level(verbose=True, quiet=True) == logging.ERROR

    def test_single_handler(self):
        """Repeated setup replaces the handler instead of adding one."""
        setup_logging(logging.INFO)
        logger = setup_logging(logging.DEBUG, json_format=True)
        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0].formatter, JsonFormatter)
        assert logger.level == logging.DEBUG

    def test_component_loggers_are_namespaced(self):
        assert get_logger("engine").name == "rust_forest.engine"
        assert get_logger().name == "rust_forest"


class TestJsonFormatter:
    """Tests for JsonFormatter."""

    def test_context_fields(self):
        """Analysis context passed through extra= appears in the JSON line."""
        record = logging.LogRecord("rust_forest.engine", logging.WARNING, __file__, 1, "Skipping %s", ("a.rs",), None)
        record.path = "src/a.rs"
        data = json.loads(JsonFormatter().format(record))
        assert data["message"] == "Skipping a.rs"
        assert data["level"] == "WARNING"
        assert data["path"] == "src/a.rs"
        assert "elapsed" not in data
