"""Tests for the logging helpers."""

import logging

import numpy as np

from termopt import Function
from termopt.logging import get_logger, set_log_level

from sample_terms import SquareTerm


class TestGetLogger:
    def test_namespaced(self):
        assert get_logger("engine").name == "termopt.engine"
        assert get_logger("termopt.core.graph").name == "termopt.core.graph"
        assert get_logger().name == "termopt"

    def test_cached(self):
        assert get_logger("cached") is get_logger("cached")

    def test_module_loggers_propagate_to_package_logger(self):
        logger = get_logger("configured")
        assert logger.propagate is True
        assert logger.handlers == []
        assert len(get_logger().handlers) >= 1


class TestSetLogLevel:
    def test_inherited_by_existing_and_new_loggers(self):
        existing = get_logger("existing")
        try:
            set_log_level("DEBUG")
            assert existing.getEffectiveLevel() == logging.DEBUG
            assert get_logger("created_after").getEffectiveLevel() == logging.DEBUG
        finally:
            set_log_level(logging.WARNING)
        assert existing.getEffectiveLevel() == logging.WARNING

    def test_debug_output_from_registration(self, caplog):
        with caplog.at_level(logging.DEBUG, logger="termopt"):
            f = Function(worker_count=1)
            a = np.zeros(2)
            f.register_variable(a)
            f.add_term(SquareTerm(2), a)
            f.evaluate(np.zeros(2))

        assert "Registered variable 0" in caplog.text
        assert any(r.name == "termopt.core.registry" for r in caplog.records)
