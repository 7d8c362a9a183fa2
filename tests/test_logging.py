"""Tests for the package logger helpers."""

import logging

import pytest

from circuit_playground._logging import (
    FlushingHandler,
    PerfCounterHandler,
    enable_debug_logging,
    logger,
    set_log_level,
)


@pytest.fixture
def restore_logger():
    level = logger.level
    handlers = logger.handlers[:]
    yield logger
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
    for handler in handlers:
        logger.addHandler(handler)
    logger.setLevel(level)


class TestLogging:
    def test_quiet_by_default(self):
        assert logging.getLogger("circuit_playground") is logger
        assert logger.level == logging.WARNING

    def test_set_log_level(self, restore_logger):
        set_log_level(logging.INFO)
        assert logger.level == logging.INFO
        assert all(h.level == logging.INFO for h in logger.handlers)

    def test_enable_debug_logging(self, restore_logger, capsys):
        """Module loggers propagate into the package handler."""
        enable_debug_logging()

        logging.getLogger("circuit_playground.analysis.solver").debug("NR converged")

        assert isinstance(logger.handlers[0], FlushingHandler)
        assert "circuit_playground.analysis.solver: NR converged" in capsys.readouterr().out

    def test_perf_counter_prefix(self, restore_logger, capsys):
        enable_debug_logging(with_perf_counter=True)

        logger.debug("step")

        assert isinstance(logger.handlers[0], PerfCounterHandler)
        assert capsys.readouterr().out.startswith("circuit_playground: [")
