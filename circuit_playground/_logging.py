"""Logging configuration for circuit-playground.

Provides two logging modes:
- Default: WARNING level only (quiet)
- Debug tracing: DEBUG level with a handler that flushes after every record

Usage:
    from circuit_playground._logging import logger, enable_debug_logging

    # Default - only warnings
    logger.warning("This will show")
    logger.info("This won't show")

    # Enable for solver tracing
    enable_debug_logging()
    logger.debug("Newton iterations, sweep progress, ...")

Modules log through ``logging.getLogger(__name__)``, which propagates to this
package logger.
"""

import logging
import sys
import time

logger = logging.getLogger("circuit_playground")

# Default: WARNING level only (quiet operation)
logger.setLevel(logging.WARNING)

if not logger.handlers:
    _default_handler = logging.StreamHandler(sys.stdout)
    _default_handler.setLevel(logging.WARNING)
    _default_handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(_default_handler)


class FlushingHandler(logging.StreamHandler):
    """StreamHandler that flushes after every emit."""

    def emit(self, record):
        super().emit(record)
        self.flush()


class PerfCounterHandler(FlushingHandler):
    """FlushingHandler that prepends time.perf_counter() to each message.

    Useful for timing Newton loops and sweep points from the log alone.
    """

    def emit(self, record):
        record.msg = f"[{time.perf_counter():.6f}] {record.msg}"
        super().emit(record)


def enable_debug_logging(with_perf_counter: bool = False):
    """Enable DEBUG level logging with immediate flush.

    Args:
        with_perf_counter: If True, prepend time.perf_counter() timestamps.
    """
    logger.setLevel(logging.DEBUG)

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    if with_perf_counter:
        handler = PerfCounterHandler(sys.stdout)
    else:
        handler = FlushingHandler(sys.stdout)
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    logger.addHandler(handler)


def set_log_level(level: int):
    """Set the logging level.

    Args:
        level: logging.DEBUG, logging.INFO, logging.WARNING, etc.
    """
    logger.setLevel(level)
    for handler in logger.handlers:
        handler.setLevel(level)
